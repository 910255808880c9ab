"""Error taxonomy for cluster apply runs.

Every ApplyError names the pipeline step it happened in and keeps the
underlying cause, so `str(error)` is enough to diagnose a failed run:

    verify: timed out waiting for nodes (observed=2, expected=3)

A declined confirmation is not an error; see orchestrator.ApplyOutcome.
"""

from typing import Optional


class ApplyError(Exception):
    """Base class for fatal apply pipeline failures."""
    step = 'apply'

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None and str(self.cause) not in self.message:
            return f"{self.step}: {self.message}: {self.cause}"
        return f"{self.step}: {self.message}"


class InfraPlanFailed(ApplyError):
    step = 'plan'


class InfraApplyFailed(ApplyError):
    step = 'apply_infra'


class CredentialRetrievalFailed(ApplyError):
    step = 'credentials'


class VerificationFailed(ApplyError):
    """Cluster did not reach the expected number of Ready nodes."""
    step = 'verify'

    def __init__(self, message: str, observed: Optional[int] = None,
                 expected: Optional[int] = None, cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.observed = observed
        self.expected = expected


class NamespaceReconcileFailed(ApplyError):
    step = 'namespaces'

    def __init__(self, message: str, namespace: str = '', cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.namespace = namespace


class ControlPlaneUpgradeFailed(ApplyError):
    step = 'controlplane'

    def __init__(self, message: str, component: str = '', cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.component = component


class PostHookFailed(ApplyError):
    step = 'post_apply_hook'


class ComponentReconcileFailed(ApplyError):
    step = 'components'

    def __init__(self, message: str, component: str = '', cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.component = component


class ReleaseError(Exception):
    """Failure reconciling a single release.

    `touched` tells callers whether anything may have been changed in the
    cluster before the failure.
    """
    touched = False

    def __init__(self, release: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"release {release!r}: {message}")
        self.release = release
        self.cause = cause


class NamespaceEnsureFailed(ReleaseError):
    touched = False


class ReleaseQueryFailed(ReleaseError):
    touched = False


class InstallFailed(ReleaseError):
    touched = True


class UpgradeFailed(ReleaseError):
    touched = True
