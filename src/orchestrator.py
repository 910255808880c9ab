"""Cluster apply orchestration.

One apply run walks these phases in order, stopping at the first failure:

    plan -> confirm -> apply_infra -> [configure_dns] -> credentials ->
    verify -> namespaces -> [controlplane] -> [post_apply_hook] -> [components]

plan/confirm only run for an existing cluster without --confirm. Declining
the confirmation ends the run cleanly with ApplyOutcome.ABORTED before any
infrastructure is touched. Nothing is rolled back on failure; re-running
apply is the recovery path, since every phase is idempotent.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from kubernetes.config.config_exception import ConfigException

from common import ask_for_confirmation
from config import ClusterConfig, ConfigError
from dns_prompt import MANUAL, manual_dns_prompt, parse_dns_entries
from errors import (
    ApplyError,
    ComponentReconcileFailed,
    ControlPlaneUpgradeFailed,
    CredentialRetrievalFailed,
    InfraApplyFailed,
    InfraPlanFailed,
    NamespaceReconcileFailed,
    PostHookFailed,
    VerificationFailed,
)
from kube import ClusterHandle, KubeClient
from namespaces import NamespaceReconciler
from platforms import Capability, control_plane_descriptors
from provisioner import TerraformExecutor
from release import ReleaseReconciler
from reporting import ApplyReport
from verify import ClusterVerifier

logger = logging.getLogger(__name__)


class ApplyOutcome(Enum):
    APPLIED = 'applied'
    ABORTED = 'aborted'


@dataclass(frozen=True)
class ApplyOptions:
    """Operator choices for one apply run."""
    confirm: bool = False
    skip_components: bool = False
    upgrade_kubelets: bool = False
    verbose: bool = False


def new_provisioner(config: ClusterConfig, verbose: bool = False) -> TerraformExecutor:
    return TerraformExecutor(
        working_dir=config.terraform_dir or config.asset_dir / 'terraform',
        state_dir=config.state_dir,
        binary=config.terraform_binary,
        variables=config.terraform_vars,
        verbose=verbose,
        timeout_apply=config.timeout_apply,
    )


def default_reconciler_factory(config: ClusterConfig) -> Callable[[ClusterHandle], ReleaseReconciler]:
    def factory(handle: ClusterHandle) -> ReleaseReconciler:
        return ReleaseReconciler.for_cluster(handle, helm_binary=config.helm_binary,
                                             timeout=config.helm_timeout)
    return factory


class ApplyOrchestrator:
    """Runs one cluster apply."""

    def __init__(
        self,
        config: ClusterConfig,
        provisioner: TerraformExecutor,
        options: ApplyOptions,
        report_dir: Optional[Path] = None,
        confirm_fn: Callable[[str], bool] = ask_for_confirmation,
        input_fn: Callable[[str], str] = input,
        kube_factory: Callable[[ClusterHandle], KubeClient] = KubeClient.from_handle,
        reconciler_factory: Optional[Callable[[ClusterHandle], ReleaseReconciler]] = None,
    ):
        self.config = config
        self.platform = config.platform
        self.provisioner = provisioner
        self.options = options
        self.confirm_fn = confirm_fn
        self.input_fn = input_fn
        self.kube_factory = kube_factory
        self.reconciler_factory = reconciler_factory or default_reconciler_factory(config)
        self.report = ApplyReport(cluster=config.name, report_dir=report_dir)

        self.handle: Optional[ClusterHandle] = None
        self.kube: Optional[KubeClient] = None
        self.reconciler: Optional[ReleaseReconciler] = None

    def _phase(self, name: str, description: str, error_cls: type,
               fn: Callable[[], Any]) -> Any:
        """Run one phase, recording it and mapping failures to error_cls."""
        logger.info(f"Running phase: {name} - {description}")
        self.report.start_phase(name)
        try:
            result = fn()
        except ApplyError as e:
            logger.error(f"Phase {name} failed: {e}")
            self.report.fail_phase(name, description, str(e))
            raise
        except Exception as e:
            error = error_cls(description.lower(), cause=e)
            logger.error(f"Phase {name} failed: {error}")
            self.report.fail_phase(name, description, str(error))
            raise error from e
        logger.info(f"Phase {name} passed")
        self.report.pass_phase(name, description, result if isinstance(result, str) else '')
        return result

    def _skip(self, name: str, description: str, reason: str) -> None:
        logger.info(f"Skipping phase: {name} ({reason})")
        self.report.skip_phase(name, description, reason)

    def run(self) -> ApplyOutcome:
        """Run all phases.

        Returns:
            APPLIED, or ABORTED if the operator declined the confirmation

        Raises:
            ApplyError: Subclass naming the failed phase
        """
        logger.info(f"Starting cluster apply for {self.config.name} ({self.platform.name})")
        self.report.start()
        try:
            outcome = self._run()
        except ApplyError:
            self.report.finish('failed')
            raise
        self.report.finish(outcome.value)
        return outcome

    def _run(self) -> ApplyOutcome:
        exists = self._phase('detect', 'Detect existing cluster', InfraPlanFailed,
                             self.provisioner.cluster_exists)

        if exists and not self.options.confirm:
            self._phase('plan', 'Reconcile cluster state', InfraPlanFailed, self.provisioner.plan)
            if not self.confirm_fn("Do you want to proceed with cluster apply?"):
                logger.info("Cluster apply cancelled")
                self._skip('confirm', 'Confirm cluster apply', 'declined by operator')
                return ApplyOutcome.ABORTED
            self.report.pass_phase('confirm', 'Confirm cluster apply', 'accepted by operator')
        else:
            reason = 'pre-confirmed' if exists else 'no existing cluster'
            self._skip('plan', 'Reconcile cluster state', reason)
            self._skip('confirm', 'Confirm cluster apply', reason)

        self._phase('apply_infra', 'Apply infrastructure', InfraApplyFailed, self.provisioner.apply)
        logger.info(f"Your configurations are stored in {self.config.asset_dir}")

        if self.config.dns_provider == MANUAL:
            self._phase('configure_dns', 'Configure DNS entries', InfraApplyFailed, self._configure_dns)

        self._phase('credentials', 'Get kubeconfig', CredentialRetrievalFailed, self._obtain_credentials)

        self._phase('verify', 'Verify cluster', VerificationFailed, self._verify)

        self._phase('namespaces', 'Update installed namespaces', NamespaceReconcileFailed,
                    lambda: NamespaceReconciler(self.kube).reconcile_all(self.config.namespace_label_key))

        # Control plane upgrades only for existing, self-hosted control planes
        if not exists:
            self._skip('controlplane', 'Upgrade control plane', 'new cluster')
        elif self.platform.has(Capability.MANAGED):
            self._skip('controlplane', 'Upgrade control plane', 'managed platform')
        else:
            self._phase('controlplane', 'Upgrade control plane', ControlPlaneUpgradeFailed,
                        self._upgrade_control_plane)

        if self.platform.has(Capability.POST_APPLY_HOOK):
            self._phase('post_apply_hook', 'Run platform post-apply hook', PostHookFailed,
                        lambda: self.platform.post_apply_hook(self.handle))

        if self.options.skip_components:
            self._skip('components', 'Apply components', '--skip-components')
        elif not self.config.components:
            self._skip('components', 'Apply components', 'no components declared')
        else:
            self._phase('components', 'Apply components', ComponentReconcileFailed,
                        self._apply_components)

        return ApplyOutcome.APPLIED

    def _configure_dns(self) -> str:
        entries = parse_dns_entries(self.provisioner.output('dns_entries'))
        if manual_dns_prompt(entries, self.config.dns_zone, input_fn=self.input_fn):
            return f"{len(entries)} entries verified"
        return 'check skipped by operator'

    def _obtain_credentials(self) -> str:
        kubeconfig = self.provisioner.output('kubeconfig')
        if not kubeconfig:
            raise CredentialRetrievalFailed("provisioner returned an empty kubeconfig")
        if isinstance(kubeconfig, str):
            kubeconfig = kubeconfig.encode('utf-8')
        self.handle = ClusterHandle.write(kubeconfig, self.config.kubeconfig_path)
        self.kube = self.kube_factory(self.handle)
        self.reconciler = self.reconciler_factory(self.handle)
        return f"kubeconfig written to {self.handle.path}"

    def _verify(self) -> str:
        expected = self.platform.expected_nodes
        verifier = ClusterVerifier(self.kube, timeout=self.config.verify_timeout,
                                   interval=self.config.verify_interval)
        verifier.verify(expected)
        return f"{expected} node(s) Ready"

    def _upgrade_control_plane(self) -> str:
        descriptors = control_plane_descriptors(
            self.config.charts_dir,
            upgrade_kubelets=self.options.upgrade_kubelets,
            values=self.provisioner.outputs(),
        )
        try:
            self.reconciler.reconcile_all(descriptors)
        except ComponentReconcileFailed as e:
            raise ControlPlaneUpgradeFailed(
                f"upgrading {e.component!r}", component=e.component, cause=e.cause
            ) from e
        return ', '.join(d.name for d in descriptors)

    def _apply_components(self) -> str:
        results = self.reconciler.reconcile_all(self.config.components)
        return ', '.join(f"{name} {action}" for name, action in results)


def select_components(config: ClusterConfig, names: Iterable[str] = ()) -> list:
    """Pick components by name, keeping the declared order.

    Raises:
        ConfigError: For an unknown name
    """
    names = list(names)
    for name in names:
        config.get_component(name)
    if not names:
        return list(config.components)
    return [c for c in config.components if c.name in names]


def apply_components(
    config: ClusterConfig,
    names: Iterable[str] = (),
    reconciler_factory: Optional[Callable[[ClusterHandle], ReleaseReconciler]] = None,
) -> list[tuple[str, str]]:
    """Reconcile selected components against an already applied cluster.

    Raises:
        ConfigError: If the kubeconfig from a previous apply is missing
        CredentialRetrievalFailed: If the kubeconfig cannot be loaded
        ComponentReconcileFailed: On the first failing component
    """
    selected = select_components(config, names)
    if not config.kubeconfig_path.exists():
        raise ConfigError(
            f"kubeconfig not found at {config.kubeconfig_path}. Run 'cluster apply' first."
        )
    factory = reconciler_factory or default_reconciler_factory(config)
    try:
        reconciler = factory(ClusterHandle.read(config.kubeconfig_path))
    except (ConfigException, OSError, ValueError) as e:
        raise CredentialRetrievalFailed(
            f"loading kubeconfig {config.kubeconfig_path}", cause=e
        ) from e
    return reconciler.reconcile_all(selected)
