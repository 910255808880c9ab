"""Release reconciliation: install or upgrade each workload as a Helm release.

Workloads are reconciled one at a time, in the order they are declared.
There is no dependency graph between them: a workload that must be fully
running before the next one is installed sets `wait: true`.
"""

import logging
from typing import Iterable

from kubernetes.client import ApiException
from urllib3.exceptions import HTTPError

from errors import (
    ComponentReconcileFailed,
    InstallFailed,
    NamespaceEnsureFailed,
    ReleaseError,
    ReleaseQueryFailed,
    UpgradeFailed,
)
from helm import HelmClient, HelmError
from kube import ClusterHandle, KubeClient
from workload import ReleaseState, WorkloadDescriptor

logger = logging.getLogger(__name__)


class ReleaseReconciler:
    """Reconcile workload descriptors against one cluster."""

    def __init__(self, kube: KubeClient, helm: HelmClient):
        self.kube = kube
        self.helm = helm

    @classmethod
    def for_cluster(cls, handle: ClusterHandle, helm_binary: str = 'helm',
                    timeout: int = 300) -> 'ReleaseReconciler':
        if handle.path is None:
            raise ValueError("cluster handle has no kubeconfig path for helm")
        return cls(
            kube=KubeClient.from_handle(handle),
            helm=HelmClient(kubeconfig=handle.path, binary=helm_binary, timeout=timeout),
        )

    def state(self, descriptor: WorkloadDescriptor) -> ReleaseState:
        """Query release history. Never cached: releases change out of band."""
        try:
            exists = self.helm.release_exists(descriptor.name, descriptor.namespace)
        except HelmError as e:
            raise ReleaseQueryFailed(descriptor.name, f"failed checking if release is installed: {e}", e) from e
        return ReleaseState.PRESENT if exists else ReleaseState.ABSENT

    def reconcile(self, descriptor: WorkloadDescriptor) -> str:
        """Install or upgrade one release.

        Returns:
            'installed' or 'upgraded'

        Raises:
            NamespaceEnsureFailed, ReleaseQueryFailed: nothing was changed
            InstallFailed, UpgradeFailed: the release may be partially applied
        """
        name, ns = descriptor.name, descriptor.namespace

        try:
            self.kube.create_namespace(ns)
        except (ApiException, HTTPError, OSError, ValueError) as e:
            raise NamespaceEnsureFailed(name, f"failed ensuring that namespace {ns!r} exists: {e}", e) from e

        state = self.state(descriptor)
        kwargs = dict(
            wait=descriptor.wait,
            version=descriptor.version,
            repo=descriptor.repo,
            values=descriptor.values,
            timeout=descriptor.timeout,
        )

        if state is ReleaseState.ABSENT:
            try:
                self.helm.install(name, ns, descriptor.chart, **kwargs)
            except HelmError as e:
                raise InstallFailed(name, f"installing release failed: {e}", e) from e
            return 'installed'

        try:
            self.helm.upgrade(name, ns, descriptor.chart, **kwargs)
        except HelmError as e:
            raise UpgradeFailed(name, f"upgrading release failed: {e}", e) from e
        return 'upgraded'

    def reconcile_all(self, descriptors: Iterable[WorkloadDescriptor]) -> list[tuple[str, str]]:
        """Reconcile descriptors sequentially in declared order.

        The first failure stops the run; later descriptors are not touched.

        Returns:
            (name, 'installed'|'upgraded') pairs in the order applied

        Raises:
            ComponentReconcileFailed: Carrying the failing component's name
        """
        results = []
        for descriptor in descriptors:
            logger.info(f"Reconciling {descriptor.name} ({descriptor.namespace})")
            try:
                action = self.reconcile(descriptor)
            except ReleaseError as e:
                raise ComponentReconcileFailed(
                    f"component {descriptor.name!r} failed", component=descriptor.name, cause=e
                ) from e
            logger.info(f"Component {descriptor.name} {action}")
            results.append((descriptor.name, action))
        return results
