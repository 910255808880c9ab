"""Namespace ownership labels."""

import logging

from kubernetes.client import ApiException

from errors import NamespaceReconcileFailed
from kube import KubeClient

logger = logging.getLogger(__name__)

NAMESPACE_LABEL_KEY = 'lokomotive.kinvolk.io/name'


class NamespaceReconciler:
    """Label every namespace with `<label_key>: <namespace name>`."""

    def __init__(self, client: KubeClient):
        self.client = client

    def reconcile_all(self, label_key: str = NAMESPACE_LABEL_KEY) -> int:
        """Label all namespaces, one at a time.

        Stops at the first namespace that cannot be labeled.

        Returns:
            Number of namespaces that were changed (0 when already reconciled)

        Raises:
            NamespaceReconcileFailed: On listing or labeling failure
        """
        try:
            namespaces = self.client.list_namespaces()
        except ApiException as e:
            raise NamespaceReconcileFailed("getting list of namespaces", cause=e) from e

        changed = 0
        for ns in namespaces:
            try:
                if self.client.create_or_update_namespace(ns.name, {label_key: ns.name}):
                    changed += 1
            except (ApiException, ValueError) as e:
                raise NamespaceReconcileFailed(
                    f"labeling namespace {ns.name!r}", namespace=ns.name, cause=e
                ) from e

        logger.info(f"Namespaces reconciled: {changed} of {len(namespaces)} updated")
        return changed
