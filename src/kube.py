"""Kubernetes API access for apply runs.

Wraps the `kubernetes` client behind the handful of calls the pipeline
needs: namespace listing and labeling, node readiness, and API
reachability.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml
from kubernetes import client, config
from kubernetes.client import ApiException

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClusterHandle:
    """Credentials for a live cluster's API server.

    The kubeconfig blob is opaque here; it is only handed to the client
    constructor. `path` is the on-disk copy used by CLI tools (helm, hooks).
    """
    kubeconfig: bytes = field(repr=False)
    path: Optional[Path] = None

    @classmethod
    def write(cls, kubeconfig: bytes, path: Path) -> 'ClusterHandle':
        """Persist kubeconfig to path (mode 0600) and return a handle for it."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, 'wb') as f:
            f.write(kubeconfig)
        return cls(kubeconfig=kubeconfig, path=path)

    @classmethod
    def read(cls, path: Path) -> 'ClusterHandle':
        """Load a handle from a kubeconfig previously written by an apply run."""
        return cls(kubeconfig=path.read_bytes(), path=path)


@dataclass
class Namespace:
    name: str
    labels: dict = field(default_factory=dict)


@dataclass
class Node:
    name: str
    ready: bool


def _is_ready(node) -> bool:
    conditions = getattr(node.status, 'conditions', None) or []
    return any(c.type == 'Ready' and c.status == 'True' for c in conditions)


class KubeClient:
    """Thin adapter over CoreV1Api."""

    def __init__(self, core: client.CoreV1Api, version: Optional[client.VersionApi] = None):
        self.core = core
        self.version = version

    @classmethod
    def from_handle(cls, handle: ClusterHandle) -> 'KubeClient':
        """Create an isolated API client from a cluster handle.

        Uses new_client_from_config_dict so the global kubernetes
        configuration is never mutated.
        """
        kubeconfig = yaml.safe_load(handle.kubeconfig)
        if not isinstance(kubeconfig, dict):
            raise ValueError("kubeconfig is not a YAML mapping")
        api_client = config.new_client_from_config_dict(kubeconfig)
        return cls(core=client.CoreV1Api(api_client), version=client.VersionApi(api_client))

    def server_version(self) -> str:
        """Return the API server git version (proves reachability)."""
        if self.version is None:
            return 'unknown'
        info = self.version.get_code()
        return getattr(info, 'git_version', 'unknown')

    def list_namespaces(self) -> list[Namespace]:
        items = self.core.list_namespace().items
        return [
            Namespace(name=ns.metadata.name, labels=dict(ns.metadata.labels or {}))
            for ns in items
        ]

    def create_namespace(self, name: str, labels: Optional[dict] = None) -> bool:
        """Create a namespace. Returns False if it already exists."""
        if not name:
            raise ValueError("namespace name can't be empty")
        body = client.V1Namespace(metadata=client.V1ObjectMeta(name=name, labels=labels or None))
        try:
            self.core.create_namespace(body=body)
        except ApiException as e:
            if e.status == 409:
                return False
            raise
        logger.info(f"Created namespace {name}")
        return True

    def create_or_update_namespace(self, name: str, labels: dict) -> bool:
        """Ensure namespace exists and carries labels.

        Returns True when something changed, False when the namespace
        already had every label (a second call is always a no-op).
        """
        if self.create_namespace(name, labels):
            return True

        existing = self.core.read_namespace(name=name)
        current = dict(existing.metadata.labels or {})
        if all(current.get(k) == v for k, v in labels.items()):
            logger.debug(f"Namespace {name} already labeled")
            return False

        self.core.patch_namespace(name=name, body={'metadata': {'labels': labels}})
        logger.info(f"Labeled namespace {name}: {labels}")
        return True

    def list_nodes(self) -> list[Node]:
        items = self.core.list_node().items
        return [Node(name=n.metadata.name, ready=_is_ready(n)) for n in items]
