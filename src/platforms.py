"""Platform descriptors and capabilities.

The orchestrator never inspects platform types. It asks a
PlatformDescriptor whether it has a Capability:

- MANAGED: control plane is run by a third party, never upgraded here
- POST_APPLY_HOOK: run the platform hook once after the control plane step
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import yaml

from common import run_command
from kube import ClusterHandle
from workload import WorkloadDescriptor

logger = logging.getLogger(__name__)


class Capability(Enum):
    MANAGED = 'managed'
    POST_APPLY_HOOK = 'post-apply-hook'


class HookError(Exception):
    """Post-apply hook failed."""


@dataclass(frozen=True)
class CommandHook:
    """Post-apply hook that runs a command with KUBECONFIG set."""
    command: tuple
    timeout: int = 300

    def __call__(self, handle: ClusterHandle) -> None:
        if handle.path is None:
            raise HookError("cluster handle has no kubeconfig path")
        env = {**os.environ, 'KUBECONFIG': str(handle.path)}
        logger.info(f"Running post-apply hook: {' '.join(self.command)}")
        rc, _, err = run_command(list(self.command), timeout=self.timeout, env=env)
        if rc != 0:
            raise HookError(f"hook exited {rc}: {err.strip()}")


@dataclass(frozen=True)
class PlatformDescriptor:
    """Static facts about the target platform."""
    name: str
    expected_nodes: int
    capabilities: frozenset = frozenset()
    post_apply_hook: Optional[Callable[[ClusterHandle], None]] = field(default=None, compare=False)

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities


# Registry of known platform kinds: kind -> managed
_platforms: dict[str, bool] = {}


def register_platform(kind: str, managed: bool = False) -> None:
    """Register a platform kind."""
    _platforms[kind] = managed


def list_platforms() -> list[tuple[str, bool]]:
    """Return (kind, managed) pairs sorted by kind."""
    return sorted(_platforms.items())


register_platform('baremetal')
register_platform('packet')
register_platform('aws')
register_platform('tinkerbell')
register_platform('aks', managed=True)


def expected_node_count(platform: dict, managed: bool) -> int:
    """Controllers plus all worker pool nodes, unless overridden."""
    if platform.get('expected_nodes') is not None:
        return int(platform['expected_nodes'])
    controllers = 0 if managed else int(platform.get('controllers', 1))
    workers = sum(int(pool.get('count', 1)) for pool in platform.get('worker_pools') or [])
    return controllers + workers


def build_platform(platform: dict) -> PlatformDescriptor:
    """Build a PlatformDescriptor from the `platform:` config section.

    Raises:
        ValueError: If the kind is unknown or the hook is malformed
    """
    kind = platform.get('kind')
    if kind not in _platforms:
        raise ValueError(f"Unknown platform kind: {kind}. Available: {sorted(_platforms)}")
    managed = _platforms[kind]

    capabilities = set()
    if managed:
        capabilities.add(Capability.MANAGED)

    hook = None
    if hook_cfg := platform.get('post_apply_hook'):
        command = hook_cfg.get('command') if isinstance(hook_cfg, dict) else None
        if not command or not isinstance(command, list):
            raise ValueError("platform.post_apply_hook.command must be a non-empty list")
        hook = CommandHook(command=tuple(str(c) for c in command),
                           timeout=int(hook_cfg.get('timeout', 300)))
        capabilities.add(Capability.POST_APPLY_HOOK)

    return PlatformDescriptor(
        name=kind,
        expected_nodes=expected_node_count(platform, managed),
        capabilities=frozenset(capabilities),
        post_apply_hook=hook,
    )


# Control plane charts, upgraded strictly in this order
CONTROL_PLANE_CHARTS = (
    ('bootstrap-secrets', 'kube-system'),
    ('pod-checkpointer', 'kube-system'),
    ('kube-apiserver', 'kube-system'),
    ('kubernetes', 'kube-system'),
    ('calico', 'kube-system'),
    ('lokomotive', 'lokomotive-system'),
)

KUBELET_CHART = ('kubelet', 'kube-system')


def control_plane_descriptors(
    charts_dir: Path,
    upgrade_kubelets: bool = False,
    values: Optional[dict] = None,
) -> tuple[WorkloadDescriptor, ...]:
    """Build the ordered control plane descriptors.

    Args:
        charts_dir: Directory holding charts as <namespace>/<name>
        upgrade_kubelets: Append the kubelet chart
        values: Provisioner outputs; `<name>_values` (YAML string) feeds each chart
    """
    charts = CONTROL_PLANE_CHARTS + ((KUBELET_CHART,) if upgrade_kubelets else ())
    values = values or {}
    descriptors = []
    for name, namespace in charts:
        raw = values.get(f'{name}_values')
        chart_values = yaml.safe_load(raw) if isinstance(raw, str) else (raw or {})
        descriptors.append(WorkloadDescriptor(
            name=name,
            namespace=namespace,
            chart=str(charts_dir / namespace / name),
            wait=True,
            values=chart_values or {},
        ))
    return tuple(descriptors)
