"""Workload descriptors: the unit reconciled as a Helm release."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ReleaseState(Enum):
    """Whether a release with a given name exists. Derived, never stored."""
    ABSENT = 'absent'
    PRESENT = 'present'


@dataclass(frozen=True)
class WorkloadDescriptor:
    """Declarative description of one component release.

    Attributes:
        name: Release name (also the component name)
        namespace: Target namespace, created if missing
        chart: Chart reference: local path, repo chart name or oci:// URL
        wait: Block until the release's resources are ready
        version: Chart version constraint (repo/oci charts only)
        repo: Chart repository URL for plain chart names
        values: Chart values
        timeout: Per-release timeout in seconds (defaults to the helm timeout)
    """
    name: str
    namespace: str
    chart: str
    wait: bool = False
    version: Optional[str] = None
    repo: Optional[str] = None
    values: dict = field(default_factory=dict, compare=False, hash=False)
    timeout: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'WorkloadDescriptor':
        """Build a descriptor from a `components:` entry.

        Raises:
            ValueError: If required keys are missing or malformed
        """
        if not isinstance(data, dict):
            raise ValueError(f"component entry must be a mapping, got {type(data).__name__}")
        name = data.get('name')
        if not name:
            raise ValueError("component entry is missing 'name'")
        chart = data.get('chart')
        if not chart:
            raise ValueError(f"component '{name}' is missing 'chart'")
        values: Any = data.get('values') or {}
        if not isinstance(values, dict):
            raise ValueError(f"component '{name}': 'values' must be a mapping")
        timeout = data.get('timeout')
        return cls(
            name=str(name),
            namespace=str(data.get('namespace') or 'default'),
            chart=str(chart),
            wait=bool(data.get('wait', False)),
            version=str(data['version']) if data.get('version') else None,
            repo=data.get('repo'),
            values=values,
            timeout=int(timeout) if timeout else None,
        )
