"""Cluster configuration management.

Configuration is loaded from a single YAML file (cluster.yaml) describing
the platform, provisioner and helm settings, and the components to
install. Example:

    cluster_name: demo
    asset_dir: ./assets
    platform: {kind: packet, controllers: 1, worker_pools: [{count: 2}]}
    terraform: {binary: tofu, dir: ./terraform}
    components:
      - {name: metallb, namespace: metallb-system, chart: ./charts/metallb}

Resolution order for the config file:
1. --config CLI argument
2. $CLUSTER_DRIVER_CONFIG environment variable
3. ./cluster.yaml

Relative paths inside the file resolve against the file's directory.
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

import yaml

from dns_prompt import PROVIDERS as DNS_PROVIDERS
from namespaces import NAMESPACE_LABEL_KEY
from platforms import PlatformDescriptor, build_platform
from workload import WorkloadDescriptor

DEFAULT_CONFIG_NAME = 'cluster.yaml'


class ConfigError(Exception):
    """Configuration error."""


@dataclass
class ClusterConfig:
    """Parsed cluster.yaml."""
    name: str
    config_file: Path
    asset_dir: Path
    platform: PlatformDescriptor
    components: tuple = ()

    terraform_binary: str = 'tofu'
    terraform_dir: Optional[Path] = None
    terraform_vars: dict = field(default_factory=dict)
    timeout_apply: int = 3600

    helm_binary: str = 'helm'
    helm_timeout: int = 300

    verify_timeout: int = 600
    verify_interval: int = 10

    dns_provider: str = ''
    dns_zone: str = ''

    namespace_label_key: str = NAMESPACE_LABEL_KEY

    @property
    def kubeconfig_path(self) -> Path:
        return self.asset_dir / 'cluster-assets' / 'auth' / 'kubeconfig'

    @property
    def charts_dir(self) -> Path:
        return self.asset_dir / 'cluster-assets' / 'charts'

    @property
    def state_dir(self) -> Path:
        return self.asset_dir / '.states' / self.name

    def get_component(self, name: str) -> WorkloadDescriptor:
        for component in self.components:
            if component.name == name:
                return component
        available = [c.name for c in self.components]
        raise ConfigError(f"Unknown component: {name}. Available: {available}")


def _parse_yaml(path: Path) -> dict:
    """Parse a YAML file and return contents."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def _section(data: dict, key: str) -> dict:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    return value


def _resolve_path(base: Path, value: str) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else (base / path).resolve()


def find_config_file(explicit: Optional[Path] = None) -> Path:
    """Locate the cluster config file.

    Raises:
        ConfigError: If no config file can be found
    """
    if explicit:
        if not explicit.exists():
            raise ConfigError(f"Config file not found: {explicit}")
        return explicit

    if env_path := os.environ.get('CLUSTER_DRIVER_CONFIG'):
        path = Path(env_path)
        if path.exists():
            return path
        raise ConfigError(f"CLUSTER_DRIVER_CONFIG={env_path} does not exist")

    local = Path.cwd() / DEFAULT_CONFIG_NAME
    if local.exists():
        return local

    raise ConfigError(
        f"{DEFAULT_CONFIG_NAME} not found. "
        "Pass --config or set CLUSTER_DRIVER_CONFIG."
    )


def load_cluster_config(path: Path) -> ClusterConfig:
    """Load and validate a cluster config file."""
    data = _parse_yaml(path)
    base = path.parent.resolve()

    name = data.get('cluster_name')
    if not name:
        raise ConfigError(f"{path}: 'cluster_name' is required")

    try:
        platform = build_platform(_section(data, 'platform'))
    except ValueError as e:
        raise ConfigError(f"{path}: platform: {e}") from e

    components_raw = data.get('components') or []
    if not isinstance(components_raw, list):
        raise ConfigError(f"{path}: 'components' must be a list")
    components = []
    for entry in components_raw:
        try:
            component = WorkloadDescriptor.from_dict(entry)
        except ValueError as e:
            raise ConfigError(f"{path}: {e}") from e
        if component.chart.startswith(('.', '/', '~')):
            component = replace(component, chart=str(_resolve_path(base, component.chart)))
        components.append(component)

    names = [c.name for c in components]
    if duplicates := sorted({n for n in names if names.count(n) > 1}):
        raise ConfigError(f"{path}: duplicate components: {', '.join(duplicates)}")

    asset_dir = _resolve_path(base, data.get('asset_dir', './assets'))
    terraform = _section(data, 'terraform')
    helm = _section(data, 'helm')
    verify = _section(data, 'verify')
    dns = _section(data, 'dns')

    dns_provider = dns.get('provider', '')
    if dns_provider and dns_provider not in DNS_PROVIDERS:
        raise ConfigError(f"{path}: invalid DNS provider {dns_provider!r}")

    terraform_vars = dict(terraform.get('vars') or {})
    terraform_vars.setdefault('cluster_name', name)

    return ClusterConfig(
        name=str(name),
        config_file=path,
        asset_dir=asset_dir,
        platform=platform,
        components=tuple(components),
        terraform_binary=terraform.get('binary', 'tofu'),
        terraform_dir=_resolve_path(base, terraform.get('dir', './terraform')),
        terraform_vars=terraform_vars,
        timeout_apply=int(terraform.get('timeout_apply', 3600)),
        helm_binary=helm.get('binary', 'helm'),
        helm_timeout=int(helm.get('timeout', 300)),
        verify_timeout=int(verify.get('timeout', 600)),
        verify_interval=int(verify.get('interval', 10)),
        dns_provider=dns_provider,
        dns_zone=dns.get('zone', ''),
        namespace_label_key=data.get('namespace_label_key', NAMESPACE_LABEL_KEY),
    )
