#!/usr/bin/env python3
"""Tests for cluster.yaml loading."""

from pathlib import Path

import pytest

from config import ConfigError, find_config_file, load_cluster_config
from namespaces import NAMESPACE_LABEL_KEY
from platforms import Capability


class TestLoadClusterConfig:
    """Test load_cluster_config."""

    def test_loads_fixture(self, cluster_dir, cluster_config):
        assert cluster_config.name == 'demo'
        assert cluster_config.platform.name == 'packet'
        assert cluster_config.platform.expected_nodes == 3
        assert cluster_config.asset_dir == (cluster_dir / 'assets').resolve()
        assert cluster_config.terraform_dir == (cluster_dir / 'terraform').resolve()
        assert cluster_config.terraform_vars == {'facility': 'ams1', 'cluster_name': 'demo'}
        assert cluster_config.namespace_label_key == NAMESPACE_LABEL_KEY

    def test_component_order_and_paths(self, cluster_dir, cluster_config):
        metallb, contour = cluster_config.components
        assert metallb.name == 'metallb'
        assert metallb.wait is True
        assert metallb.chart == str((cluster_dir / 'charts' / 'metallb').resolve())
        # plain chart names are left for the repo lookup
        assert contour.chart == 'contour'
        assert contour.repo == 'https://charts.example.com'
        assert contour.values == {'replicas': 2}

    def test_derived_paths(self, cluster_config):
        assert cluster_config.kubeconfig_path == cluster_config.asset_dir / 'cluster-assets' / 'auth' / 'kubeconfig'
        assert cluster_config.state_dir == cluster_config.asset_dir / '.states' / 'demo'

    def test_defaults(self, tmp_path):
        path = tmp_path / 'cluster.yaml'
        path.write_text("cluster_name: mini\nplatform: {kind: aks}\n")

        config = load_cluster_config(path)

        assert config.components == ()
        assert config.platform.has(Capability.MANAGED)
        assert config.helm_binary == 'helm'
        assert config.verify_timeout == 600
        assert config.dns_provider == ''

    def test_missing_cluster_name(self, tmp_path):
        path = tmp_path / 'cluster.yaml'
        path.write_text("platform: {kind: packet}\n")
        with pytest.raises(ConfigError, match='cluster_name'):
            load_cluster_config(path)

    def test_unknown_platform(self, tmp_path):
        path = tmp_path / 'cluster.yaml'
        path.write_text("cluster_name: x\nplatform: {kind: nope}\n")
        with pytest.raises(ConfigError, match='platform'):
            load_cluster_config(path)

    def test_duplicate_components(self, tmp_path):
        path = tmp_path / 'cluster.yaml'
        path.write_text("""
cluster_name: x
platform: {kind: packet}
components:
  - {name: a, chart: a}
  - {name: a, chart: b}
""")
        with pytest.raises(ConfigError, match='duplicate components: a'):
            load_cluster_config(path)

    def test_component_without_chart(self, tmp_path):
        path = tmp_path / 'cluster.yaml'
        path.write_text("cluster_name: x\nplatform: {kind: packet}\ncomponents: [{name: a}]\n")
        with pytest.raises(ConfigError, match="missing 'chart'"):
            load_cluster_config(path)

    def test_invalid_dns_provider(self, tmp_path):
        path = tmp_path / 'cluster.yaml'
        path.write_text("cluster_name: x\nplatform: {kind: packet}\ndns: {provider: bind}\n")
        with pytest.raises(ConfigError, match='DNS provider'):
            load_cluster_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / 'cluster.yaml'
        path.write_text("cluster_name: [unclosed\n")
        with pytest.raises(ConfigError, match='Invalid YAML'):
            load_cluster_config(path)

    def test_get_component(self, cluster_config):
        assert cluster_config.get_component('contour').namespace == 'projectcontour'
        with pytest.raises(ConfigError, match='Unknown component'):
            cluster_config.get_component('nope')


class TestFindConfigFile:
    """Config file resolution order."""

    def test_explicit(self, cluster_dir):
        path = cluster_dir / 'cluster.yaml'
        assert find_config_file(path) == path

    def test_explicit_missing(self, tmp_path):
        with pytest.raises(ConfigError, match='not found'):
            find_config_file(tmp_path / 'missing.yaml')

    def test_env(self, cluster_dir, monkeypatch):
        monkeypatch.setenv('CLUSTER_DRIVER_CONFIG', str(cluster_dir / 'cluster.yaml'))
        assert find_config_file() == cluster_dir / 'cluster.yaml'

    def test_env_missing(self, tmp_path, monkeypatch):
        monkeypatch.setenv('CLUSTER_DRIVER_CONFIG', str(tmp_path / 'gone.yaml'))
        with pytest.raises(ConfigError, match='does not exist'):
            find_config_file()

    def test_cwd(self, cluster_dir, monkeypatch):
        monkeypatch.delenv('CLUSTER_DRIVER_CONFIG', raising=False)
        monkeypatch.chdir(cluster_dir)
        assert find_config_file() == Path.cwd() / 'cluster.yaml'

    def test_nothing_found(self, tmp_path, monkeypatch):
        monkeypatch.delenv('CLUSTER_DRIVER_CONFIG', raising=False)
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ConfigError, match='--config'):
            find_config_file()
