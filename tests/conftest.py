"""Shared pytest fixtures for cluster-driver tests."""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

KUBECONFIG = b"""apiVersion: v1
kind: Config
clusters:
- name: demo
  cluster: {server: https://198.51.100.10:6443}
users:
- name: admin
  user: {token: abc}
contexts:
- name: demo
  context: {cluster: demo, user: admin}
current-context: demo
"""


@pytest.fixture
def cluster_dir(tmp_path):
    """Create a cluster directory with a minimal cluster.yaml.

    Creates:
    - cluster.yaml (packet platform, 1 controller + 2 workers, 2 components)
    - terraform/main.tf
    - assets/
    """
    (tmp_path / 'terraform').mkdir()
    (tmp_path / 'terraform' / 'main.tf').write_text('# cluster\n')
    (tmp_path / 'assets').mkdir()
    (tmp_path / 'cluster.yaml').write_text("""
cluster_name: demo
asset_dir: ./assets
platform:
  kind: packet
  controllers: 1
  worker_pools:
    - name: pool-1
      count: 2
terraform:
  binary: tofu
  dir: ./terraform
  vars:
    facility: ams1
verify:
  timeout: 0
  interval: 0
components:
  - name: metallb
    namespace: metallb-system
    chart: ./charts/metallb
    wait: true
  - name: contour
    namespace: projectcontour
    chart: contour
    repo: https://charts.example.com
    version: 1.2.3
    values:
      replicas: 2
""")
    return tmp_path


@pytest.fixture
def cluster_config(cluster_dir):
    """Loaded ClusterConfig for cluster_dir."""
    from config import load_cluster_config
    return load_cluster_config(cluster_dir / 'cluster.yaml')


@pytest.fixture
def mock_provisioner():
    """Provisioner double for an existing cluster that returns a kubeconfig."""
    provisioner = MagicMock()
    provisioner.cluster_exists.return_value = True
    outputs = {'kubeconfig': KUBECONFIG.decode()}
    provisioner.outputs.return_value = outputs
    provisioner.output.side_effect = lambda key, *a, **kw: outputs[key]
    return provisioner


@pytest.fixture
def mock_kube():
    """KubeClient double with three Ready nodes and no namespaces."""
    from kube import Node
    kube = MagicMock()
    kube.list_nodes.return_value = [Node(name=f'node-{i}', ready=True) for i in range(3)]
    kube.list_namespaces.return_value = []
    return kube
