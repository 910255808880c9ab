"""Tests for namespace label reconciliation."""

from unittest.mock import MagicMock

import pytest
from kubernetes.client import ApiException

from errors import NamespaceReconcileFailed
from kube import Namespace
from namespaces import NAMESPACE_LABEL_KEY, NamespaceReconciler


class FakeCluster:
    """In-memory namespaces with create_or_update semantics."""

    def __init__(self, *names):
        self.namespaces = {n: {} for n in names}

    def list_namespaces(self):
        return [Namespace(name=n, labels=dict(l)) for n, l in self.namespaces.items()]

    def create_or_update_namespace(self, name, labels):
        current = self.namespaces.setdefault(name, {})
        if all(current.get(k) == v for k, v in labels.items()):
            return False
        current.update(labels)
        return True


def test_labels_every_namespace_with_its_name():
    cluster = FakeCluster('default', 'kube-system')

    changed = NamespaceReconciler(cluster).reconcile_all()

    assert changed == 2
    assert cluster.namespaces['default'] == {NAMESPACE_LABEL_KEY: 'default'}
    assert cluster.namespaces['kube-system'] == {NAMESPACE_LABEL_KEY: 'kube-system'}


def test_second_run_changes_nothing():
    cluster = FakeCluster('default', 'kube-system')
    reconciler = NamespaceReconciler(cluster)

    reconciler.reconcile_all()
    before = {n: dict(l) for n, l in cluster.namespaces.items()}

    assert reconciler.reconcile_all() == 0
    assert cluster.namespaces == before


def test_custom_label_key():
    cluster = FakeCluster('default')
    NamespaceReconciler(cluster).reconcile_all('example.com/name')
    assert cluster.namespaces['default'] == {'example.com/name': 'default'}


def test_list_failure():
    client = MagicMock()
    client.list_namespaces.side_effect = ApiException(status=500)

    with pytest.raises(NamespaceReconcileFailed, match='getting list of namespaces'):
        NamespaceReconciler(client).reconcile_all()


def test_first_label_failure_stops():
    client = MagicMock()
    client.list_namespaces.return_value = [Namespace('a'), Namespace('b'), Namespace('c')]
    client.create_or_update_namespace.side_effect = [True, ApiException(status=403), True]

    with pytest.raises(NamespaceReconcileFailed) as exc:
        NamespaceReconciler(client).reconcile_all()

    assert exc.value.namespace == 'b'
    assert client.create_or_update_namespace.call_count == 2
