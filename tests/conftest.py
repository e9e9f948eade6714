"""
Shared fixtures: an in-memory cluster serving the subset of CoreV1Api and
CustomObjectsApi calls the operator makes.
"""

import copy
from typing import Dict, Optional, Tuple

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from namespacelabel.config import CRD_GROUP, CRD_KIND, CRD_PLURAL, CRD_VERSION
from namespacelabel.errors import ObjectKey
from namespacelabel.reconciler import NamespaceLabelReconciler


def _not_found(what: str) -> ApiException:
    return ApiException(status=404, reason=f"{what} Not Found")


def _conflict(what: str) -> ApiException:
    return ApiException(status=409, reason=f"Conflict on {what}")


class FakeCluster:
    """Namespaces and NamespaceLabels with resourceVersion checks and finalizer-gated deletion."""

    def __init__(self):
        self.namespaces: Dict[str, client.V1Namespace] = {}
        self.namespacelabels: Dict[Tuple[str, str], dict] = {}
        self._version = 0
        self.namespace_writes = 0
        self.object_writes = 0
        self.status_writes = 0
        # operation name -> [calls to let through, exception to raise after them]
        self.failures: Dict[str, list] = {}

    def next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def fail(self, operation: str, error: Optional[Exception] = None, after: int = 0) -> None:
        """Make the call to ``operation`` that follows ``after`` successful ones raise once."""
        self.failures[operation] = [after, error or ApiException(status=500, reason="Internal Server Error")]

    def _maybe_fail(self, operation: str) -> None:
        pending = self.failures.get(operation)
        if pending is None:
            return
        if pending[0] > 0:
            pending[0] -= 1
            return
        del self.failures[operation]
        raise pending[1]

    # -- test helpers ---------------------------------------------------------

    def add_namespace(self, name: str, labels: Optional[dict] = None) -> None:
        merged = {"kubernetes.io/metadata.name": name}
        merged.update(labels or {})
        self.namespaces[name] = client.V1Namespace(
            api_version="v1",
            kind="Namespace",
            metadata=client.V1ObjectMeta(
                name=name,
                labels=merged,
                resource_version=self.next_version()
            )
        )

    def labels_of(self, namespace: str) -> dict:
        return dict(self.namespaces[namespace].metadata.labels or {})

    def set_namespace_label(self, namespace: str, key: str, value: str) -> None:
        ns = self.namespaces[namespace]
        labels = dict(ns.metadata.labels or {})
        labels[key] = value
        ns.metadata.labels = labels
        ns.metadata.resource_version = self.next_version()

    def add_namespacelabel(self, namespace: str, name: str, labels: dict, finalizers=None) -> ObjectKey:
        self.namespacelabels[(namespace, name)] = {
            "apiVersion": f"{CRD_GROUP}/{CRD_VERSION}",
            "kind": CRD_KIND,
            "metadata": {
                "name": name,
                "namespace": namespace,
                "resourceVersion": self.next_version(),
                "finalizers": list(finalizers or []),
            },
            "spec": {"labels": dict(labels)},
        }
        return ObjectKey(namespace=namespace, name=name)

    def get(self, key: ObjectKey) -> Optional[dict]:
        return self.namespacelabels.get((key.namespace, key.name))

    def set_spec_labels(self, key: ObjectKey, labels: dict) -> None:
        obj = self.namespacelabels[(key.namespace, key.name)]
        obj["spec"] = {"labels": dict(labels)}
        obj["metadata"]["resourceVersion"] = self.next_version()

    def request_deletion(self, key: ObjectKey) -> None:
        obj = self.namespacelabels[(key.namespace, key.name)]
        if obj["metadata"].get("finalizers"):
            obj["metadata"]["deletionTimestamp"] = "2026-10-19T00:00:00Z"
            obj["metadata"]["resourceVersion"] = self.next_version()
        else:
            del self.namespacelabels[(key.namespace, key.name)]


class FakeCoreV1Api:

    def __init__(self, cluster: FakeCluster):
        self.cluster = cluster

    def read_namespace(self, name, _request_timeout=None):
        self.cluster._maybe_fail("read_namespace")
        if name not in self.cluster.namespaces:
            raise _not_found(f"namespace {name}")
        return copy.deepcopy(self.cluster.namespaces[name])

    def replace_namespace(self, name, body, _request_timeout=None):
        self.cluster._maybe_fail("replace_namespace")
        current = self.cluster.namespaces.get(name)
        if current is None:
            raise _not_found(f"namespace {name}")
        if body.metadata.resource_version != current.metadata.resource_version:
            raise _conflict(f"namespace {name}")
        stored = copy.deepcopy(body)
        stored.metadata.resource_version = self.cluster.next_version()
        self.cluster.namespaces[name] = stored
        self.cluster.namespace_writes += 1
        return copy.deepcopy(stored)


class FakeCustomObjectsApi:

    def __init__(self, cluster: FakeCluster):
        self.cluster = cluster

    def _check(self, group, version, plural):
        assert (group, version, plural) == (CRD_GROUP, CRD_VERSION, CRD_PLURAL)

    def _current(self, namespace, name, body=None):
        current = self.cluster.namespacelabels.get((namespace, name))
        if current is None:
            raise _not_found(f"namespacelabel {namespace}/{name}")
        if body is not None and body["metadata"].get("resourceVersion") != current["metadata"]["resourceVersion"]:
            raise _conflict(f"namespacelabel {namespace}/{name}")
        return current

    def get_namespaced_custom_object(self, group, version, namespace, plural, name, _request_timeout=None):
        self._check(group, version, plural)
        self.cluster._maybe_fail("get_namespaced_custom_object")
        return copy.deepcopy(self._current(namespace, name))

    def list_namespaced_custom_object(self, group, version, namespace, plural, _request_timeout=None):
        self._check(group, version, plural)
        self.cluster._maybe_fail("list_namespaced_custom_object")
        items = [
            copy.deepcopy(obj)
            for (ns, _), obj in sorted(self.cluster.namespacelabels.items())
            if ns == namespace
        ]
        return {"apiVersion": f"{CRD_GROUP}/{CRD_VERSION}", "items": items}

    def replace_namespaced_custom_object(self, group, version, namespace, plural, name, body, _request_timeout=None):
        self._check(group, version, plural)
        self.cluster._maybe_fail("replace_namespaced_custom_object")
        current = self._current(namespace, name, body)
        stored = copy.deepcopy(current)
        stored["spec"] = copy.deepcopy(body.get("spec"))
        stored["metadata"]["finalizers"] = list(body["metadata"].get("finalizers") or [])
        stored["metadata"]["resourceVersion"] = self.cluster.next_version()
        self.cluster.object_writes += 1

        if stored["metadata"].get("deletionTimestamp") and not stored["metadata"]["finalizers"]:
            del self.cluster.namespacelabels[(namespace, name)]
        else:
            self.cluster.namespacelabels[(namespace, name)] = stored
        return copy.deepcopy(stored)

    def patch_namespaced_custom_object(self, group, version, namespace, plural, name, body, _request_timeout=None):
        self._check(group, version, plural)
        self.cluster._maybe_fail("patch_namespaced_custom_object")
        stored = copy.deepcopy(self._current(namespace, name))
        annotations = dict(stored["metadata"].get("annotations") or {})
        annotations.update(body.get("metadata", {}).get("annotations") or {})
        stored["metadata"]["annotations"] = annotations
        stored["metadata"]["resourceVersion"] = self.cluster.next_version()
        self.cluster.namespacelabels[(namespace, name)] = stored
        self.cluster.object_writes += 1
        return copy.deepcopy(stored)

    def replace_namespaced_custom_object_status(self, group, version, namespace, plural, name, body, _request_timeout=None):
        self._check(group, version, plural)
        self.cluster._maybe_fail("replace_namespaced_custom_object_status")
        current = self._current(namespace, name, body)
        stored = copy.deepcopy(current)
        stored["status"] = copy.deepcopy(body.get("status"))
        stored["metadata"]["resourceVersion"] = self.cluster.next_version()
        self.cluster.namespacelabels[(namespace, name)] = stored
        self.cluster.status_writes += 1
        return copy.deepcopy(stored)


@pytest.fixture
def cluster() -> FakeCluster:
    fake = FakeCluster()
    fake.add_namespace("default")
    return fake


@pytest.fixture
def core_api(cluster: FakeCluster) -> FakeCoreV1Api:
    return FakeCoreV1Api(cluster)


@pytest.fixture
def custom_api(cluster: FakeCluster) -> FakeCustomObjectsApi:
    return FakeCustomObjectsApi(cluster)


@pytest.fixture
def reconciler(core_api, custom_api) -> NamespaceLabelReconciler:
    return NamespaceLabelReconciler(core_api=core_api, custom_api=custom_api, request_timeout=5)
