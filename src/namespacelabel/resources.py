"""
Kubernetes access for NamespaceLabel objects and the Namespaces they govern.

Fetches return None on 404. Every other API or transport failure is raised
as ReconcileError carrying the object identity and the operation.
"""

import copy
from typing import Dict, List, Optional

from kubernetes import client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from .config import CRD_GROUP, CRD_PLURAL, CRD_VERSION, FINALIZER
from .errors import ObjectKey, ReconcileError

# Transport-level failures, including timeouts, from the kubernetes client
TRANSPORT_ERRORS = (HTTPError, OSError)


# =============================================================================
# NamespaceLabel object accessors
# =============================================================================

def object_key(obj: dict) -> ObjectKey:
    meta = obj.get("metadata") or {}
    return ObjectKey(namespace=meta.get("namespace", ""), name=meta.get("name", ""))


def desired_labels(obj: dict) -> Dict[str, str]:
    return dict((obj.get("spec") or {}).get("labels") or {})


def synced_labels(obj: dict) -> Dict[str, str]:
    return dict((obj.get("status") or {}).get("syncLabels") or {})


def unsynced_labels(obj: dict) -> Dict[str, str]:
    return dict((obj.get("status") or {}).get("unSyncLabels") or {})


def is_terminating(obj: dict) -> bool:
    return bool((obj.get("metadata") or {}).get("deletionTimestamp"))


def has_finalizer(obj: dict) -> bool:
    return FINALIZER in ((obj.get("metadata") or {}).get("finalizers") or [])


def with_finalizer(obj: dict) -> dict:
    """Copy of ``obj`` with the operator finalizer added."""
    body = copy.deepcopy(obj)
    meta = body.setdefault("metadata", {})
    finalizers = list(meta.get("finalizers") or [])
    if FINALIZER not in finalizers:
        finalizers.append(FINALIZER)
    meta["finalizers"] = finalizers
    return body


def without_finalizer(obj: dict) -> dict:
    """Copy of ``obj`` with the operator finalizer removed."""
    body = copy.deepcopy(obj)
    meta = body.setdefault("metadata", {})
    meta["finalizers"] = [f for f in (meta.get("finalizers") or []) if f != FINALIZER]
    return body


def with_status(obj: dict, sync: Dict[str, str], unsync: Dict[str, str]) -> dict:
    """Copy of ``obj`` carrying the given sync/unsync status."""
    body = copy.deepcopy(obj)
    status = dict(body.get("status") or {})
    status["syncLabels"] = dict(sync)
    status["unSyncLabels"] = dict(unsync)
    body["status"] = status
    return body


# =============================================================================
# NamespaceLabel API calls
# =============================================================================

async def get_namespacelabel(
    api: client.CustomObjectsApi,
    key: ObjectKey,
    timeout: Optional[float] = None
) -> Optional[dict]:
    """Fetch a NamespaceLabel, or None if it no longer exists."""
    try:
        return api.get_namespaced_custom_object(
            group=CRD_GROUP,
            version=CRD_VERSION,
            namespace=key.namespace,
            plural=CRD_PLURAL,
            name=key.name,
            _request_timeout=timeout
        )
    except ApiException as e:
        if e.status == 404:
            return None
        raise ReconcileError(key, "get namespacelabel", e) from e
    except TRANSPORT_ERRORS as e:
        raise ReconcileError(key, "get namespacelabel", e) from e


async def list_namespacelabels(
    api: client.CustomObjectsApi,
    namespace: str,
    timeout: Optional[float] = None
) -> List[dict]:
    """List every NamespaceLabel in a namespace.

    API errors propagate unchanged; the caller decides what a failed listing means.
    """
    result = api.list_namespaced_custom_object(
        group=CRD_GROUP,
        version=CRD_VERSION,
        namespace=namespace,
        plural=CRD_PLURAL,
        _request_timeout=timeout
    )
    return list(result.get("items") or [])


async def update_namespacelabel(
    api: client.CustomObjectsApi,
    key: ObjectKey,
    body: dict,
    timeout: Optional[float] = None
) -> dict:
    """Replace a NamespaceLabel; the body's resourceVersion guards against lost updates."""
    try:
        return api.replace_namespaced_custom_object(
            group=CRD_GROUP,
            version=CRD_VERSION,
            namespace=key.namespace,
            plural=CRD_PLURAL,
            name=key.name,
            body=body,
            _request_timeout=timeout
        )
    except (ApiException, *TRANSPORT_ERRORS) as e:
        raise ReconcileError(key, "update namespacelabel", e) from e


async def update_namespacelabel_status(
    api: client.CustomObjectsApi,
    key: ObjectKey,
    body: dict,
    timeout: Optional[float] = None
) -> dict:
    """Replace the status subresource of a NamespaceLabel."""
    try:
        return api.replace_namespaced_custom_object_status(
            group=CRD_GROUP,
            version=CRD_VERSION,
            namespace=key.namespace,
            plural=CRD_PLURAL,
            name=key.name,
            body=body,
            _request_timeout=timeout
        )
    except (ApiException, *TRANSPORT_ERRORS) as e:
        raise ReconcileError(key, "update namespacelabel status", e) from e


async def annotate_namespacelabel(
    api: client.CustomObjectsApi,
    key: ObjectKey,
    annotations: Dict[str, str],
    timeout: Optional[float] = None
) -> dict:
    """Merge-patch annotations onto a NamespaceLabel."""
    try:
        return api.patch_namespaced_custom_object(
            group=CRD_GROUP,
            version=CRD_VERSION,
            namespace=key.namespace,
            plural=CRD_PLURAL,
            name=key.name,
            body={"metadata": {"annotations": annotations}},
            _request_timeout=timeout
        )
    except (ApiException, *TRANSPORT_ERRORS) as e:
        raise ReconcileError(key, "annotate namespacelabel", e) from e


# =============================================================================
# Namespace API calls
# =============================================================================

async def read_namespace(
    api: client.CoreV1Api,
    key: ObjectKey,
    timeout: Optional[float] = None
) -> Optional[client.V1Namespace]:
    """Fetch the Namespace governed by ``key``, or None if it does not exist."""
    try:
        return api.read_namespace(name=key.namespace, _request_timeout=timeout)
    except ApiException as e:
        if e.status == 404:
            return None
        raise ReconcileError(key, "get namespace", e) from e
    except TRANSPORT_ERRORS as e:
        raise ReconcileError(key, "get namespace", e) from e


def namespace_labels(namespace: client.V1Namespace) -> Dict[str, str]:
    return dict((namespace.metadata and namespace.metadata.labels) or {})


async def replace_namespace_labels(
    api: client.CoreV1Api,
    key: ObjectKey,
    namespace: client.V1Namespace,
    labels: Dict[str, str],
    timeout: Optional[float] = None
) -> client.V1Namespace:
    """Write ``labels`` as the full label set of the fetched Namespace.

    The fetched resourceVersion travels with the body, so a concurrent writer
    surfaces as a 409 conflict instead of being overwritten.
    """
    body = copy.deepcopy(namespace)
    if body.metadata is None:
        body.metadata = client.V1ObjectMeta(name=key.namespace)
    body.metadata.labels = dict(labels)

    try:
        return api.replace_namespace(name=key.namespace, body=body, _request_timeout=timeout)
    except (ApiException, *TRANSPORT_ERRORS) as e:
        raise ReconcileError(key, "update namespace", e) from e
