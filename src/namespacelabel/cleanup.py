"""
Cleanup handler - runs when a NamespaceLabel is marked for deletion.

Retracts every label the operator applied to the namespace, then lifts the
finalizer so the cluster can purge the object. Any failed write aborts the
pass with the finalizer still in place, so cleanup happens at least once.
"""

import logging
from typing import Optional

from kubernetes import client

from .errors import ObjectKey
from .labels import strip_synced_labels
from .resources import (
    has_finalizer,
    namespace_labels,
    read_namespace,
    replace_namespace_labels,
    synced_labels,
    update_namespacelabel,
    without_finalizer,
)

logger = logging.getLogger(__name__)


async def cleanup_namespacelabel(
    core_api: client.CoreV1Api,
    custom_api: client.CustomObjectsApi,
    key: ObjectKey,
    obj: dict,
    timeout: Optional[float] = None
) -> None:
    """Remove the synced labels from the namespace and drop the finalizer."""
    synced = synced_labels(obj)

    namespace = await read_namespace(core_api, key, timeout)
    if namespace is None:
        logger.info(f"Namespace {key.namespace} is gone, nothing to clean up for {key}")
    else:
        current = namespace_labels(namespace)
        remaining = strip_synced_labels(current, synced)
        if remaining != current:
            removed = sorted(set(current) - set(remaining))
            logger.info(f"Removing labels {removed} from namespace {key.namespace}")
            await replace_namespace_labels(core_api, key, namespace, remaining, timeout)

    if has_finalizer(obj):
        await update_namespacelabel(custom_api, key, without_finalizer(obj), timeout)
        logger.info(f"Finalizer removed from namespacelabel {key}")
