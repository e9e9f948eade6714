"""
NamespaceLabel reconciler - keeps a Namespace's labels in line with the
NamespaceLabel object of the same name.

Each pass works from a fresh fetch of both objects:
- Terminating: hand over to the cleanup handler
- Active: ensure the finalizer, partition the desired labels, merge the
  claimed ones into the namespace, record the outcome in status

No state is kept between passes. A failed write raises ReconcileError and the
whole pass is expected to be retried from scratch.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from kubernetes import client

from .cleanup import cleanup_namespacelabel
from .errors import ObjectKey
from .labels import LabelPartitioner, merge_namespace_labels
from .resources import (
    desired_labels,
    get_namespacelabel,
    has_finalizer,
    is_terminating,
    namespace_labels,
    read_namespace,
    replace_namespace_labels,
    synced_labels,
    unsynced_labels,
    update_namespacelabel,
    update_namespacelabel_status,
    with_finalizer,
    with_status,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of one pass. The default means: wait for the next event."""

    requeue: bool = False
    requeue_after: Optional[float] = None


class NamespaceLabelReconciler:
    """Reconciles one NamespaceLabel object per call."""

    def __init__(
        self,
        core_api: client.CoreV1Api,
        custom_api: client.CustomObjectsApi,
        protected_labels: Iterable[str] = (),
        request_timeout: Optional[float] = None
    ):
        self.core_api = core_api
        self.custom_api = custom_api
        self.partitioner = LabelPartitioner(protected_labels)
        self.request_timeout = request_timeout

    async def reconcile(self, key: ObjectKey) -> ReconcileResult:
        obj = await get_namespacelabel(self.custom_api, key, self.request_timeout)
        if obj is None:
            logger.debug(f"Namespacelabel {key} not found, nothing to do")
            return ReconcileResult()

        if is_terminating(obj):
            logger.info(f"Namespacelabel {key} is being deleted, cleaning up")
            await cleanup_namespacelabel(
                self.core_api, self.custom_api, key, obj, self.request_timeout
            )
            return ReconcileResult()

        if not has_finalizer(obj):
            obj = await update_namespacelabel(
                self.custom_api, key, with_finalizer(obj), self.request_timeout
            )
            logger.info(f"Finalizer added to namespacelabel {key}")

        await self.sync(key, obj)
        return ReconcileResult()

    async def sync(self, key: ObjectKey, obj: dict) -> None:
        """Apply the desired labels of ``obj`` to its namespace and record the outcome."""
        namespace = await read_namespace(self.core_api, key, self.request_timeout)
        if namespace is None:
            logger.info(f"Namespace {key.namespace} not found, skipping sync of {key}")
            return

        current = namespace_labels(namespace)
        previous_sync = synced_labels(obj)
        partition = self.partitioner.partition(desired_labels(obj), current, previous_sync)

        merged = merge_namespace_labels(current, previous_sync, partition.sync)
        if merged != current:
            claimed = {k: v for k, v in partition.sync.items() if k not in previous_sync}
            if claimed:
                # New claims are recorded before they reach the namespace, so a
                # failed write further down never leaves an unowned label behind.
                recorded = {**previous_sync, **partition.sync}
                obj = await update_namespacelabel_status(
                    self.custom_api,
                    key,
                    with_status(
                        obj,
                        recorded,
                        {k: v for k, v in unsynced_labels(obj).items() if k not in recorded}
                    ),
                    self.request_timeout
                )
            logger.info(
                f"Updating labels of namespace {key.namespace}: "
                f"claimed={sorted(partition.sync)} "
                f"retracted={sorted(set(previous_sync) - set(partition.sync))}"
            )
            await replace_namespace_labels(
                self.core_api, key, namespace, merged, self.request_timeout
            )

        if partition.unsync:
            logger.debug(f"Labels held back for {key}: {sorted(partition.unsync)}")

        if partition.sync != synced_labels(obj) or partition.unsync != unsynced_labels(obj):
            await update_namespacelabel_status(
                self.custom_api,
                key,
                with_status(obj, partition.sync, partition.unsync),
                self.request_timeout
            )
