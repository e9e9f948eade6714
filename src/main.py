"""
NamespaceLabel Operator - Main Entry Point

Keeps the labels of each Namespace in sync with the NamespaceLabel custom
resource of the same name:
- Desired labels come from NamespaceLabel.spec.labels
- Labels the operator applied are tracked in status.syncLabels
- Labels it refused to apply (protected, or already set by someone else)
  are reported in status.unSyncLabels
- A finalizer makes sure applied labels are removed when the
  NamespaceLabel is deleted

Run with:
    kopf run --all-namespaces src/main.py
"""

import kopf
import logging

from kubernetes import client, config as kube_config

from namespacelabel.admission import VALIDATED_OPERATIONS, validate_namespacelabel
from namespacelabel.config import (
    ANNOTATION_PREFIX,
    CRD_GROUP,
    CRD_PLURAL,
    CRD_VERSION,
    FINALIZER,
    NAMESPACE_VERSION_ANNOTATION,
    OperatorConfig,
)
from namespacelabel.errors import NamespaceLabelValidationError, ObjectKey, ReconcileError
from namespacelabel.mapper import namespacelabels_for_namespace
from namespacelabel.reconciler import NamespaceLabelReconciler
from namespacelabel.resources import annotate_namespacelabel

logger = logging.getLogger(__name__)

operator_config = OperatorConfig.from_env()


def load_cluster_credentials() -> None:
    """Prefer in-cluster service account credentials, fall back to kubeconfig."""
    try:
        kube_config.load_incluster_config()
        logger.info("Using in-cluster config")
    except kube_config.ConfigException:
        kube_config.load_kube_config()
        logger.info("Using kubeconfig (local)")


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, memo: kopf.Memo, **_):
    """Configure operator settings and build the reconciler."""
    settings.posting.level = logging.INFO
    settings.watching.server_timeout = 60

    # kopf guards deletion with our own finalizer token, so a NamespaceLabel
    # only ever carries this one finalizer
    settings.persistence.finalizer = FINALIZER
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(
        prefix=ANNOTATION_PREFIX
    )

    if operator_config.webhook_enabled:
        settings.admission.server = kopf.WebhookServer(
            port=operator_config.webhook_port,
            certfile=operator_config.webhook_certfile,
            pkeyfile=operator_config.webhook_pkeyfile
        )
        settings.admission.managed = ANNOTATION_PREFIX

    load_cluster_credentials()

    memo.config = operator_config
    memo.custom_api = client.CustomObjectsApi()
    memo.reconciler = NamespaceLabelReconciler(
        core_api=client.CoreV1Api(),
        custom_api=memo.custom_api,
        protected_labels=operator_config.protected_labels,
        request_timeout=operator_config.request_timeout
    )

    logger.info(
        f"NamespaceLabel Operator starting "
        f"(protected labels: {sorted(operator_config.protected_labels) or 'none'})..."
    )


@kopf.on.cleanup()
async def shutdown(**_):
    logger.info("NamespaceLabel Operator shutting down")


async def run_reconcile(key: ObjectKey, memo: kopf.Memo, retry: int, logger) -> None:
    """One reconcile pass; failures go back to kopf as a delayed retry."""
    try:
        result = await memo.reconciler.reconcile(key)
    except ReconcileError as e:
        delay = memo.config.retry_delay(retry)
        logger.warning(f"{e} (attempt {retry + 1}), retrying in {delay:g}s")
        raise kopf.TemporaryError(str(e), delay=delay) from e

    if result.requeue or result.requeue_after:
        delay = result.requeue_after or memo.config.retry_delay(retry)
        raise kopf.TemporaryError(f"Requeue requested for namespacelabel {key}", delay=delay)


@kopf.on.resume(CRD_GROUP, CRD_VERSION, CRD_PLURAL)
@kopf.on.create(CRD_GROUP, CRD_VERSION, CRD_PLURAL)
@kopf.on.update(CRD_GROUP, CRD_VERSION, CRD_PLURAL)
async def reconcile_namespacelabel(name, namespace, memo: kopf.Memo, retry, logger, **_):
    """Sync a NamespaceLabel into its namespace."""
    await run_reconcile(ObjectKey(namespace=namespace, name=name), memo, retry, logger)


@kopf.on.delete(CRD_GROUP, CRD_VERSION, CRD_PLURAL)
async def delete_namespacelabel(name, namespace, memo: kopf.Memo, retry, logger, **_):
    """Strip the labels a deleted NamespaceLabel applied, then release its finalizer."""
    await run_reconcile(ObjectKey(namespace=namespace, name=name), memo, retry, logger)


@kopf.on.event('namespaces')
async def on_namespace_event(event, name, meta, memo: kopf.Memo, logger, **_):
    """Wake the NamespaceLabels of a Namespace whose labels may have drifted.

    The namespace's resourceVersion is stamped on each NamespaceLabel; the
    annotation change triggers the update handler above.
    """
    if event.get('type') == 'DELETED':
        return

    version = meta.get('resourceVersion')
    if not version:
        return

    keys = await namespacelabels_for_namespace(
        memo.custom_api, name, memo.config.request_timeout
    )
    for key in keys:
        logger.debug(f"Namespace {name} changed, waking namespacelabel {key}")
        try:
            await annotate_namespacelabel(
                memo.custom_api,
                key,
                {NAMESPACE_VERSION_ANNOTATION: version},
                memo.config.request_timeout
            )
        except ReconcileError as e:
            logger.warning(f"Could not wake namespacelabel {key}: {e}")


def validate_name(body, operation, **_):
    """Admission check: a NamespaceLabel must be named after its namespace."""
    if operation not in VALIDATED_OPERATIONS:
        return

    meta = body.get('metadata', {})
    try:
        validate_namespacelabel(meta.get('name', ''), meta.get('namespace', ''))
    except NamespaceLabelValidationError as e:
        raise kopf.AdmissionError(str(e), code=400)


def register_admission(config: OperatorConfig) -> None:
    """Serve validate_name only when the webhook server is configured."""
    if config.webhook_enabled:
        kopf.on.validate(CRD_GROUP, CRD_VERSION, CRD_PLURAL, id='validate-name')(validate_name)


register_admission(operator_config)
