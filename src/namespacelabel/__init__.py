# NamespaceLabel Operator
# Explicit imports to satisfy linters

from .config import (
    CRD_GROUP,
    CRD_KIND,
    CRD_PLURAL,
    CRD_VERSION,
    FINALIZER,
    OperatorConfig,
)
from .errors import ObjectKey, ReconcileError, NamespaceLabelValidationError
from .labels import LabelPartitioner, Partition, merge_namespace_labels, strip_synced_labels
from .cleanup import cleanup_namespacelabel
from .reconciler import NamespaceLabelReconciler, ReconcileResult
from .resources import annotate_namespacelabel
from .mapper import namespacelabels_for_namespace
from .admission import validate_namespacelabel, VALIDATED_OPERATIONS

__all__ = [
    "CRD_GROUP",
    "CRD_KIND",
    "CRD_PLURAL",
    "CRD_VERSION",
    "FINALIZER",
    "OperatorConfig",
    "ObjectKey",
    "ReconcileError",
    "NamespaceLabelValidationError",
    "LabelPartitioner",
    "Partition",
    "merge_namespace_labels",
    "strip_synced_labels",
    "cleanup_namespacelabel",
    "NamespaceLabelReconciler",
    "ReconcileResult",
    "annotate_namespacelabel",
    "namespacelabels_for_namespace",
    "validate_namespacelabel",
    "VALIDATED_OPERATIONS",
]
