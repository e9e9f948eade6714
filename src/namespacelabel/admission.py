"""
Admission validation for NamespaceLabel objects.
"""

from .errors import NamespaceLabelValidationError

NAME_MISMATCH_MESSAGE = "the name of the namespacelabel needs to be like the name of the namespace"

# Operations the validating webhook checks
VALIDATED_OPERATIONS = ("CREATE", "UPDATE")


def validate_namespacelabel(name: str, namespace: str) -> None:
    """Reject a NamespaceLabel whose name differs from its namespace."""
    if name != namespace:
        raise NamespaceLabelValidationError(NAME_MISMATCH_MESSAGE)
