"""
Namespace to NamespaceLabel mapping - which objects to reconcile when a
Namespace changes.
"""

import logging
from typing import List, Optional

from kubernetes import client
from kubernetes.client.rest import ApiException

from .errors import ObjectKey
from .resources import TRANSPORT_ERRORS, list_namespacelabels, object_key

logger = logging.getLogger(__name__)


async def namespacelabels_for_namespace(
    api: client.CustomObjectsApi,
    namespace: str,
    timeout: Optional[float] = None
) -> List[ObjectKey]:
    """Keys of every NamespaceLabel living in ``namespace``.

    A failed listing yields no keys; the objects' own watch events and the
    next change handler pass still converge them.
    """
    try:
        items = await list_namespacelabels(api, namespace, timeout)
    except (ApiException, *TRANSPORT_ERRORS) as e:
        logger.warning(f"Could not list namespacelabels in {namespace}: {e}")
        return []

    return [object_key(item) for item in items]
