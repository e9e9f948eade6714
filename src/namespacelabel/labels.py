"""
Label set computations - which desired labels the operator may claim, and
what the namespace label set becomes once the claim is applied.

All functions here are pure: inputs are never mutated and every result is a
new dict.
"""

from typing import Dict, FrozenSet, Iterable, Mapping, NamedTuple, Optional

Labels = Dict[str, str]


class Partition(NamedTuple):
    """Desired labels split into the ones applied and the ones held back."""

    sync: Labels
    unsync: Labels


class LabelPartitioner:
    """Classifies each desired label as syncable or blocked.

    Rules, first match wins:
    1. protected key -> unsync
    2. key on the namespace and already claimed by us -> sync (desired value wins)
    3. key on the namespace but not ours -> unsync (never clobber a foreign label)
    4. key absent from the namespace -> sync
    """

    def __init__(self, protected_labels: Iterable[str] = ()):
        self.protected_labels: FrozenSet[str] = frozenset(protected_labels)

    def partition(
        self,
        desired: Optional[Mapping[str, str]],
        namespace_labels: Optional[Mapping[str, str]],
        synced: Optional[Mapping[str, str]],
    ) -> Partition:
        desired = desired or {}
        namespace_labels = namespace_labels or {}
        synced = synced or {}

        sync: Labels = {}
        unsync: Labels = {}
        for key, value in desired.items():
            if key in self.protected_labels:
                unsync[key] = value
            elif key in namespace_labels:
                if key in synced:
                    sync[key] = value
                else:
                    unsync[key] = value
            else:
                sync[key] = value

        return Partition(sync=sync, unsync=unsync)


def merge_namespace_labels(
    namespace_labels: Optional[Mapping[str, str]],
    previous_sync: Optional[Mapping[str, str]],
    new_sync: Mapping[str, str],
) -> Labels:
    """Compute the namespace's replacement label set.

    Keys we previously applied but no longer claim are retracted, every
    claimed key is written with its desired value, and anything else on the
    namespace passes through unchanged.
    """
    namespace_labels = namespace_labels or {}
    previous_sync = previous_sync or {}

    retracted = set(previous_sync) - set(new_sync)
    merged = {k: v for k, v in namespace_labels.items() if k not in retracted}
    merged.update(new_sync)
    return merged


def strip_synced_labels(
    namespace_labels: Optional[Mapping[str, str]],
    synced: Optional[Mapping[str, str]],
) -> Labels:
    """Namespace labels with every key in ``synced`` removed."""
    synced = synced or {}
    return {k: v for k, v in (namespace_labels or {}).items() if k not in synced}
