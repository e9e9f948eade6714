"""
Operator configuration - resource coordinates and environment settings.
"""

import os
from dataclasses import dataclass, field
from typing import FrozenSet, Mapping, Optional

# NamespaceLabel CRD
CRD_GROUP = "omer.omer.io"
CRD_VERSION = "v1"
CRD_PLURAL = "namespacelabels"
CRD_KIND = "NamespaceLabel"

# Blocks physical deletion of a NamespaceLabel until its labels are cleaned up
FINALIZER = "namespacelabel.omer.io/finalizer"

# Annotation prefix for kopf's handler progress, and the annotation that
# carries the namespace's resourceVersion to wake the NamespaceLabel handlers
ANNOTATION_PREFIX = "namespacelabel.omer.io"
NAMESPACE_VERSION_ANNOTATION = f"{ANNOTATION_PREFIX}/namespace-version"

DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_RETRY_BASE_DELAY = 1.0
DEFAULT_RETRY_MAX_DELAY = 300.0
DEFAULT_WEBHOOK_PORT = 9443


def parse_label_keys(raw: Optional[str]) -> FrozenSet[str]:
    """Parse a comma-separated list of label keys, ignoring blanks."""
    if not raw:
        return frozenset()
    return frozenset(key.strip() for key in raw.split(",") if key.strip())


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw!r}")
    return value


def _bool(env: Mapping[str, str], name: str) -> bool:
    return env.get(name, "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class OperatorConfig:
    """Process-wide settings, read once at startup."""

    protected_labels: FrozenSet[str] = field(default_factory=frozenset)
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY
    retry_max_delay: float = DEFAULT_RETRY_MAX_DELAY
    webhook_enabled: bool = False
    webhook_port: int = DEFAULT_WEBHOOK_PORT
    webhook_certfile: Optional[str] = None
    webhook_pkeyfile: Optional[str] = None

    def retry_delay(self, retry: int) -> float:
        """Delay before the next attempt after ``retry`` failed ones: doubling, capped."""
        return min(self.retry_base_delay * 2 ** retry, self.retry_max_delay)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "OperatorConfig":
        env = os.environ if env is None else env

        retry_base_delay = _float(env, "RETRY_BASE_DELAY", DEFAULT_RETRY_BASE_DELAY)
        retry_max_delay = _float(env, "RETRY_MAX_DELAY", DEFAULT_RETRY_MAX_DELAY)
        if retry_max_delay < retry_base_delay:
            raise ValueError("RETRY_MAX_DELAY must be at least RETRY_BASE_DELAY")

        return cls(
            protected_labels=parse_label_keys(env.get("PROTECTED_LABELS")),
            request_timeout=_float(env, "REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            retry_base_delay=retry_base_delay,
            retry_max_delay=retry_max_delay,
            webhook_enabled=_bool(env, "ADMISSION_WEBHOOK_ENABLED"),
            webhook_port=int(_float(env, "ADMISSION_WEBHOOK_PORT", DEFAULT_WEBHOOK_PORT)),
            webhook_certfile=env.get("ADMISSION_WEBHOOK_CERTFILE") or None,
            webhook_pkeyfile=env.get("ADMISSION_WEBHOOK_PKEYFILE") or None,
        )
