"""Per-kind mapping of raw remote status strings to :class:`StatusClass`."""

from __future__ import annotations

import logging
import threading
from typing import Dict, FrozenSet, Optional, Set, Tuple

from .models import OperationKind, StatusClass

logger = logging.getLogger(__name__)

_P = StatusClass.PENDING
_R = StatusClass.RUNNING
_S = StatusClass.SUCCEEDED
_F = StatusClass.FAILED
_C = StatusClass.CANCELLED

STATUS_TABLES: Dict[OperationKind, Dict[str, StatusClass]] = {
    OperationKind.EXPORT: {
        "IN_PROGRESS": _R,
        "COMPLETED": _S,
        "COMPLETED_WITH_ERRORS": _S,
        # v2 API 可能返回更具体的变体
        "COMPLETED_WITH_EXPORT_ERRORS": _S,
        "FAILED": _F,
    },
    OperationKind.INSPECTION: {
        "IN_PROGRESS": _R,
        "COMPLETED": _S,
        "FAILED": _F,
    },
    OperationKind.DEPLOYMENT: {
        "NOT_STARTED": _P,
        "QUEUED": _P,
        "PENDING": _P,
        "PENDING_REVIEW": _P,
        "IN_PROGRESS": _R,
        "RUNNING": _R,
        "SUCCEEDED": _S,
        "COMPLETED": _S,
        "COMPLETED_WITH_IMPORT_ERRORS": _F,
        "COMPLETED_WITH_PUBLISH_ERRORS": _F,
        "FAILED": _F,
        "REJECTED": _F,
        "ROLLED_BACK": _F,
        "CANCELLED": _C,
    },
    OperationKind.ROLLBACK: {
        "QUEUED": _P,
        "PENDING": _P,
        "IN_PROGRESS": _R,
        "RUNNING": _R,
        "ROLLED_BACK": _S,
        "SUCCEEDED": _S,
        "COMPLETED": _S,
        "FAILED": _F,
        "CANCELLED": _C,
    },
}

# Terminal statuses that succeeded but carry partial errors worth flagging.
WARNING_STATUSES: FrozenSet[str] = frozenset(
    {"COMPLETED_WITH_ERRORS", "COMPLETED_WITH_EXPORT_ERRORS"}
)

_warned: Set[Tuple[OperationKind, str]] = set()
_warned_lock = threading.Lock()


def normalize_status(raw_status: Optional[str]) -> str:
    return (raw_status or "").strip().upper()


def lookup(kind: OperationKind, raw_status: Optional[str]) -> Optional[StatusClass]:
    """Return the classification, or ``None`` if the string is unknown."""
    return STATUS_TABLES[kind].get(normalize_status(raw_status))


def classify(kind: OperationKind, raw_status: Optional[str]) -> StatusClass:
    """Classify ``raw_status``; unknown strings count as still running."""
    state = lookup(kind, raw_status)
    if state is not None:
        return state
    key = (kind, normalize_status(raw_status))
    with _warned_lock:
        first_time = key not in _warned
        _warned.add(key)
    if first_time:
        logger.warning(
            "Unrecognized %s status %r, treating it as still running", kind.value, raw_status
        )
    return StatusClass.RUNNING


def has_warnings(raw_status: Optional[str]) -> bool:
    return normalize_status(raw_status) in WARNING_STATUSES
