"""Operation lifecycle orchestration.

- OperationOrchestrator: submits an operation and polls it to a terminal outcome
- classification: per-kind raw status tables
- RollbackController: compensating rollback for failed deployments
- ParallelTracker: tracks several handles concurrently
"""

from .models import (
    CancelResult,
    DownloadResult,
    OperationKind,
    PollPolicy,
    RollbackRequest,
    RollbackResult,
    StatusClass,
    StatusSnapshot,
    SubmissionPayload,
    SubmissionReceipt,
    TerminalOutcome,
    TrackResult,
)
from .classification import classify
from .orchestrator import OperationOrchestrator, resolve_download_path
from .rollback import RollbackController
from .parallel import ParallelTracker, TrackTarget

__all__ = [
    "CancelResult",
    "DownloadResult",
    "OperationKind",
    "PollPolicy",
    "RollbackRequest",
    "RollbackResult",
    "StatusClass",
    "StatusSnapshot",
    "SubmissionPayload",
    "SubmissionReceipt",
    "TerminalOutcome",
    "TrackResult",
    "classify",
    "OperationOrchestrator",
    "resolve_download_path",
    "RollbackController",
    "ParallelTracker",
    "TrackTarget",
]
