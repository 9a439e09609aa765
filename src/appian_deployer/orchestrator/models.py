"""Data models for the operation lifecycle orchestrator."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from ..errors import DeployerError, ExitCode, ValidationError

DEFAULT_INTERVAL_SECONDS = 10
DEFAULT_TIMEOUT_SECONDS = 3600
DEFAULT_MAX_TRANSIENT_ERRORS = 5

_DISTINCT_FAILURE_CODES = frozenset(
    {ExitCode.VALIDATION, ExitCode.GATEWAY_UNAVAILABLE, ExitCode.AUTHENTICATION}
)


class OperationKind(str, Enum):
    """Kind of remote operation; selects endpoints and the status table."""

    EXPORT = "export"
    INSPECTION = "inspection"
    DEPLOYMENT = "deployment"
    ROLLBACK = "rollback"


class StatusClass(str, Enum):
    """Classification of a raw remote status string."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (StatusClass.SUCCEEDED, StatusClass.FAILED, StatusClass.CANCELLED)


class TerminalOutcome(str, Enum):
    """Final verdict of a tracked operation."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @classmethod
    def from_status(cls, status: StatusClass) -> "TerminalOutcome":
        mapping = {
            StatusClass.SUCCEEDED: cls.SUCCEEDED,
            StatusClass.FAILED: cls.FAILED,
            StatusClass.CANCELLED: cls.CANCELLED,
        }
        if status not in mapping:
            raise ValueError(f"{status.value} is not a terminal status")
        return mapping[status]


class CancelResult(str, Enum):
    OK = "ok"
    UNSUPPORTED = "unsupported"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StatusSnapshot:
    """A point-in-time read of remote state. Never mutated once created."""

    handle: str
    kind: OperationKind
    raw_status: str
    timestamp: datetime = field(default_factory=utcnow)
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "handle": self.handle,
            "kind": self.kind.value,
            "raw_status": self.raw_status,
            "timestamp": self.timestamp.isoformat(),
            "message": self.message,
        }


@dataclass(frozen=True)
class PollPolicy:
    """How an operation is polled.

    ``None`` means "unset": :meth:`resolve` fills in the defaults
    (10 second interval, one hour timeout). A timeout of 0 disables it.
    """

    interval_seconds: Optional[float] = None
    timeout_seconds: Optional[float] = None
    max_consecutive_transient_errors: int = DEFAULT_MAX_TRANSIENT_ERRORS

    def resolve(self) -> "PollPolicy":
        interval = DEFAULT_INTERVAL_SECONDS if self.interval_seconds is None else self.interval_seconds
        timeout = DEFAULT_TIMEOUT_SECONDS if self.timeout_seconds is None else self.timeout_seconds
        if interval < 1:
            raise ValidationError(f"interval_seconds must be >= 1 (got {interval})")
        if timeout < 0 or (timeout and timeout < interval):
            raise ValidationError(
                f"timeout_seconds must be 0 or >= interval_seconds (got {timeout} < {interval})"
            )
        if self.max_consecutive_transient_errors < 0:
            raise ValidationError("max_consecutive_transient_errors must be >= 0")
        return PollPolicy(
            interval_seconds=interval,
            timeout_seconds=timeout,
            max_consecutive_transient_errors=self.max_consecutive_transient_errors,
        )


@dataclass
class SubmissionPayload:
    """JSON document plus the file parts of a multipart submission."""

    document: Dict[str, Any] = field(default_factory=dict)
    # 表单字段名 -> 本地文件路径（保持插入顺序）
    files: Dict[str, Path] = field(default_factory=dict)


@dataclass(frozen=True)
class SubmissionReceipt:
    """What the remote system returns when an operation is accepted."""

    handle: str
    kind: OperationKind
    url: Optional[str] = None
    status: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


@dataclass(frozen=True)
class TrackResult:
    """Outcome of tracking one operation to a terminal state."""

    kind: OperationKind
    handle: str
    outcome: TerminalOutcome
    snapshot: Optional[StatusSnapshot] = None
    error: Optional[DeployerError] = None
    polls: int = 0
    elapsed_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.outcome is TerminalOutcome.SUCCEEDED

    @property
    def exit_code(self) -> ExitCode:
        if self.outcome is TerminalOutcome.SUCCEEDED:
            return ExitCode.SUCCESS
        if self.outcome is TerminalOutcome.TIMED_OUT:
            return ExitCode.TIMED_OUT
        if self.outcome is TerminalOutcome.CANCELLED:
            return ExitCode.CANCELLED
        # 认证、网关不可用和本地校验保留各自的退出码，其余失败一律为 FAILED
        if self.error is not None and self.error.exit_code in _DISTINCT_FAILURE_CODES:
            return self.error.exit_code
        return ExitCode.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "handle": self.handle,
            "outcome": self.outcome.value,
            "snapshot": self.snapshot.to_dict() if self.snapshot else None,
            "error": str(self.error) if self.error else None,
            "polls": self.polls,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


@dataclass(frozen=True)
class DownloadResult:
    handle: str
    path: Path
    size_bytes: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deployment_uuid": self.handle,
            "output_path": str(self.path),
            "size_bytes": self.size_bytes,
            "success": True,
        }


@dataclass(frozen=True)
class RollbackRequest:
    """Compensating operation for a failed deployment."""

    deployment_handle: str
    reason: Optional[str] = None

    def to_payload(self) -> SubmissionPayload:
        document: Dict[str, Any] = {"deploymentUuid": self.deployment_handle}
        if self.reason:
            document["reason"] = self.reason
        return SubmissionPayload(document=document)


@dataclass(frozen=True)
class RollbackResult:
    """Result of :meth:`RollbackController.maybe_rollback`."""

    skipped: bool = False
    handle: Optional[str] = None
    outcome: Optional[TerminalOutcome] = None
    error: Optional[DeployerError] = None

    @classmethod
    def skip(cls) -> "RollbackResult":
        return cls(skipped=True)

    @property
    def succeeded(self) -> bool:
        return self.outcome is TerminalOutcome.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "skipped": self.skipped,
            "handle": self.handle,
            "outcome": self.outcome.value if self.outcome else None,
            "error": str(self.error) if self.error else None,
        }
