"""Abstract contract of the remote operation gateway."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator, List, Optional, Sequence

from ..orchestrator.models import (
    CancelResult,
    OperationKind,
    StatusSnapshot,
    SubmissionPayload,
    SubmissionReceipt,
)
from .models import LogsPage, Package, ResultPayload


class OperationGateway(ABC):
    """Boundary to the deployment service.

    Implementations translate transport problems into the error taxonomy in
    :mod:`appian_deployer.errors`: :class:`TransientGatewayError` for things
    worth retrying and :class:`TerminalGatewayError` for everything else.
    """

    @abstractmethod
    def submit(self, kind: OperationKind, payload: SubmissionPayload) -> SubmissionReceipt:
        """Start a remote operation and return its receipt."""

    @abstractmethod
    def fetch_status(self, handle: str, kind: OperationKind) -> StatusSnapshot:
        """Read the current remote status of ``handle``."""

    @abstractmethod
    def fetch_result(self, handle: str, kind: OperationKind) -> ResultPayload:
        """Retrieve the structured result of a finished operation."""

    @abstractmethod
    def download_artifact(self, handle: str) -> Iterator[bytes]:
        """Stream the bytes of the artifact produced by ``handle``."""

    def supports_cancel(self, kind: OperationKind) -> bool:
        return False

    def cancel(self, handle: str, kind: OperationKind) -> CancelResult:
        return CancelResult.UNSUPPORTED

    def fetch_logs(self, handle: str, tail: Optional[int] = None) -> LogsPage:
        raise NotImplementedError(f"{type(self).__name__} does not expose deployment logs")

    def list_packages(self, app_uuids: Sequence[str] = ()) -> List[Package]:
        raise NotImplementedError(f"{type(self).__name__} does not list packages")

    def close(self) -> None:
        pass
