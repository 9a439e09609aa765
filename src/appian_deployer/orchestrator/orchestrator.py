"""Operation lifecycle orchestrator: submit, poll, classify, stop."""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Tuple

from ..errors import (
    DeployerError,
    DestinationExistsError,
    GatewayError,
    GatewayUnavailableError,
    RemoteFailure,
    TransientGatewayError,
)
from ..paths import ARTIFACT_SUFFIX
from . import classification
from .models import (
    DownloadResult,
    OperationKind,
    PollPolicy,
    StatusClass,
    StatusSnapshot,
    SubmissionPayload,
    SubmissionReceipt,
    TerminalOutcome,
    TrackResult,
)

if TYPE_CHECKING:
    from ..gateway.base import OperationGateway
    from ..gateway.models import ResultPayload

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[StatusSnapshot, StatusClass], None]


def resolve_download_path(handle: str, destination: Optional[Path]) -> Path:
    """``None`` -> ``./<handle>.zip``; a directory -> ``<dir>/<handle>.zip``."""
    if destination is None:
        return Path(f"{handle}{ARTIFACT_SUFFIX}")
    destination = Path(destination)
    if destination.is_dir():
        return destination / f"{handle}{ARTIFACT_SUFFIX}"
    return destination


class OperationOrchestrator:
    """
    Drives a single long-running remote operation to a terminal outcome.

    All per-operation state (deadline, error counter, current snapshot) lives
    in locals of :meth:`track`, so one instance may be shared between threads
    that track different handles. The gateway, the clock and the sleep
    function are injected; the default sleep waits on the cancellation event
    so that :meth:`cancel` wakes a sleeping loop immediately.
    """

    def __init__(
        self,
        gateway: "OperationGateway",
        *,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], object]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.gateway = gateway
        self.cancel_event = cancel_event or threading.Event()
        self._clock = clock or time.monotonic
        self._sleep = sleep or self.cancel_event.wait

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        """Raise the cooperative cancellation signal."""
        self.cancel_event.set()

    def submit(self, kind: OperationKind, payload: SubmissionPayload) -> SubmissionReceipt:
        logger.info("🚀 Submitting %s operation", kind.value)
        receipt = self.gateway.submit(kind, payload)
        logger.info("   Accepted: %s (status: %s)", receipt.handle, receipt.status or "unknown")
        return receipt

    def track_submission(
        self,
        kind: OperationKind,
        payload: SubmissionPayload,
        policy: Optional[PollPolicy] = None,
        on_snapshot: Optional[SnapshotCallback] = None,
    ) -> TrackResult:
        """Submit and track; a rejected submission becomes a FAILED result."""
        try:
            receipt = self.submit(kind, payload)
        except DeployerError as exc:
            logger.error("❌ %s submission failed: %s", kind.value, exc)
            return TrackResult(kind=kind, handle="", outcome=TerminalOutcome.FAILED, error=exc)
        return self.track(kind, receipt.handle, policy, on_snapshot)

    def track(
        self,
        kind: OperationKind,
        handle: str,
        policy: Optional[PollPolicy] = None,
        on_snapshot: Optional[SnapshotCallback] = None,
    ) -> TrackResult:
        """
        Poll ``handle`` until it reaches a terminal outcome.

        Args:
            kind: Operation kind, selects the status table
            handle: Operation UUID
            policy: Poll policy; unset fields fall back to the defaults
            on_snapshot: Called with every successfully fetched snapshot

        Returns:
            TrackResult. Gateway and remote failures are reported through
            ``outcome``/``error`` and never raised.
        """
        if not handle:
            raise ValueError(f"Cannot track a {kind.value} operation without a handle")
        policy = (policy or PollPolicy()).resolve()

        started = self._clock()
        deadline = started + policy.timeout_seconds if policy.timeout_seconds else None
        snapshot: Optional[StatusSnapshot] = None
        polls = 0
        consecutive_errors = 0

        def finish(outcome: TerminalOutcome, error: Optional[DeployerError] = None) -> TrackResult:
            elapsed = self._clock() - started
            logger.info(
                "%s %s finished: %s after %d poll(s), %.0fs",
                kind.value, handle, outcome.value, polls, elapsed,
            )
            return TrackResult(
                kind=kind,
                handle=handle,
                outcome=outcome,
                snapshot=snapshot,
                error=error,
                polls=polls,
                elapsed_seconds=elapsed,
            )

        logger.info(
            "Tracking %s %s (interval %ss, timeout %ss)",
            kind.value, handle, policy.interval_seconds, policy.timeout_seconds or "none",
        )
        while True:
            if self.cancelled:
                self._request_cancel(handle, kind)
                return finish(TerminalOutcome.CANCELLED)

            try:
                fetched = self.gateway.fetch_status(handle, kind)
            except TransientGatewayError as exc:
                consecutive_errors += 1
                logger.warning(
                    "Transient error polling %s (%d/%d): %s",
                    handle, consecutive_errors, policy.max_consecutive_transient_errors, exc,
                )
                if consecutive_errors > policy.max_consecutive_transient_errors:
                    return finish(
                        TerminalOutcome.FAILED, GatewayUnavailableError(consecutive_errors, exc)
                    )
            except GatewayError as exc:
                logger.error("Polling %s failed: %s", handle, exc)
                return finish(TerminalOutcome.FAILED, exc)
            else:
                consecutive_errors = 0
                polls += 1
                state, snapshot = self._classify(fetched)
                logger.debug("%s %s: %s -> %s", kind.value, handle, snapshot.raw_status, state.value)
                if on_snapshot is not None:
                    on_snapshot(snapshot, state)
                if state.is_terminal:
                    outcome = TerminalOutcome.from_status(state)
                    error = None
                    if outcome is TerminalOutcome.FAILED:
                        error = RemoteFailure(snapshot.raw_status, snapshot.message)
                    return finish(outcome, error)

            if deadline is not None and self._clock() >= deadline:
                return finish(TerminalOutcome.TIMED_OUT)
            if self.cancelled:
                self._request_cancel(handle, kind)
                return finish(TerminalOutcome.CANCELLED)
            self._sleep(policy.interval_seconds)

    def status(self, handle: str, kind: OperationKind) -> Tuple[StatusClass, StatusSnapshot]:
        """Take a single classified snapshot without tracking."""
        if not handle:
            raise ValueError(f"Cannot read the status of a {kind.value} operation without a handle")
        return self._classify(self.gateway.fetch_status(handle, kind))

    def fetch_result(self, handle: str, kind: OperationKind) -> "ResultPayload":
        if not handle:
            raise ValueError("Cannot fetch results without a handle")
        logger.info("Fetching %s results for %s", kind.value, handle)
        return self.gateway.fetch_result(handle, kind)

    def download_artifact(
        self,
        handle: str,
        destination: Optional[Path] = None,
        overwrite: bool = False,
    ) -> DownloadResult:
        """Stream the artifact of ``handle`` to local storage.

        The overwrite guard runs before any request is issued. Bytes are
        written to ``<target>.part`` and moved into place once complete.
        """
        if not handle:
            raise ValueError("Cannot download an artifact without a handle")
        target = resolve_download_path(handle, destination)
        if target.exists() and not overwrite:
            raise DestinationExistsError(target)

        target.parent.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(target.name + ".part")
        size = 0
        logger.info("Downloading artifact %s to %s", handle, target)
        try:
            with partial.open("wb") as out_file:
                for chunk in self.gateway.download_artifact(handle):
                    out_file.write(chunk)
                    size += len(chunk)
            os.replace(partial, target)
        except BaseException:
            partial.unlink(missing_ok=True)
            raise
        logger.info("Artifact downloaded successfully: %d bytes", size)
        return DownloadResult(handle=handle, path=target, size_bytes=size)

    def _classify(self, snapshot: StatusSnapshot) -> Tuple[StatusClass, StatusSnapshot]:
        known = classification.lookup(snapshot.kind, snapshot.raw_status)
        if known is not None:
            return known, snapshot
        state = classification.classify(snapshot.kind, snapshot.raw_status)
        note = f"unrecognized status {snapshot.raw_status!r}"
        if snapshot.message:
            note = f"{note}; {snapshot.message}"
        return state, replace(snapshot, message=note)

    def _request_cancel(self, handle: str, kind: OperationKind) -> None:
        logger.warning("Cancellation requested for %s %s", kind.value, handle)
        if not self.gateway.supports_cancel(kind):
            logger.info("   Remote cancel is not supported for %s operations", kind.value)
            return
        try:
            result = self.gateway.cancel(handle, kind)
            logger.info("   Remote cancel: %s", result.value)
        except GatewayError as exc:
            logger.warning("   Remote cancel failed (ignored): %s", exc)
