"""Compensating rollback for failed deployments."""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from ..errors import DeployerError
from .models import (
    OperationKind,
    PollPolicy,
    RollbackRequest,
    RollbackResult,
    TerminalOutcome,
)
from .orchestrator import OperationOrchestrator

logger = logging.getLogger(__name__)


class RollbackController:
    """
    Submits and tracks a rollback when a deployment has failed.

    The command handler decides when to call :meth:`maybe_rollback`; the
    orchestrator itself never triggers a rollback. Each failed deployment
    gets at most one rollback: later calls for the same handle return the
    first result.
    """

    def __init__(
        self,
        orchestrator: OperationOrchestrator,
        policy: Optional[PollPolicy] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.policy = policy
        self._results: Dict[str, RollbackResult] = {}
        # 正在回滚的部署 -> 完成事件，不同部署的回滚互不阻塞
        self._pending: Dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def maybe_rollback(
        self,
        deployment_handle: str,
        outcome: TerminalOutcome,
        rollback_enabled: bool,
        policy: Optional[PollPolicy] = None,
    ) -> RollbackResult:
        if outcome is not TerminalOutcome.FAILED or not rollback_enabled:
            return RollbackResult.skip()
        if not deployment_handle:
            raise ValueError("Cannot roll back a deployment without a handle")

        with self._lock:
            previous = self._results.get(deployment_handle)
            if previous is not None:
                logger.info("Rollback for %s already requested (%s)", deployment_handle, previous.handle)
                return previous
            done = self._pending.get(deployment_handle)
            owner = done is None
            if owner:
                done = threading.Event()
                self._pending[deployment_handle] = done

        if not owner:
            logger.info("Rollback for %s already in progress, waiting", deployment_handle)
            done.wait()
            # 首个调用方可能在写入结果前就抛出了异常
            return self.maybe_rollback(deployment_handle, outcome, rollback_enabled, policy)

        result = None
        try:
            result = self._run(deployment_handle, policy or self.policy)
        finally:
            with self._lock:
                if result is not None:
                    self._results[deployment_handle] = result
                del self._pending[deployment_handle]
            done.set()
        return result

    def _run(self, deployment_handle: str, policy: Optional[PollPolicy]) -> RollbackResult:
        logger.warning("↩️  Deployment %s failed, requesting rollback", deployment_handle)
        request = RollbackRequest(deployment_handle=deployment_handle, reason="deployment failed")
        try:
            receipt = self.orchestrator.submit(OperationKind.ROLLBACK, request.to_payload())
        except DeployerError as exc:
            logger.error("❌ Rollback submission for %s failed: %s", deployment_handle, exc)
            return RollbackResult(outcome=TerminalOutcome.FAILED, error=exc)

        tracked = self.orchestrator.track(OperationKind.ROLLBACK, receipt.handle, policy)
        if tracked.succeeded:
            logger.info("✅ Rollback %s completed", receipt.handle)
        else:
            logger.error("❌ Rollback %s ended with %s", receipt.handle, tracked.outcome.value)
        return RollbackResult(handle=receipt.handle, outcome=tracked.outcome, error=tracked.error)
