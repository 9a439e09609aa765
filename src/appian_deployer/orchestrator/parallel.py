"""Track several independent operations at once on worker threads."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence

from .models import OperationKind, PollPolicy, TrackResult
from .orchestrator import OperationOrchestrator, SnapshotCallback

if TYPE_CHECKING:
    from ..gateway.base import OperationGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackTarget:
    kind: OperationKind
    handle: str
    policy: Optional[PollPolicy] = None


class ParallelTracker:
    """
    Run one :meth:`OperationOrchestrator.track` per target in a thread pool.

    Every worker gets its own orchestrator; they share only the read-only
    gateway and the cancellation event, so cancelling stops all of them.
    """

    def __init__(
        self,
        gateway: "OperationGateway",
        *,
        max_workers: int = 4,
        cancel_event: Optional[threading.Event] = None,
        orchestrator_factory: Optional[Callable[..., OperationOrchestrator]] = None,
    ) -> None:
        self.gateway = gateway
        self.max_workers = max(1, max_workers)
        self.cancel_event = cancel_event or threading.Event()
        self._factory = orchestrator_factory or OperationOrchestrator

    def cancel(self) -> None:
        self.cancel_event.set()

    def track_all(
        self,
        targets: Sequence[TrackTarget],
        on_snapshot: Optional[SnapshotCallback] = None,
    ) -> List[TrackResult]:
        """Track every target; results are returned in input order."""
        if not targets:
            return []
        workers = min(self.max_workers, len(targets))
        logger.info("Tracking %d operation(s) with %d worker(s)", len(targets), workers)

        results: List[Optional[TrackResult]] = [None] * len(targets)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tracker") as executor:
            future_to_index: Dict[Future, int] = {}
            for index, target in enumerate(targets):
                orchestrator = self._factory(self.gateway, cancel_event=self.cancel_event)
                future = executor.submit(
                    orchestrator.track, target.kind, target.handle, target.policy, on_snapshot
                )
                future_to_index[future] = index
            for future in as_completed(future_to_index):
                index = future_to_index[future]
                try:
                    results[index] = future.result()
                except BaseException:
                    # 任一目标出错即取消其余目标
                    self.cancel_event.set()
                    raise
                logger.debug("Finished %s: %s", targets[index].handle, results[index].outcome.value)
        return [result for result in results if result is not None]
