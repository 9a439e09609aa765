"""monitor command: track one or more handles to a terminal outcome."""

from __future__ import annotations

import argparse
import logging
from typing import List

from ..orchestrator import OperationKind, ParallelTracker, TrackResult, TrackTarget
from .context import CLIContext
from .validation import split_values

logger = logging.getLogger(__name__)


def handle_monitor(context: CLIContext, args: argparse.Namespace) -> int:
    out = context.output
    kind = OperationKind(args.kind)
    handles = split_values(args.deployment_uuid)
    policy = context.poll_policy(args)
    on_snapshot = None if out.is_json else out.progress

    out.info(f"Monitoring {len(handles)} {kind.value} operation(s), Ctrl+C to stop")
    if len(handles) == 1:
        results: List[TrackResult] = [
            context.orchestrator().track(kind, handles[0], policy, on_snapshot)
        ]
    else:
        tracker = ParallelTracker(
            context.gateway(),
            max_workers=context.config.monitor.max_parallel,
            cancel_event=context.cancel_event,
        )
        results = tracker.track_all(
            [TrackTarget(kind=kind, handle=handle, policy=policy) for handle in handles],
            on_snapshot=on_snapshot,
        )

    def render() -> None:
        for result in results:
            detail = f"{result.polls} poll(s), {result.elapsed_seconds:.0f}s"
            if result.error:
                detail += f", {result.error}"
            out.outcome(result.handle, result.outcome, detail)

    out.emit({"results": [result.to_dict() for result in results]}, render)
    # 多个结果时取最严重的退出码
    return max(int(result.exit_code) for result in results)
