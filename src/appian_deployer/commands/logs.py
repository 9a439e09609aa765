"""logs command, with a follow mode driven by the orchestrator's poll loop."""

from __future__ import annotations

import argparse
import logging
from typing import List

from ..errors import RemoteFailure, TransientGatewayError
from ..gateway import LogEntry
from ..orchestrator import OperationKind, PollPolicy, StatusClass, StatusSnapshot
from .context import CLIContext
from .output import OutputWriter

logger = logging.getLogger(__name__)

LEVEL_STYLES = {"error": "red", "warn": "yellow", "warning": "yellow", "info": "green", "debug": "blue"}


def render_entry(out: OutputWriter, entry: LogEntry) -> None:
    style = LEVEL_STYLES.get(entry.level.lower())
    out.line(f"{entry.timestamp} [{entry.level.upper():5}] {entry.message}", style=style)


def handle_logs(context: CLIContext, args: argparse.Namespace) -> int:
    if args.follow:
        return _follow(context, args)

    out = context.output
    logger.info("Fetching logs for deployment: %s", args.deployment_uuid)
    page = context.gateway().fetch_logs(args.deployment_uuid, tail=args.tail)

    def render() -> None:
        out.line(f"Logs for deployment: {args.deployment_uuid}", style="bold green")
        out.line(f"Total entries: {page.total}")
        if not page.logs:
            out.line("No logs found.", style="yellow")
        for entry in page.logs:
            render_entry(out, entry)

    out.emit(page.to_dict(), render)
    return 0


def _follow(context: CLIContext, args: argparse.Namespace) -> int:
    out = context.output
    gateway = context.gateway()
    seen: List[LogEntry] = []

    def print_new(snapshot: StatusSnapshot, state: StatusClass) -> None:
        try:
            page = gateway.fetch_logs(snapshot.handle)
        except TransientGatewayError as exc:
            logger.warning("Fetching logs for %s failed, retrying next poll: %s", snapshot.handle, exc)
            return
        # 只输出新增的日志行
        for entry in page.logs[len(seen):]:
            if out.is_json:
                out.json_line(entry.to_dict())
            else:
                render_entry(out, entry)
        seen[:] = page.logs

    monitor = context.config.monitor
    policy = PollPolicy(
        interval_seconds=monitor.logs_follow_interval_seconds,
        timeout_seconds=monitor.timeout_seconds,
        max_consecutive_transient_errors=monitor.max_consecutive_transient_errors,
    )
    out.line("Following logs, press Ctrl+C to stop", style="dim")
    result = context.orchestrator().track(OperationKind.DEPLOYMENT, args.deployment_uuid, policy, print_new)

    if result.succeeded or isinstance(result.error, RemoteFailure):
        out.success("Deployment completed. Log streaming stopped.")
        return 0
    out.outcome(f"Log streaming for {args.deployment_uuid}", result.outcome, str(result.error) if result.error else None)
    return int(result.exit_code)
