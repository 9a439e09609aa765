"""status command: one snapshot, no tracking."""

from __future__ import annotations

import argparse
import logging

from ..orchestrator import OperationKind
from .context import CLIContext

logger = logging.getLogger(__name__)


def handle_status(context: CLIContext, args: argparse.Namespace) -> int:
    out = context.output
    kind = OperationKind(args.kind)
    logger.info("Getting status for %s: %s", kind.value, args.deployment_uuid)
    state, snapshot = context.orchestrator().status(args.deployment_uuid, kind)

    data = snapshot.to_dict()
    data["state"] = state.value
    data["terminal"] = state.is_terminal

    def render() -> None:
        out.line(f"{kind.value.capitalize()} Status:", style="bold green")
        out.line(f"  UUID: {snapshot.handle}")
        out.line(f"  Status: {snapshot.raw_status}")
        if snapshot.message:
            out.line(f"  Current Step: {snapshot.message}")
        for key in ("createdAt", "updatedAt"):
            if snapshot.details.get(key):
                out.line(f"  {key}: {snapshot.details[key]}")
        if state.is_terminal:
            out.success("Operation completed")
        else:
            out.line("Operation in progress...", style="yellow")

    out.emit(data, render)
    return 0
