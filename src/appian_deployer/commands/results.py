"""results command and rendering of export/import results."""

from __future__ import annotations

import argparse
import logging
from typing import Any, Dict

from ..errors import RemoteFailure
from ..gateway import ResultPayload
from ..orchestrator import OperationKind, TerminalOutcome
from .context import CLIContext
from .output import OutputWriter

logger = logging.getLogger(__name__)

RESULT_KINDS = {"export": OperationKind.EXPORT, "deployment": OperationKind.DEPLOYMENT}


def _counts(section: Dict[str, Any], *keys: str) -> str:
    return ", ".join(f"{key}={section.get(key, 0)}" for key in keys)


def render_result(out: OutputWriter, payload: ResultPayload) -> None:
    summary = payload.raw.get("summary") or {}
    out.line("Deployment Results:", style="bold green")
    out.line(f"  Status: {payload.status}")
    if payload.log_url:
        out.line(f"  Deployment Log: {payload.log_url}")

    if payload.is_import:
        for title, key in (("Admin Console Settings", "adminConsoleSettings"), ("Objects", "objects")):
            out.line(f"  {title}: {_counts(summary.get(key) or {}, 'total', 'imported', 'failed', 'skipped')}")
        out.line(f"  Plugins: {_counts(summary.get('plugins') or {}, 'total', 'imported', 'skipped')}")
        out.line(f"  Database Scripts: {summary.get('databaseScripts', 0)}")
    else:
        if payload.artifact_ref:
            out.line(f"  Package Zip: {payload.artifact_ref}")
        for label, key in (
            ("Plugins Zip", "pluginsZip"),
            ("Customization File", "customizationFile"),
            ("Customization File Template", "customizationFileTemplate"),
            ("Data Source", "dataSource"),
        ):
            if payload.raw.get(key):
                out.line(f"  {label}: {payload.raw[key]}")
        scripts = payload.raw.get("databaseScripts") or []
        if scripts:
            out.line("  Database Scripts:")
            for script in scripts:
                out.line(
                    f"    • {script.get('fileName')} (order {script.get('orderId')}): {script.get('url', '')}"
                )

    for message in payload.messages:
        out.warning(message)


def handle_results(context: CLIContext, args: argparse.Namespace) -> int:
    out = context.output
    kind = RESULT_KINDS[args.kind]
    orchestrator = context.orchestrator()
    logger.info("Getting %s results for: %s", kind.value, args.deployment_uuid)

    data: Dict[str, Any] = {}
    exit_code = 0
    if args.poll:
        out.info("Polling until terminal status...")
        tracked = orchestrator.track(
            kind,
            args.deployment_uuid,
            context.poll_policy(args),
            on_snapshot=None if out.is_json else out.progress,
        )
        data["track"] = tracked.to_dict()
        exit_code = int(tracked.exit_code)
        # 只有远端明确结束（成功或失败）才有结果可取
        reached_terminal = tracked.outcome is TerminalOutcome.SUCCEEDED or isinstance(
            tracked.error, RemoteFailure
        )
        if not reached_terminal:
            out.emit(
                data,
                lambda: out.outcome(
                    f"Operation {args.deployment_uuid}",
                    tracked.outcome,
                    str(tracked.error) if tracked.error else None,
                ),
            )
            return exit_code

    payload = orchestrator.fetch_result(args.deployment_uuid, kind)
    data["result"] = payload.to_dict()
    out.emit(data, lambda: render_result(out, payload))
    return exit_code
