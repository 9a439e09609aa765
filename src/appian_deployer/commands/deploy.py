"""deploy command: submit, track and roll back on failure."""

from __future__ import annotations

import argparse
import logging
from typing import Any, Dict

from ..errors import ExitCode
from ..gateway import DeploymentRequest
from ..orchestrator import OperationKind, RollbackController, TerminalOutcome
from .context import CLIContext
from .validation import require_file

logger = logging.getLogger(__name__)


def build_deployment_request(args: argparse.Namespace) -> DeploymentRequest:
    package = require_file(args.package_zip_name, "Package file")
    scripts = [require_file(path, "Database script") for path in args.database_scripts or []]
    return DeploymentRequest(
        name=args.name,
        package_file=package,
        description=args.description,
        customization_file=require_file(args.customization_file, "Customization file"),
        admin_console_file=require_file(args.admin_console_settings_file, "Admin Console settings file"),
        plugins_file=require_file(args.plugins_file, "Plugins file"),
        data_source=args.data_source,
        database_scripts=scripts,
    )


def handle_deploy(context: CLIContext, args: argparse.Namespace) -> int:
    out = context.output
    request = build_deployment_request(args)

    if args.dry_run:
        logger.info("Dry run mode - validating deployment parameters")

        def render() -> None:
            out.success("Dry run validation successful")
            out.line(f"Package: {request.package_file}")
            out.line(f"Deployment name: {request.name}")
            out.line(f"Rollback on failure: {args.rollback_on_failure}")
            for index, script in enumerate(request.database_scripts, 1):
                out.line(f"  {index}. {script}")

        out.emit(
            {
                "dry_run": True,
                "request": request.to_dict(),
                "rollback_on_failure": args.rollback_on_failure,
            },
            render,
        )
        return 0

    orchestrator = context.orchestrator()
    logger.info("Starting deployment: %s with package %s", request.name, request.package_file)
    receipt = orchestrator.submit(OperationKind.DEPLOYMENT, request.to_payload())
    data: Dict[str, Any] = {"receipt": receipt.to_dict()}
    if not args.wait:
        def render_receipt() -> None:
            out.success("Deployment initiated successfully")
            out.line(f"  Deployment UUID: {receipt.handle}")
            out.line(f"  Status: {receipt.status or 'unknown'}")
            out.line("Use 'status' or 'monitor' commands to track progress", style="dim")

        out.emit(data, render_receipt)
        return 0

    policy = context.poll_policy(args)
    result = orchestrator.track(
        OperationKind.DEPLOYMENT,
        receipt.handle,
        policy,
        on_snapshot=None if out.is_json else out.progress,
    )
    data["track"] = result.to_dict()

    rollback = RollbackController(orchestrator, policy).maybe_rollback(
        receipt.handle, result.outcome, args.rollback_on_failure
    )
    data["rollback"] = rollback.to_dict()

    def render_tracked() -> None:
        out.outcome(f"Deployment {receipt.handle}", result.outcome, str(result.error) if result.error else None)
        if rollback.skipped:
            if result.outcome is TerminalOutcome.FAILED:
                out.warning("Rollback skipped (disabled)")
            return
        out.outcome(
            f"Rollback {rollback.handle or '(not submitted)'}",
            rollback.outcome or TerminalOutcome.FAILED,
            str(rollback.error) if rollback.error else None,
        )

    out.emit(data, render_tracked)
    if not rollback.skipped and not rollback.succeeded:
        return int(ExitCode.ROLLBACK_FAILED)
    return int(result.exit_code)
