"""inspect and get-inspection commands."""

from __future__ import annotations

import argparse
import logging

from ..errors import ValidationError
from ..gateway import InspectionRequest, ResultPayload
from ..orchestrator import OperationKind
from .context import CLIContext
from .output import OutputWriter
from .validation import format_bytes, require_file, validate_package_file

logger = logging.getLogger(__name__)


def render_inspection(out: OutputWriter, payload: ResultPayload) -> None:
    summary = payload.raw.get("summary") or {}
    out.line("Inspection Results:", style="bold green")
    out.line(f"  Status: {payload.status}")

    for title, key in (
        ("Admin Console Settings", "adminConsoleSettingsExpected"),
        ("Package Objects", "objectsExpected"),
    ):
        section = summary.get(key) or {}
        out.line(f"  {title}:", style="bold")
        for field_name in ("total", "imported", "failed", "skipped"):
            out.line(f"    {field_name.capitalize()}: {section.get(field_name, 0)}")

    problems = summary.get("problems") or {}
    out.line("  Problems:", style="bold")
    out.line(f"    Total Errors: {problems.get('totalErrors', 0)}")
    out.line(f"    Total Warnings: {problems.get('totalWarnings', 0)}")

    for title, entries, key in (
        ("Errors", problems.get("errors") or [], "errorMessage"),
        ("Warnings", problems.get("warnings") or [], "warningMessage"),
    ):
        if not entries:
            continue
        rows = [(e.get("objectName"), e.get("objectUuid"), e.get(key)) for e in entries]
        out.table(title, ("Object", "UUID", "Message"), rows)


def handle_inspect(context: CLIContext, args: argparse.Namespace) -> int:
    out = context.output
    package = require_file(args.package_zip_name, "Package file")
    customization = require_file(args.customization_file, "Customization file")
    admin_console = require_file(args.admin_console_settings_file, "Admin Console settings file")

    validation = validate_package_file(package)
    if not validation.is_valid:
        messages = "; ".join(v.message for v in validation.violations if v.severity == "error")
        raise ValidationError(f"Package file is invalid: {messages}")
    out.info(f"Inspecting package: {package} ({format_bytes(validation.total_size)})")
    for warning in validation.warnings:
        out.warning(f"{warning.message} ({warning.code})")

    request = InspectionRequest(
        package_file=package,
        customization_file=customization,
        admin_console_file=admin_console,
    )
    orchestrator = context.orchestrator()
    receipt = orchestrator.submit(OperationKind.INSPECTION, request.to_payload())
    data = {"receipt": receipt.to_dict()}
    if not args.wait:
        def render_receipt() -> None:
            out.success("Inspection initiated")
            out.line(f"  UUID: {receipt.handle}")
            if receipt.url:
                out.line(f"  URL: {receipt.url}")

        out.emit(data, render_receipt)
        return 0

    result = orchestrator.track(
        OperationKind.INSPECTION,
        receipt.handle,
        context.poll_policy(args),
        on_snapshot=None if out.is_json else out.progress,
    )
    data["track"] = result.to_dict()
    payload = None
    if result.succeeded:
        payload = orchestrator.fetch_result(receipt.handle, OperationKind.INSPECTION)
        data["result"] = payload.to_dict()

    def render_tracked() -> None:
        out.outcome(f"Inspection {receipt.handle}", result.outcome, str(result.error) if result.error else None)
        if payload is not None:
            render_inspection(out, payload)

    out.emit(data, render_tracked)
    return int(result.exit_code)


def handle_get_inspection(context: CLIContext, args: argparse.Namespace) -> int:
    logger.info("Getting inspection results for: %s", args.uuid)
    payload = context.orchestrator().fetch_result(args.uuid, OperationKind.INSPECTION)
    context.output.emit({"result": payload.to_dict()}, lambda: render_inspection(context.output, payload))
    return 0
