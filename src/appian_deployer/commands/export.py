"""export command."""

from __future__ import annotations

import argparse
import logging
from typing import List

from ..errors import ValidationError
from ..gateway import ExportRequest
from ..orchestrator import OperationKind, classification
from .context import CLIContext
from .results import render_result
from .validation import split_values, validate_uuid

logger = logging.getLogger(__name__)

EXPORT_TYPES = ("package", "application")


def build_export_request(args: argparse.Namespace) -> ExportRequest:
    uuids: List[str] = split_values(args.uuids)
    if not uuids:
        raise ValidationError("At least one --uuids value must be provided")
    export_type = (args.export_type or "").lower()
    if export_type not in EXPORT_TYPES:
        raise ValidationError("--export-type must be 'package' or 'application'")
    if export_type == "package" and len(uuids) != 1:
        raise ValidationError("For export-type 'package', exactly one UUID is required")
    return ExportRequest(
        uuids=[validate_uuid(value) for value in uuids],
        export_type=export_type,
        name=args.name,
        description=args.description,
    )


def handle_export(context: CLIContext, args: argparse.Namespace) -> int:
    out = context.output
    request = build_export_request(args)

    if args.dry_run:
        logger.info("Dry run mode - validating export parameters")

        def render() -> None:
            out.success("Dry run validation successful")
            out.line(f"Export type: {request.export_type}")
            out.line(f"UUIDs: {', '.join(request.uuids)}")
            out.line(f"Name: {request.name or '-'}")
            out.line(f"Description: {request.description or '-'}")

        out.emit({"dry_run": True, "request": request.to_dict()}, render)
        return 0

    orchestrator = context.orchestrator()
    receipt = orchestrator.submit(OperationKind.EXPORT, request.to_payload())
    if not args.wait:
        def render_receipt() -> None:
            out.success("Export initiated successfully")
            out.line(f"  Export UUID: {receipt.handle}")
            out.line(f"  Status: {receipt.status or 'unknown'}")
            if receipt.url:
                out.line(f"  Details URL: {receipt.url}")

        out.emit({"receipt": receipt.to_dict()}, render_receipt)
        return 0

    result = orchestrator.track(
        OperationKind.EXPORT,
        receipt.handle,
        context.poll_policy(args),
        on_snapshot=None if out.is_json else out.progress,
    )
    data = {"receipt": receipt.to_dict(), "track": result.to_dict()}
    payload = None
    if result.succeeded:
        payload = orchestrator.fetch_result(receipt.handle, OperationKind.EXPORT)
        data["result"] = payload.to_dict()

    def render_tracked() -> None:
        out.outcome(f"Export {receipt.handle}", result.outcome, str(result.error) if result.error else None)
        if result.snapshot is not None and classification.has_warnings(result.snapshot.raw_status):
            out.warning(f"Export finished with status {result.snapshot.raw_status}")
        if payload is not None:
            render_result(out, payload)

    out.emit(data, render_tracked)
    return int(result.exit_code)
