"""download-package command."""

from __future__ import annotations

import argparse

from ..paths import get_download_dir
from .context import CLIContext
from .validation import format_bytes


def handle_download(context: CLIContext, args: argparse.Namespace) -> int:
    out = context.output
    destination = args.output or get_download_dir(context.config.download.dir)
    result = context.orchestrator().download_artifact(
        args.deployment_uuid, destination, overwrite=args.overwrite
    )
    out.emit(
        result.to_dict(),
        lambda: out.success(f"Package downloaded to {result.path} ({format_bytes(result.size_bytes)})"),
    )
    return 0
