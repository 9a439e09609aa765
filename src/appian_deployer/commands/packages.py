"""get-packages command."""

from __future__ import annotations

import argparse
import logging

from .context import CLIContext
from .validation import split_values

logger = logging.getLogger(__name__)


def handle_get_packages(context: CLIContext, args: argparse.Namespace) -> int:
    out = context.output
    app_uuids = split_values(args.app_uuid)
    logger.info("Fetching packages for applications: %s", app_uuids or "all")
    packages = context.gateway().list_packages(app_uuids)

    def render() -> None:
        if not packages:
            out.line("No packages found.", style="yellow")
            return
        out.table(
            f"Packages ({len(packages)})",
            ("Name", "Version", "ID", "Dependencies", "Created"),
            [(p.name, p.version, p.id, ", ".join(p.dependencies), p.created_at) for p in packages],
        )

    out.emit({"packages": [package.to_dict() for package in packages]}, render)
    return 0
