"""Command-line interface for appian-deployer."""

from __future__ import annotations

import argparse
import logging
import signal
import threading
from pathlib import Path
from typing import Optional

from .commands import HANDLERS, CLIContext, OutputWriter
from .commands.context import GatewayFactory
from .config import CliOverrides, load_config, redacted
from .errors import DeployerError, ExitCode
from .gateway import HttpGateway
from .utils.logging import configure_logging

logger = logging.getLogger(__name__)

OPERATION_KINDS = ("export", "deployment", "inspection", "rollback")


def _add_poll_options(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("polling")
    group.add_argument(
        "--interval-seconds", type=float, default=None,
        help="Seconds between status polls (default: 10)",
    )
    group.add_argument(
        "--timeout-seconds", type=float, default=None,
        help="Give up after this many seconds, 0 disables (default: 3600)",
    )
    group.add_argument(
        "--max-transient-errors", type=int, default=None,
        help="Consecutive transient errors tolerated while polling (default: 5)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="appian-deployer",
        description="Export, inspect and deploy Appian packages through the deployment REST API.",
    )
    parser.add_argument(
        "--config-file", type=str, default=None,
        help="Path to a JSON config file (default: ./appian-deployer.json if present).",
    )
    parser.add_argument("--base-url", default=None, help="Appian site URL")
    parser.add_argument("--api-key", default=None, help="Deployment API key")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    verbosity.add_argument("--quiet", "-q", action="store_true", help="Only log errors")
    parser.add_argument(
        "--format", choices=["text", "json"], default="text",
        help="Output format for command results",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # export
    export_parser = subparsers.add_parser("export", help="Export a package or application")
    export_parser.add_argument(
        "--uuids", action="append", default=[],
        help="Package or application UUID (repeatable or comma-separated)",
    )
    export_parser.add_argument(
        "--export-type", default="package", help="'package' or 'application' (default: package)"
    )
    export_parser.add_argument("--name", default=None)
    export_parser.add_argument("--description", default=None)
    export_parser.add_argument("--dry-run", action="store_true", help="Validate only")
    export_parser.add_argument("--wait", action="store_true", help="Track the export to completion")
    _add_poll_options(export_parser)

    # inspect
    inspect_parser = subparsers.add_parser("inspect", help="Inspect a package before deploying")
    inspect_parser.add_argument("--package-zip-name", type=Path, required=True)
    inspect_parser.add_argument("--customization-file", type=Path, default=None)
    inspect_parser.add_argument("--admin-console-settings-file", type=Path, default=None)
    inspect_parser.add_argument("--wait", action="store_true", help="Track the inspection to completion")
    _add_poll_options(inspect_parser)

    inspection_parser = subparsers.add_parser("get-inspection", help="Show inspection results")
    inspection_parser.add_argument("--uuid", required=True)

    # deploy
    deploy_parser = subparsers.add_parser("deploy", help="Deploy a package")
    deploy_parser.add_argument("--package-zip-name", type=Path, required=True)
    deploy_parser.add_argument("--name", required=True, help="Deployment name")
    deploy_parser.add_argument("--description", default=None)
    deploy_parser.add_argument("--dry-run", action="store_true", help="Validate only")
    deploy_parser.add_argument(
        "--rollback-on-failure", action=argparse.BooleanOptionalAction, default=True,
        help="Roll back automatically when the deployment fails (default: on)",
    )
    deploy_parser.add_argument(
        "--wait", action=argparse.BooleanOptionalAction, default=True,
        help="Track the deployment to completion (default: on)",
    )
    deploy_parser.add_argument("--customization-file", type=Path, default=None)
    deploy_parser.add_argument("--admin-console-settings-file", type=Path, default=None)
    deploy_parser.add_argument("--plugins-file", type=Path, default=None)
    deploy_parser.add_argument("--data-source", default=None)
    deploy_parser.add_argument(
        "--database-scripts", type=Path, nargs="+", default=None,
        help="Database scripts, executed in the given order",
    )
    _add_poll_options(deploy_parser)

    # status
    status_parser = subparsers.add_parser("status", help="Show the current status of an operation")
    status_parser.add_argument("--deployment-uuid", required=True)
    status_parser.add_argument("--kind", choices=OPERATION_KINDS, default="deployment")

    # results
    results_parser = subparsers.add_parser(
        "results", aliases=["get-deployment-results"], help="Show export or deployment results"
    )
    results_parser.add_argument("--deployment-uuid", required=True)
    results_parser.add_argument("--kind", choices=("export", "deployment"), default="deployment")
    results_parser.add_argument("--poll", action="store_true", help="Wait for a terminal status first")
    _add_poll_options(results_parser)

    # monitor
    monitor_parser = subparsers.add_parser("monitor", help="Track operations until they finish")
    monitor_parser.add_argument(
        "--deployment-uuid", action="append", required=True,
        help="Operation UUID (repeatable or comma-separated)",
    )
    monitor_parser.add_argument("--kind", choices=OPERATION_KINDS, default="deployment")
    _add_poll_options(monitor_parser)

    download_parser = subparsers.add_parser("download-package", help="Download an exported package")
    download_parser.add_argument("--deployment-uuid", required=True)
    download_parser.add_argument("--output", type=Path, default=None, help="Target file or directory")
    download_parser.add_argument("--overwrite", action="store_true")

    # logs 子命令 - 查看部署日志
    logs_parser = subparsers.add_parser("logs", help="Show deployment logs")
    logs_parser.add_argument("--deployment-uuid", required=True)
    logs_parser.add_argument("--tail", type=int, default=None, help="Only the last N entries")
    logs_parser.add_argument(
        "--follow", "-f", action="store_true", help="Keep printing new entries until the deployment ends"
    )

    packages_parser = subparsers.add_parser("get-packages", help="List packages")
    packages_parser.add_argument(
        "--app-uuid", action="append", default=[], help="Application UUID filter (repeatable)"
    )

    return parser


def _log_level(args: argparse.Namespace, configured: str) -> str:
    if args.verbose:
        return "debug"
    if args.quiet:
        return "error"
    return configured


def _build_context(
    args: argparse.Namespace,
    output: OutputWriter,
    gateway_factory: Optional[GatewayFactory],
) -> CLIContext:
    config = load_config(
        args.config_file,
        CliOverrides(base_url=args.base_url, api_key=args.api_key),
    )
    configure_logging(_log_level(args, config.logging.level), config.logging.json)
    logger.debug("Resolved configuration: %s", redacted(config))
    return CLIContext(
        config=config,
        output=output,
        gateway_factory=gateway_factory or HttpGateway,
    )


def dispatch_command(context: CLIContext, args: argparse.Namespace) -> int:
    handler = HANDLERS.get(args.command)
    if handler is None:
        raise ValueError(f"Unsupported command: {args.command}")
    return handler(context, args)


def run_cli(
    argv: Optional[list[str]] = None,
    *,
    gateway_factory: Optional[GatewayFactory] = None,
    output: Optional[OutputWriter] = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    output = output or OutputWriter(args.format)

    try:
        context = _build_context(args, output, gateway_factory)
    except DeployerError as exc:
        output.error(str(exc))
        return int(exc.exit_code)

    # Ctrl+C 触发协作式取消，轮询循环会在下一次检查时返回 CANCELLED
    previous_handler = None
    if threading.current_thread() is threading.main_thread():
        previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: context.cancel_event.set())
    try:
        return dispatch_command(context, args)
    except DeployerError as exc:
        output.error(str(exc))
        return int(exc.exit_code)
    except KeyboardInterrupt:
        context.cancel_event.set()
        output.error("Interrupted")
        return int(ExitCode.CANCELLED)
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)
        context.close()
