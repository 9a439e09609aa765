"""Command handlers. Each takes ``(context, args)`` and returns an exit code."""

from typing import Callable, Dict

from .context import CLIContext
from .deploy import handle_deploy
from .download import handle_download
from .export import handle_export
from .inspection import handle_get_inspection, handle_inspect
from .logs import handle_logs
from .monitor import handle_monitor
from .output import OutputWriter
from .packages import handle_get_packages
from .results import handle_results
from .status import handle_status

Handler = Callable[..., int]

HANDLERS: Dict[str, Handler] = {
    "export": handle_export,
    "inspect": handle_inspect,
    "get-inspection": handle_get_inspection,
    "deploy": handle_deploy,
    "status": handle_status,
    "results": handle_results,
    "get-deployment-results": handle_results,
    "monitor": handle_monitor,
    "download-package": handle_download,
    "logs": handle_logs,
    "get-packages": handle_get_packages,
}

__all__ = ["CLIContext", "OutputWriter", "HANDLERS"]
