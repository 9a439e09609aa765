"""Remote operation gateway package."""

from .base import OperationGateway
from .http import HttpGateway
from .models import (
    DatabaseScript,
    DeploymentRequest,
    ExportRequest,
    InspectionRequest,
    LogEntry,
    LogsPage,
    Package,
    ResultPayload,
)

__all__ = [
    "OperationGateway",
    "HttpGateway",
    "DatabaseScript",
    "DeploymentRequest",
    "ExportRequest",
    "InspectionRequest",
    "LogEntry",
    "LogsPage",
    "Package",
    "ResultPayload",
]
