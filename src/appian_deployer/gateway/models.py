"""Wire models for the deployment REST API v2."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..orchestrator.models import SubmissionPayload


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


@dataclass
class ExportRequest:
    uuids: List[str]
    export_type: str = "package"
    name: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "uuids": list(self.uuids),
                "exportType": self.export_type,
                "name": self.name,
                "description": self.description,
            }
        )

    def to_payload(self) -> SubmissionPayload:
        return SubmissionPayload(document=self.to_dict())


@dataclass
class DatabaseScript:
    file_name: str
    order_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"fileName": self.file_name, "orderId": self.order_id}


@dataclass
class DeploymentRequest:
    """Import deployment request. File attributes hold local paths."""

    name: str
    package_file: Path
    description: Optional[str] = None
    customization_file: Optional[Path] = None
    admin_console_file: Optional[Path] = None
    plugins_file: Optional[Path] = None
    data_source: Optional[str] = None
    database_scripts: List[Path] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        scripts = [
            DatabaseScript(file_name=path.name, order_id=str(index)).to_dict()
            for index, path in enumerate(self.database_scripts, 1)
        ]
        return _compact(
            {
                "name": self.name,
                "description": self.description,
                "adminConsoleSettingsFileName": _name(self.admin_console_file),
                "packageFileName": self.package_file.name,
                "customizationFileName": _name(self.customization_file),
                "pluginsFileName": _name(self.plugins_file),
                "dataSource": self.data_source,
                "databaseScripts": scripts or None,
            }
        )

    def to_payload(self) -> SubmissionPayload:
        files: Dict[str, Path] = {"packageFileName": self.package_file}
        if self.customization_file:
            files["customizationFileName"] = self.customization_file
        if self.admin_console_file:
            files["adminConsoleSettingsFileName"] = self.admin_console_file
        if self.plugins_file:
            files["pluginsFileName"] = self.plugins_file
        for index, path in enumerate(self.database_scripts, 1):
            files[f"databaseScript{index}"] = path
        return SubmissionPayload(document=self.to_dict(), files=files)


@dataclass
class InspectionRequest:
    package_file: Path
    customization_file: Optional[Path] = None
    admin_console_file: Optional[Path] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "adminConsoleSettingsFileName": _name(self.admin_console_file),
                "packageFileName": self.package_file.name,
                "customizationFileName": _name(self.customization_file),
            }
        )

    def to_payload(self) -> SubmissionPayload:
        # inspection 接口的文件字段名与 deployment 不同
        files: Dict[str, Path] = {"zipFile": self.package_file}
        if self.customization_file:
            files["ICF"] = self.customization_file
        if self.admin_console_file:
            files["adminConsole"] = self.admin_console_file
        return SubmissionPayload(document=self.to_dict(), files=files)


@dataclass
class ResultPayload:
    """Structured result of a finished export, deployment or inspection."""

    status: str
    artifact_ref: Optional[str] = None
    log_url: Optional[str] = None
    messages: List[str] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResultPayload":
        summary = data.get("summary") or {}
        messages: List[str] = []
        problems = summary.get("problems") or {}
        for entry in problems.get("errors") or []:
            messages.append(f"error: {entry.get('objectName', '?')}: {entry.get('errorMessage', '')}")
        for entry in problems.get("warnings") or []:
            messages.append(
                f"warning: {entry.get('objectName', '?')}: {entry.get('warningMessage', '')}"
            )
        return cls(
            status=str(data.get("status", "")),
            artifact_ref=data.get("packageZip"),
            log_url=data.get("deploymentLogUrl") or summary.get("deploymentLogUrl"),
            messages=messages,
            raw=data,
        )

    @property
    def is_import(self) -> bool:
        return "summary" in self.raw and "objects" in (self.raw.get("summary") or {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "artifact_ref": self.artifact_ref,
            "log_url": self.log_url,
            "messages": list(self.messages),
            "raw": self.raw,
        }


@dataclass
class LogEntry:
    timestamp: str
    level: str
    message: str
    component: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogEntry":
        return cls(
            timestamp=str(data.get("timestamp", "")),
            level=str(data.get("level", "Info")),
            message=str(data.get("message", "")),
            component=str(data.get("component", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "level": self.level,
            "component": self.component,
            "message": self.message,
        }


@dataclass
class LogsPage:
    logs: List[LogEntry] = field(default_factory=list)
    total: int = 0
    has_more: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogsPage":
        logs = [LogEntry.from_dict(item) for item in data.get("logs") or []]
        return cls(logs=logs, total=int(data.get("total", len(logs))), has_more=bool(data.get("hasMore")))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "logs": [entry.to_dict() for entry in self.logs],
            "total": self.total,
            "hasMore": self.has_more,
        }


@dataclass
class Package:
    id: str
    name: str
    version: str = ""
    dependencies: List[str] = field(default_factory=list)
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Package":
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            version=str(data.get("version", "")),
            dependencies=list(data.get("dependencies") or []),
            created_at=str(data.get("createdAt", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "dependencies": list(self.dependencies),
            "createdAt": self.created_at,
        }


def _name(path: Optional[Path]) -> Optional[str]:
    return path.name if path else None
