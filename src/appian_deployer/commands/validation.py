"""Local input checks that run before anything is sent to the API."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from ..errors import ValidationError

LARGE_PACKAGE_BYTES = 100 * 1024 * 1024  # 100MB


@dataclass
class Violation:
    severity: str  # "error" | "warning"
    message: str
    code: str


@dataclass
class PackageValidation:
    total_size: int
    violations: List[Violation] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not any(v.severity == "error" for v in self.violations)

    @property
    def warnings(self) -> List[Violation]:
        return [v for v in self.violations if v.severity == "warning"]


def require_file(path: Optional[Path], label: str) -> Optional[Path]:
    if path is None:
        return None
    if not path.is_file():
        raise ValidationError(f"{label} not found: {path}")
    return path


def validate_package_file(path: Path) -> PackageValidation:
    """Basic checks on a package zip: size and extension."""
    try:
        size = path.stat().st_size
    except OSError as exc:
        raise ValidationError(f"Failed to read package file: {exc}") from exc

    result = PackageValidation(total_size=size)
    if size == 0:
        result.violations.append(Violation("error", "Package file is empty", "EMPTY_FILE"))
    if size > LARGE_PACKAGE_BYTES:
        result.violations.append(
            Violation("warning", "Package file is very large (>100MB)", "LARGE_FILE")
        )
    if path.suffix.lower() != ".zip":
        result.violations.append(
            Violation("warning", "Package file should have .zip extension", "WRONG_EXTENSION")
        )
    return result


def format_bytes(size: int) -> str:
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{value:.1f} {units[index]}"


def split_values(values: Optional[Iterable[str]]) -> List[str]:
    """Flatten repeatable, comma-separated option values."""
    result: List[str] = []
    for value in values or []:
        result.extend(part.strip() for part in value.split(",") if part.strip())
    return result


def validate_uuid(value: str) -> str:
    try:
        uuid.UUID(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid UUID provided: {value}") from exc
    return value
