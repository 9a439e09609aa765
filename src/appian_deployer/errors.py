"""Error taxonomy and process exit codes for appian-deployer."""

from __future__ import annotations

import re
from enum import IntEnum
from typing import Optional


class ExitCode(IntEnum):
    """Process exit codes consumed by pipeline tooling."""

    SUCCESS = 0
    ERROR = 1
    VALIDATION = 2
    GATEWAY_UNAVAILABLE = 3
    AUTHENTICATION = 4
    FAILED = 5
    TIMED_OUT = 6
    CANCELLED = 7
    ROLLBACK_FAILED = 8


class DeployerError(RuntimeError):
    """Base class for every error surfaced to a command handler."""

    exit_code: ExitCode = ExitCode.ERROR


class ValidationError(DeployerError):
    """Malformed or missing input detected before any network call."""

    exit_code = ExitCode.VALIDATION


class ConfigurationError(ValidationError):
    """Raised when the resolved configuration is unusable."""


class DestinationExistsError(ValidationError):
    """Raised when a download target exists and overwriting was not requested."""

    def __init__(self, path) -> None:
        self.path = path
        super().__init__(f"File already exists: {path}. Use --overwrite to replace.")


class GatewayError(DeployerError):
    """Raised by the gateway when a request to the deployment API fails."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        if status_code is not None:
            message = f"{message} (HTTP {status_code})"
        super().__init__(message)


class TransientGatewayError(GatewayError):
    """Network timeout, connection failure, rate limiting or a 5xx answer."""

    exit_code = ExitCode.GATEWAY_UNAVAILABLE


class TerminalGatewayError(GatewayError):
    """Non-retryable answer: a 4xx other than rate limiting, or a malformed body."""


class AuthenticationError(TerminalGatewayError):
    exit_code = ExitCode.AUTHENTICATION


class NotFoundError(TerminalGatewayError):
    pass


class GatewayUnavailableError(GatewayError):
    """Raised when consecutive transient errors exceed the poll policy bound."""

    exit_code = ExitCode.GATEWAY_UNAVAILABLE

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        detail = f": {last_error}" if last_error else ""
        super().__init__(f"gateway unavailable after {attempts} consecutive errors{detail}")


class RemoteFailure(DeployerError):
    """The remote system itself reported the operation as failed."""

    exit_code = ExitCode.FAILED

    def __init__(self, raw_status: str, message: Optional[str] = None) -> None:
        self.raw_status = raw_status
        self.remote_message = message
        text = f"remote operation ended with status {raw_status}"
        if message:
            text += f": {message}"
        super().__init__(text)


_API_KEY_PATTERN = re.compile(
    r"""(?i)(api[_-]?key|apikey|token)["']?\s*[:=]\s*["']?[a-zA-Z0-9_-]{20,}["']?"""
)
_URL_CREDENTIALS_PATTERN = re.compile(r"(?i)(https?://)[a-zA-Z0-9_-]+:[^@\s]+@")


def redact_sensitive_info(text: str) -> str:
    """Mask API keys, tokens and URL credentials before text is logged."""
    text = _API_KEY_PATTERN.sub(r"\1=***REDACTED***", text)
    return _URL_CREDENTIALS_PATTERN.sub(r"\1***:***@", text)
