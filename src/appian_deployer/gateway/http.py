"""Deployment API gateway built on ``requests``."""

from __future__ import annotations

import json
import logging
from contextlib import ExitStack
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Sequence

import requests

from ..errors import (
    AuthenticationError,
    NotFoundError,
    TerminalGatewayError,
    TransientGatewayError,
    ValidationError,
    redact_sensitive_info,
)
from ..orchestrator.models import (
    OperationKind,
    StatusSnapshot,
    SubmissionPayload,
    SubmissionReceipt,
)
from .base import OperationGateway
from .models import LogsPage, Package, ResultPayload

if TYPE_CHECKING:
    from ..config import ApiConfig

logger = logging.getLogger(__name__)

SUITE_PREFIX = "/suite/deployment-management/v2"
DEPLOYMENT_PREFIX = "/deployment/v2"

DOWNLOAD_CHUNK_SIZE = 64 * 1024
_ERROR_BODY_LIMIT = 500


class HttpGateway(OperationGateway):
    """Talks to the deployment REST API v2 over HTTPS."""

    def __init__(self, config: "ApiConfig", *, session: Optional[requests.Session] = None) -> None:
        config.validate()
        self.config = config
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {config.api_key}",
                "appian-api-key": config.api_key,
                "Accept": "application/json",
            }
        )
        if config.proxy:
            self.session.proxies = {"http": config.proxy, "https": config.proxy}
            logger.info("Deployment API requests use proxy: %s", redact_sensitive_info(config.proxy))

    # ------------------------------------------------------------------ submit

    def submit(self, kind: OperationKind, payload: SubmissionPayload) -> SubmissionReceipt:
        if kind is OperationKind.ROLLBACK:
            return self._submit_rollback(payload)

        if kind is OperationKind.INSPECTION:
            path = f"{SUITE_PREFIX}/inspections"
            headers: Dict[str, str] = {}
        else:
            path = f"{SUITE_PREFIX}/deployments"
            headers = {"Action-Type": "export" if kind is OperationKind.EXPORT else "import"}

        logger.info("Submitting %s operation (%d file part(s))", kind.value, len(payload.files))
        with ExitStack() as stack:
            parts: List[Any] = [
                ("json", (None, json.dumps(payload.document), "application/json")),
            ]
            for field_name, file_path in payload.files.items():
                try:
                    handle = stack.enter_context(open(file_path, "rb"))
                except OSError as exc:
                    raise ValidationError(f"Cannot read {file_path}: {exc}") from exc
                parts.append((field_name, (file_path.name, handle)))
            response = self._request("POST", path, headers=headers, files=parts)
        return self._receipt(kind, self._json(response))

    def _submit_rollback(self, payload: SubmissionPayload) -> SubmissionReceipt:
        deployment_handle = payload.document.get("deploymentUuid")
        if not deployment_handle:
            raise ValidationError("Rollback submission requires a deploymentUuid")
        logger.info("Submitting rollback for deployment %s", deployment_handle)
        response = self._request(
            "POST",
            f"{DEPLOYMENT_PREFIX}/deployments/{deployment_handle}/rollback",
            json=payload.document,
        )
        return self._receipt(OperationKind.ROLLBACK, self._json(response))

    # ------------------------------------------------------------------ status

    def fetch_status(self, handle: str, kind: OperationKind) -> StatusSnapshot:
        response = self._request("GET", self._status_path(handle, kind))
        data = self._json(response)
        raw_status = data.get("status")
        if not isinstance(raw_status, str) or not raw_status:
            raise TerminalGatewayError(f"Malformed status response for {handle}: missing status")
        message = data.get("currentStep") or data.get("message")
        return StatusSnapshot(
            handle=handle,
            kind=kind,
            raw_status=raw_status,
            message=str(message) if message else None,
            details=data,
        )

    def fetch_result(self, handle: str, kind: OperationKind) -> ResultPayload:
        if kind is OperationKind.INSPECTION:
            path = f"{SUITE_PREFIX}/inspections/{handle}"
        else:
            path = f"{SUITE_PREFIX}/deployments/{handle}"
        return ResultPayload.from_dict(self._json(self._request("GET", path)))

    def download_artifact(self, handle: str) -> Iterator[bytes]:
        response = self._request("GET", f"{DEPLOYMENT_PREFIX}/artifacts/{handle}", stream=True)
        try:
            for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                if chunk:
                    yield chunk
        except requests.exceptions.RequestException as exc:
            raise TransientGatewayError(f"Artifact download interrupted: {exc}") from exc
        finally:
            response.close()

    def fetch_logs(self, handle: str, tail: Optional[int] = None) -> LogsPage:
        params = {"tail": str(tail)} if tail is not None else None
        response = self._request("GET", f"{DEPLOYMENT_PREFIX}/deployments/{handle}/log", params=params)
        return LogsPage.from_dict(self._json(response))

    def list_packages(self, app_uuids: Sequence[str] = ()) -> List[Package]:
        params = {"app_uuids": ",".join(app_uuids)} if app_uuids else None
        data = self._json(self._request("GET", f"{DEPLOYMENT_PREFIX}/packages", params=params))
        return [Package.from_dict(item) for item in data.get("packages") or []]

    def close(self) -> None:
        self.session.close()

    # ----------------------------------------------------------------- helpers

    @staticmethod
    def _status_path(handle: str, kind: OperationKind) -> str:
        if kind is OperationKind.INSPECTION:
            return f"{SUITE_PREFIX}/inspections/{handle}"
        if kind is OperationKind.ROLLBACK:
            return f"{DEPLOYMENT_PREFIX}/deployments/{handle}"
        return f"{SUITE_PREFIX}/deployments/{handle}"

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = self.config.api_url(path)
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(
                method, url, timeout=self.config.timeout_seconds, **kwargs
            )
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as exc:
            raise TransientGatewayError(f"{method} {path} failed: {exc}") from exc
        except requests.exceptions.RequestException as exc:
            raise TerminalGatewayError(f"{method} {path} failed: {exc}") from exc

        logger.debug("Response status: %s from %s", response.status_code, url)
        if not 200 <= response.status_code < 300:
            self._raise_for_status(response, method, path)
        return response

    @staticmethod
    def _raise_for_status(response: requests.Response, method: str, path: str) -> None:
        status = response.status_code
        try:
            body = redact_sensitive_info(response.text[:_ERROR_BODY_LIMIT])
        finally:
            response.close()
        logger.error("API error %s on %s %s: %s", status, method, path, body)

        if status in (401, 403):
            raise AuthenticationError("Authentication failed", status_code=status, body=body)
        if status == 404:
            raise NotFoundError(f"Resource not found: {path}", status_code=status, body=body)
        if status in (408, 429) or status >= 500:
            raise TransientGatewayError(f"{method} {path} failed", status_code=status, body=body)
        raise TerminalGatewayError(f"{method} {path} rejected: {body}", status_code=status, body=body)

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise TerminalGatewayError(f"Malformed response: {exc}") from exc
        if not isinstance(data, dict):
            raise TerminalGatewayError("Malformed response: expected a JSON object")
        return data

    @staticmethod
    def _receipt(kind: OperationKind, data: Dict[str, Any]) -> SubmissionReceipt:
        handle = data.get("uuid") or data.get("deploymentId")
        if not handle:
            raise TerminalGatewayError(f"Malformed {kind.value} submission response: missing uuid")
        status = data.get("status")
        return SubmissionReceipt(
            handle=str(handle),
            kind=kind,
            url=data.get("url"),
            status=str(status) if status is not None else None,
        )
