"""Thin HTTP wrapper around the remote commit-analysis service."""
from __future__ import annotations

import logging
from typing import Mapping, Optional, Protocol

import httpx

from .types import AnalysisReply, AnalysisRequest

DEFAULT_API_PATH = "/api/analyze/"
LEGACY_API_PATH = "/analyze/"

logger = logging.getLogger(__name__)


class AnalysisServiceError(RuntimeError):
    """Base error raised when the analysis service cannot be used."""


class TransportError(AnalysisServiceError):
    """Raised when the request never produced a usable HTTP response."""


class ClientConfigurationError(AnalysisServiceError):
    """Raised when the client is constructed with unusable settings."""


class AnalysisTransport(Protocol):
    """Anything able to deliver an :class:`AnalysisRequest` and report the raw reply."""

    def send(self, request: AnalysisRequest) -> AnalysisReply:
        ...


class AnalysisClient:
    """Posts analysis requests to the service's analyze endpoint."""

    _DEFAULT_TIMEOUT = 300.0

    def __init__(
        self,
        base_url: str,
        api_path: str = DEFAULT_API_PATH,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        headers: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not base_url or not base_url.strip():
            raise ClientConfigurationError("Analysis service base URL is required")
        if not api_path:
            raise ClientConfigurationError("Analysis endpoint path is required")

        self.base_url = base_url.strip().rstrip("/")
        self.api_path = api_path if api_path.startswith("/") else f"/{api_path}"
        self.timeout = timeout

        request_headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if headers:
            request_headers.update(headers)

        try:
            self._client = httpx.Client(
                base_url=self.base_url,
                headers=request_headers,
                timeout=self.timeout,
                transport=transport,
            )
        except httpx.InvalidURL as exc:
            raise ClientConfigurationError(f"Invalid analysis service URL {base_url!r}: {exc}") from exc

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}{self.api_path}"

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "AnalysisClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def send(self, request: AnalysisRequest) -> AnalysisReply:
        """POST ``request`` and return the status code with the undecoded body."""

        payload = request.to_payload()
        logger.debug(
            "analysis-client",
            extra={"analysis": {"event": "request", "endpoint": self.endpoint, "payload": payload}},
        )
        try:
            response = self._client.post(self.api_path, json=payload)
        except httpx.TimeoutException as exc:
            raise TransportError(f"Analysis service timed out after {self.timeout:g}s") from exc
        except httpx.HTTPError as exc:  # connectivity, DNS, protocol errors
            raise TransportError(f"Could not reach analysis service at {self.endpoint}: {exc}") from exc

        logger.debug(
            "analysis-client",
            extra={"analysis": {"event": "response", "status_code": response.status_code}},
        )
        return AnalysisReply(status_code=response.status_code, text=response.text)
