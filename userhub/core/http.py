import asyncio
import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse

import httpx

from .config import Config
from .models import ErrorCode, Response


logger = logging.getLogger(__name__)

SUPPORTED_METHODS = frozenset({"GET", "POST", "PUT", "DELETE"})
DEFAULT_HEADERS = {"Accept": "application/json", "Content-Type": "application/json"}


def _check_request(url: str, method: str) -> str:
    """Reject contract misuse before any I/O happens."""
    normalized = method.upper() if isinstance(method, str) else ""
    if normalized not in SUPPORTED_METHODS:
        raise ValueError(f"Unsupported HTTP method: {method!r}. Allowed: {', '.join(sorted(SUPPORTED_METHODS))}")
    parsed = urlparse(url) if isinstance(url, str) else None
    if parsed is None or parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Malformed URL: {url!r}")
    return normalized


def _error_details(reply: httpx.Response) -> tuple[str, str]:
    code = ErrorCode.NETWORK_ERROR.value
    message = f"HTTP {reply.status_code} {reply.reason_phrase}".strip()
    try:
        payload = reply.json()
    except ValueError:
        return code, message
    if isinstance(payload, dict):
        code = payload.get("errorCode") or code
        detail = payload.get("message") or payload.get("detail")
        if detail:
            message = detail if isinstance(detail, str) else str(detail)
    return code, message


def _normalize(reply: httpx.Response, method: str, url: str) -> Response:
    if not reply.is_success:
        code, message = _error_details(reply)
        logger.warning(f"{method} {url} failed with {reply.status_code} ({code}): {message}")
        return Response.fail(code, message, status_code=reply.status_code)

    if not reply.content:
        return Response.ok(None, status_code=reply.status_code)
    try:
        payload = reply.json()
    except ValueError as e:
        logger.error(f"{method} {url} returned a malformed payload: {e}")
        return Response.fail(
            ErrorCode.NETWORK_ERROR,
            f"Malformed response payload from {method} {url}",
            status_code=reply.status_code,
        )
    return Response.ok(payload, status_code=reply.status_code)


class RequestDispatcher:
    """Issues one HTTP request per call and normalizes the outcome.

    Expected failures (timeout, non-2xx, refused connection, unreadable body)
    come back as a failed ``Response``. Only an unsupported method or a
    malformed URL raises, as ``ValueError``.

    An injected ``client`` is owned by the caller and reused across calls;
    without one, each dispatch opens and closes its own ``httpx.AsyncClient``.
    """

    def __init__(self, timeout_ms: Optional[int] = None, client: Optional[httpx.AsyncClient] = None):
        self.timeout_ms = timeout_ms if timeout_ms is not None else Config.REQUEST_TIMEOUT_MS
        self._client = client

    async def _send(self, method: str, url: str, headers: Dict[str, str], body: Any) -> httpx.Response:
        timeout_seconds = self.timeout_ms / 1000
        kwargs: Dict[str, Any] = {"headers": headers, "timeout": timeout_seconds}
        if body is not None:
            kwargs["json"] = body
        if self._client is not None:
            return await self._client.request(method, url, **kwargs)
        async with httpx.AsyncClient() as client:
            return await client.request(method, url, **kwargs)

    async def dispatch(
        self,
        url: str,
        method: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
    ) -> Response:
        method = _check_request(url, method)
        request_headers = dict(DEFAULT_HEADERS)
        if headers:
            request_headers.update(headers)

        try:
            # wait_for bounds connect, send and body read together
            reply = await asyncio.wait_for(
                self._send(method, url, request_headers, body),
                timeout=self.timeout_ms / 1000,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"{method} {url} timed out after {self.timeout_ms} ms")
            return Response.fail(ErrorCode.TIMEOUT, f"Request timed out after {self.timeout_ms} ms: {method} {url}")
        except httpx.RequestError as e:
            logger.error(f"{method} {url} failed: {type(e).__name__}: {e}")
            detail = str(e) or type(e).__name__
            return Response.fail(ErrorCode.NETWORK_ERROR, f"Network error calling {method} {url}: {detail}")

        return _normalize(reply, method, url)


async def dispatch(
    url: str,
    method: str,
    headers: Optional[Mapping[str, str]] = None,
    body: Any = None,
) -> Response:
    """Dispatch with the configured timeout and a one-off client."""
    return await RequestDispatcher().dispatch(url, method, headers=headers, body=body)
