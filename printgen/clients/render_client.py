import base64
import binascii
import json
import logging
from http import HTTPStatus
from typing import Any, Optional

import httpx

from printgen.core.config import BAD_INPUT_STATUSES, ERROR_BODY_MAX_CHARS, RENDER_TIMEOUT_SECONDS
from printgen.core.exceptions import ExternalServiceError, MergeError, RenderRequestRejectedError
from printgen.pipeline.models import (
    InlineResult,
    MergeRequest,
    MergeResult,
    PointerResult,
    RenderResult,
)

logger = logging.getLogger(__name__)

_ERROR_FIELDS = ("errorName", "message", "error", "errorStack")


def format_remote_error(payload: Any) -> Optional[str]:
    """Join the error fields of a remote error object, verbatim."""
    if not isinstance(payload, dict):
        return None
    parts = [f"{name}={payload[name]}" for name in _ERROR_FIELDS if payload.get(name)]
    return "; ".join(parts) or None


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _unwrap_envelope(payload: Any) -> tuple[Optional[int], Any]:
    """Unwrap a `{statusCode, body}` function-proxy envelope if present."""
    if isinstance(payload, dict) and "statusCode" in payload:
        body = payload.get("body")
        if isinstance(body, str):
            try:
                body = json.loads(body)
            except json.JSONDecodeError:
                pass
        return int(payload["statusCode"]), body
    return None, payload


def parse_render_body(body: Any, default_store: str) -> RenderResult:
    """Normalize a successful render body into a tagged result."""
    if isinstance(body, dict) and body.get("pointerKey"):
        return PointerResult(
            store=body.get("pointerStore") or default_store,
            key=body["pointerKey"],
            size=int(body.get("size") or 0),
        )

    encoded = body.get("pdf") if isinstance(body, dict) else body
    if not isinstance(encoded, str) or not encoded:
        raise ExternalServiceError(
            service_name="RENDER",
            error_type="error",
            remote_message="response carries neither an inline payload nor a pointer",
        )
    try:
        return InlineResult(data=base64.b64decode(encoded, validate=True))
    except (binascii.Error, ValueError) as e:
        raise ExternalServiceError(
            service_name="RENDER",
            error_type="error",
            remote_message=f"inline payload is not valid base64: {e}",
        ) from e


class RenderFunctionClient:
    """Async HTTP client for the remote render and merge functions.

    A single call is a single attempt; retries are applied by the caller.

    Args:
        render_url: Endpoint of the render function
        merge_url: Endpoint of the merge function
        default_store: Bucket assumed when a pointer omits its store
        timeout: Per-request timeout in seconds
        verify: Verify TLS certificates
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        render_url: str,
        merge_url: str,
        default_store: str,
        timeout: float = RENDER_TIMEOUT_SECONDS,
        verify: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.render_url = render_url
        self.merge_url = merge_url
        self.default_store = default_store
        self.timeout = timeout
        self.verify = verify
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            timeout=self.timeout, verify=self.verify, transport=self._transport
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _post(self, service: str, url: str, payload: dict) -> httpx.Response:
        if not self._client:
            raise RuntimeError("Client not started")
        try:
            return await self._client.post(url, json=payload)
        except httpx.TimeoutException as e:
            raise ExternalServiceError(
                service_name=service, error_type="timeout", remote_message=str(e) or None
            ) from e
        except httpx.TransportError as e:
            raise ExternalServiceError(
                service_name=service, error_type="unavailable", remote_message=str(e) or None
            ) from e

    def _raise_for_status(
        self, service: str, status: int, body: Any, headers: httpx.Headers
    ) -> None:
        if 200 <= status < 300:
            return

        remote_message = format_remote_error(body)
        if remote_message is None:
            text = body if isinstance(body, str) else json.dumps(body, default=str)
            remote_message = (text or f"HTTP {status}")[:ERROR_BODY_MAX_CHARS]

        if status in BAD_INPUT_STATUSES:
            raise RenderRequestRejectedError(service, status, remote_message)
        if status == HTTPStatus.TOO_MANY_REQUESTS:
            raise ExternalServiceError(
                service_name=service,
                error_type="rate_limit",
                remote_message=remote_message,
                retry_after=_parse_retry_after(headers.get("Retry-After")),
                details={"remote_status": status},
            )
        raise ExternalServiceError(
            service_name=service,
            error_type="timeout" if status == HTTPStatus.GATEWAY_TIMEOUT else "error",
            remote_message=remote_message,
            details={"remote_status": status},
        )

    def _decode(self, response: httpx.Response) -> tuple[int, Any]:
        content_type = response.headers.get("content-type", "")
        if content_type.startswith("application/pdf"):
            return response.status_code, response.content
        try:
            payload = response.json()
        except ValueError:
            return response.status_code, response.text

        envelope_status, body = _unwrap_envelope(payload)
        status = response.status_code
        if envelope_status is not None and 200 <= status < 300:
            status = envelope_status
        return status, body

    async def render(self, url: str, options: dict) -> RenderResult:
        """Invoke the render function once for a source URL."""
        response = await self._post("RENDER", self.render_url, {"url": url, "options": options})
        status, body = self._decode(response)
        self._raise_for_status("RENDER", status, body, response.headers)

        if isinstance(body, bytes):
            return InlineResult(data=body)
        return parse_render_body(body, self.default_store)

    async def merge(self, request: MergeRequest) -> MergeResult:
        """Invoke the merge function once over an ordered key list."""
        response = await self._post("MERGE", self.merge_url, request.to_payload())
        status, body = self._decode(response)
        self._raise_for_status("MERGE", status, body, response.headers)

        if not isinstance(body, dict) or not body.get("pointerKey"):
            raise MergeError("merge response has no pointerKey", key_count=len(request.keys))

        page_count = body.get("pageCount")
        return MergeResult(
            pointer=PointerResult(
                store=body.get("pointerStore") or self.default_store,
                key=body["pointerKey"],
                size=int(body.get("size") or 0),
            ),
            page_count=int(page_count) if page_count is not None else None,
        )
