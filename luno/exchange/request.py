"""
Request execution pipeline for the Luno REST API.

Turns a ``RequestDescriptor`` (path, verb, query, body) into an authenticated
HTTP request and classifies the response:

- 2xx: the parsed JSON body is returned
- anything else: ``LunoAPIError`` (or a subclass) carrying the status code and
  the transport's status text; the body is never parsed on this path
- transport failures (``httpx.TransportError``) and JSON decode errors on a
  2xx body propagate unchanged

The header template is read-only. Every request works on its own copy, so
body-specific headers never leak across concurrent calls.
"""

from __future__ import annotations

import base64
import enum
import json
from dataclasses import dataclass
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import quote

import httpx

from luno.core.logger import get_logger, log_performance
from luno.exchange.exceptions import api_error_for_status

logger = get_logger("luno.request")

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded;charset=UTF-8"

_CIRCULAR = "[Circular]"


class BodyEncoding(str, enum.Enum):
    """How request bodies are serialized. Fixed per client."""

    FORM = "form"
    JSON = "json"


@dataclass(frozen=True)
class RequestDescriptor:
    """Operation-level request description, before any wire encoding."""

    path: str
    method: Optional[str] = None
    query: Optional[Mapping[str, Any]] = None
    data: Optional[Mapping[str, Any]] = None


@dataclass(frozen=True)
class PreparedRequest:
    method: str
    url: str
    headers: Dict[str, str]
    content: Optional[str] = None


# ---------------------------------------------------------------------------
# Encoding helpers
# ---------------------------------------------------------------------------

def resolve_method(descriptor: RequestDescriptor) -> str:
    """Explicit verb, else POST when a body is present, else GET."""
    if descriptor.method:
        return descriptor.method.upper()
    return "POST" if descriptor.data is not None else "GET"


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_query(params: Optional[Mapping[str, Any]]) -> str:
    """Percent-encode ``params`` in insertion order, skipping ``None`` values."""
    if not params:
        return ""
    return "&".join(
        f"{quote(str(k), safe='')}={quote(_scalar(v), safe='')}"
        for k, v in params.items()
        if v is not None
    )


def build_url(base_url: str, path: str, query: Optional[Mapping[str, Any]] = None) -> str:
    qs = encode_query(query)
    return f"{base_url}{path}?{qs}" if qs else f"{base_url}{path}"


def _decycle(value: Any, ancestors: Tuple[int, ...] = ()) -> Any:
    if isinstance(value, (dict, list, tuple)):
        if id(value) in ancestors:
            return _CIRCULAR
        inner = ancestors + (id(value),)
        if isinstance(value, dict):
            return {str(k): _decycle(v, inner) for k, v in value.items()}
        return [_decycle(v, inner) for v in value]
    return value


def _json_default(value: Any) -> Any:
    # Decimal and other scalars are sent as their string form.
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def safe_dumps(data: Any) -> str:
    """JSON-serialize ``data``, replacing circular references with a marker."""
    return json.dumps(_decycle(data), default=_json_default, separators=(",", ":"))


def encode_body(
    data: Optional[Mapping[str, Any]],
    encoding: BodyEncoding,
) -> Tuple[Optional[str], Dict[str, str]]:
    """Serialize a body payload, returning ``(content, extra_headers)``."""
    if data is None:
        return None, {}
    if encoding is BodyEncoding.FORM:
        return encode_query(data), {"Content-Type": FORM_CONTENT_TYPE}
    return safe_dumps(data), {}


def build_header_template(
    key: Optional[str] = None,
    secret: Optional[str] = None,
) -> Mapping[str, str]:
    """Static headers shared by every request, as a read-only mapping."""
    headers = {
        "Accept": "application/json",
        "Accept-Charset": "utf-8",
    }
    if key and secret:
        token = base64.b64encode(f"{key}:{secret}".encode("utf-8")).decode("ascii")
        headers["Authorization"] = f"Basic {token}"
    return MappingProxyType(headers)


def classify_response(response: httpx.Response) -> Any:
    if response.is_success:
        return response.json()
    raise api_error_for_status(response.status_code, response.reason_phrase)


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

class RequestExecutor:
    """Sends descriptors to ``base_url`` with a fixed header template.

    Without ``initialize()`` every request opens a short-lived
    ``httpx.AsyncClient``; after it, requests share one pooled client until
    ``close()``.
    """

    def __init__(
        self,
        base_url: str,
        headers: Mapping[str, str],
        *,
        encoding: BodyEncoding = BodyEncoding.FORM,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers: Mapping[str, str] = MappingProxyType(dict(headers))
        self.encoding = BodyEncoding(encoding)
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def initialize(self) -> None:
        if self._client is None:
            self._client = self._new_client()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def prepare(self, descriptor: RequestDescriptor) -> PreparedRequest:
        content, extra_headers = encode_body(descriptor.data, self.encoding)
        headers = dict(self.headers)
        headers.update(extra_headers)
        return PreparedRequest(
            method=resolve_method(descriptor),
            url=build_url(self.base_url, descriptor.path, descriptor.query),
            headers=headers,
            content=content,
        )

    async def execute(self, descriptor: RequestDescriptor) -> Any:
        prepared = self.prepare(descriptor)
        if self._client is not None:
            return await self._send(self._client, prepared, descriptor.path)
        async with self._new_client() as client:
            return await self._send(client, prepared, descriptor.path)

    async def _send(self, client: httpx.AsyncClient, prepared: PreparedRequest, path: str) -> Any:
        with log_performance(logger, "luno request", method=prepared.method, path=path):
            response = await client.request(
                prepared.method,
                prepared.url,
                headers=prepared.headers,
                content=prepared.content,
            )
            return classify_response(response)
