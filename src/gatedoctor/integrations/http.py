"""Bounded HTTP probes against the gateway.

A probe issues exactly one request with a hard deadline and never raises for
transport problems: failures are reported as a :class:`TransportError` on the
returned :class:`ProbeOutcome`.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import httpx

from gatedoctor import __version__
from gatedoctor.config.constants import coerce_finite_float
from gatedoctor.infrastructure.errors import InvalidTimeoutError
from gatedoctor.infrastructure.logging import BoundLogger, log_probe_event

CORRELATION_ID_HEADERS = ("x-request-id", "x-requestid", "x-amzn-requestid", "cf-ray")
USER_AGENT = f"gatedoctor/{__version__}"


class TransportErrorKind(str, Enum):
    TIMEOUT = "timeout"
    NETWORK = "network"
    INVALID_JSON = "invalid_json"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class TransportError:
    kind: TransportErrorKind
    message: str

    def describe(self) -> str:
        return f"{self.kind.value}: {self.message}"


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of one probe.

    ``http_status`` is absent for transport failures, except ``invalid_json``
    which keeps the status that was actually received.
    """

    url: str
    elapsed_ms: int
    http_status: Optional[int] = None
    correlation_id: Optional[str] = None
    transport_error: Optional[TransportError] = None
    body: Any = None

    @property
    def succeeded(self) -> bool:
        return self.transport_error is None

    @property
    def error_kind(self) -> Optional[TransportErrorKind]:
        return self.transport_error.kind if self.transport_error else None


def validate_timeout_ms(value: Any) -> float:
    """Return ``value`` as a positive finite millisecond count or raise."""

    timeout_ms = coerce_finite_float(value)
    if timeout_ms is None or timeout_ms <= 0:
        raise InvalidTimeoutError("timeoutMs must be a positive number")
    return timeout_ms


def auth_headers(api_key: Optional[str]) -> dict[str, str]:
    key = (api_key or "").strip()
    if not key:
        return {}
    return {"Authorization": f"Bearer {key}"}


def extract_correlation_id(headers: httpx.Headers) -> Optional[str]:
    for name in CORRELATION_ID_HEADERS:
        value = headers.get(name)
        if value is not None:
            return value
    return None


def create_client(*, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Build the shared client; deadlines are enforced per probe instead."""

    client_kwargs: dict[str, Any] = {
        "headers": {"Accept": "application/json", "User-Agent": USER_AGENT},
        "timeout": None,
        "follow_redirects": True,
    }
    if transport is not None:
        client_kwargs["transport"] = transport
    return httpx.AsyncClient(**client_kwargs)


def _elapsed_ms(started: float) -> int:
    return max(0, round((time.perf_counter() - started) * 1000))


def _error_message(exc: BaseException) -> str:
    text = str(exc).strip()
    return text or type(exc).__name__


async def _send(
    client: httpx.AsyncClient,
    request: httpx.Request,
    *,
    read_body: bool,
) -> tuple[httpx.Response, bytes]:
    response = await client.send(request, stream=True)
    try:
        raw = await response.aread() if read_body else b""
    finally:
        # status-only probes still release the connection
        await response.aclose()
    return response, raw


async def probe(
    client: httpx.AsyncClient,
    url: str,
    *,
    method: str = "GET",
    headers: Optional[Mapping[str, str]] = None,
    json_body: Any = None,
    content: Optional[str] = None,
    timeout_ms: float,
    decode_json: bool = True,
    logger: Optional[BoundLogger] = None,
) -> ProbeOutcome:
    """Issue one request bounded by ``timeout_ms`` and classify the result."""

    request_kwargs: dict[str, Any] = {"headers": dict(headers or {})}
    if json_body is not None:
        request_kwargs["json"] = json_body
    elif content is not None:
        request_kwargs["content"] = content
    request = client.build_request(method, url, **request_kwargs)

    started = time.perf_counter()
    try:
        response, raw = await asyncio.wait_for(
            _send(client, request, read_body=decode_json),
            timeout=timeout_ms / 1000,
        )
    except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
        message = _error_message(exc)
        if isinstance(exc, asyncio.TimeoutError):
            message = f"request timed out after {timeout_ms:g}ms"
        outcome = ProbeOutcome(
            url=url,
            elapsed_ms=_elapsed_ms(started),
            transport_error=TransportError(TransportErrorKind.TIMEOUT, message),
        )
    except httpx.TransportError as exc:
        outcome = ProbeOutcome(
            url=url,
            elapsed_ms=_elapsed_ms(started),
            transport_error=TransportError(TransportErrorKind.NETWORK, _error_message(exc)),
        )
    except Exception as exc:  # pragma: no cover - unclassified failures
        outcome = ProbeOutcome(
            url=url,
            elapsed_ms=_elapsed_ms(started),
            transport_error=TransportError(TransportErrorKind.UNKNOWN, _error_message(exc)),
        )
    else:
        outcome = _settle(url, response, raw, started=started, decode_json=decode_json)

    if logger is not None:
        log_probe_event(
            logger,
            "settled",
            url=url,
            method=method,
            status=outcome.http_status,
            elapsed_ms=outcome.elapsed_ms,
            error_kind=outcome.error_kind.value if outcome.error_kind else None,
            correlation_id=outcome.correlation_id,
        )
    return outcome


def _settle(
    url: str,
    response: httpx.Response,
    raw: bytes,
    *,
    started: float,
    decode_json: bool,
) -> ProbeOutcome:
    elapsed_ms = _elapsed_ms(started)
    correlation_id = extract_correlation_id(response.headers)
    if not decode_json or not raw.strip():
        return ProbeOutcome(
            url=url,
            elapsed_ms=elapsed_ms,
            http_status=response.status_code,
            correlation_id=correlation_id,
        )

    try:
        body = response.json()
    except ValueError as exc:
        return ProbeOutcome(
            url=url,
            elapsed_ms=elapsed_ms,
            http_status=response.status_code,
            correlation_id=correlation_id,
            transport_error=TransportError(TransportErrorKind.INVALID_JSON, _error_message(exc)),
        )
    return ProbeOutcome(
        url=url,
        elapsed_ms=elapsed_ms,
        http_status=response.status_code,
        correlation_id=correlation_id,
        body=body,
    )


__all__ = [
    "CORRELATION_ID_HEADERS",
    "ProbeOutcome",
    "TransportError",
    "TransportErrorKind",
    "auth_headers",
    "create_client",
    "extract_correlation_id",
    "probe",
    "validate_timeout_ms",
]
