"""Base URL normalization.

A gateway base URL is expected to end in ``/v1``. Missing ``/v1`` is
corrected and reported as a warning instead of rejected; only input that is
not an absolute URL at all is refused.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from gatedoctor.config.constants import DEFAULT_API_BASE, DEFAULT_ORIGIN
from gatedoctor.infrastructure.errors import InvalidBaseUrlError

API_SUFFIX = "/v1"


@dataclass(frozen=True)
class NormalizedBaseUrl:
    api_base: str
    origin: str
    warnings: tuple[str, ...] = ()

    def join(self, path: str) -> str:
        """Resolve an OpenAI-compatible path (``/models``) under ``api_base``."""
        return f"{self.api_base}{path}"

    def at_origin(self, path: str) -> str:
        """Resolve a gateway path (``/health``, ``/api/v1/...``) under ``origin``."""
        return f"{self.origin}{path}"


def _suggest_from_raw(raw: str) -> Optional[str]:
    trimmed = raw.rstrip("/")
    return f"{trimmed}{API_SUFFIX}" if trimmed else None


def _parse_absolute(raw: str) -> httpx.URL:
    try:
        url = httpx.URL(raw)
    except httpx.InvalidURL as exc:
        raise InvalidBaseUrlError(
            "not a valid URL", suggested_base_url=_suggest_from_raw(raw)
        ) from exc
    if not url.scheme or not url.host:
        raise InvalidBaseUrlError("not a valid URL", suggested_base_url=_suggest_from_raw(raw))
    return url


def normalize_base_url(raw: Optional[str]) -> NormalizedBaseUrl:
    """Canonicalize ``raw`` into a ``.../v1`` API base and its origin.

    The origin is the API base with the trailing ``/v1`` removed, so a proxy
    mounted at ``https://host/proxy/v1`` has origin ``https://host/proxy``.

    Raises :class:`InvalidBaseUrlError` only when ``raw`` is not an absolute
    URL; every other deviation becomes a warning.
    """

    candidate = (raw or "").strip()
    if not candidate:
        return NormalizedBaseUrl(
            api_base=DEFAULT_API_BASE,
            origin=DEFAULT_ORIGIN,
            warnings=(f"baseUrl not provided; using default {DEFAULT_API_BASE}",),
        )

    url = _parse_absolute(candidate)
    warnings: list[str] = []
    if url.scheme != "https":
        warnings.append(f"unexpected protocol {url.scheme}:; https:// is recommended")

    host = f"{url.scheme}://{url.netloc.decode('ascii')}"
    path = url.path.rstrip("/")

    if path.endswith(API_SUFFIX):
        prefix = path[: -len(API_SUFFIX)]
    else:
        prefix = path
        warnings.append(f"baseUrl should end with /v1; using {host}{prefix}{API_SUFFIX}")

    origin = f"{host}{prefix}"
    return NormalizedBaseUrl(
        api_base=f"{origin}{API_SUFFIX}",
        origin=origin,
        warnings=tuple(warnings),
    )


__all__ = ["API_SUFFIX", "NormalizedBaseUrl", "normalize_base_url"]
