"""Parsing of OpenAI-style ``{"error": {...}}`` response bodies."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

INSUFFICIENT_QUOTA = "insufficient_quota"
INVALID_MODEL = "invalid_model"


@dataclass(frozen=True)
class OpenAiError:
    message: Optional[str] = None
    type: Optional[str] = None
    code: Optional[str] = None
    param: Optional[str] = None
    metadata: Optional[Mapping[str, Any]] = None

    def describe(self) -> str:
        parts = [part for part in (self.type, self.code) if part]
        prefix = f"{'/'.join(parts)}: " if parts else ""
        return prefix + (self.message or "request failed")


def _non_empty_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def parse_openai_error(body: Any) -> Optional[OpenAiError]:
    if not isinstance(body, Mapping):
        return None
    err = body.get("error")
    if not isinstance(err, Mapping):
        return None

    metadata = err.get("metadata")
    param = err.get("param")
    parsed = OpenAiError(
        message=_non_empty_str(err.get("message")),
        type=_non_empty_str(err.get("type")),
        code=_non_empty_str(err.get("code")),
        param=param if isinstance(param, str) else None,
        metadata=metadata if isinstance(metadata, Mapping) else None,
    )
    if not (parsed.message or parsed.type or parsed.code or parsed.param or parsed.metadata):
        return None
    return parsed


def format_openai_error(err: Optional[OpenAiError]) -> Optional[str]:
    if err is None:
        return None
    return err.describe()


def is_insufficient_quota(status: Optional[int], body: Any) -> bool:
    if status != 429:
        return False
    err = parse_openai_error(body)
    if err is None:
        return False
    return err.type == INSUFFICIENT_QUOTA or err.code == INSUFFICIENT_QUOTA


def is_invalid_model(status: Optional[int], body: Any) -> bool:
    if status != 400:
        return False
    err = parse_openai_error(body)
    return err is not None and err.code == INVALID_MODEL


__all__ = [
    "INSUFFICIENT_QUOTA",
    "INVALID_MODEL",
    "OpenAiError",
    "format_openai_error",
    "is_insufficient_quota",
    "is_invalid_model",
    "parse_openai_error",
]
