"""Extraction of model ids from an OpenAI-style ``GET /models`` body."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from gatedoctor.infrastructure.errors import ModelsListInvalidError

MSG_NOT_AN_OBJECT = "models response is not an object"
MSG_MISSING_DATA = "models response missing data[]"
MSG_NO_IDS = "models list is empty or has no ids"


class ModelInfo(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    context_length: Optional[int] = Field(default=None, alias="contextLength")


def _non_empty_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if value > 0 else None


def _data_items(body: Any) -> list[Any]:
    if not isinstance(body, Mapping):
        raise ModelsListInvalidError(MSG_NOT_AN_OBJECT)
    data = body.get("data")
    if not isinstance(data, list):
        raise ModelsListInvalidError(MSG_MISSING_DATA)
    return data


def parse_model_infos(body: Any) -> list[ModelInfo]:
    """Return every entry of ``data[]`` that has a non-empty string ``id``.

    A list without a single usable id is a broken response, not an empty
    catalog, and raises :class:`ModelsListInvalidError`.
    """

    models: list[ModelInfo] = []
    for item in _data_items(body):
        if not isinstance(item, Mapping):
            continue
        model_id = _non_empty_str(item.get("id"))
        if model_id is None:
            continue
        models.append(
            ModelInfo(
                id=model_id,
                name=_non_empty_str(item.get("name")),
                description=_non_empty_str(item.get("description")),
                context_length=_positive_int(item.get("context_length"))
                or _positive_int(item.get("contextLength")),
            )
        )

    if not models:
        raise ModelsListInvalidError(MSG_NO_IDS)
    return models


def parse_model_catalog(body: Any) -> list[str]:
    """Model ids in response order."""
    return [info.id for info in parse_model_infos(body)]


__all__ = [
    "MSG_MISSING_DATA",
    "MSG_NOT_AN_OBJECT",
    "MSG_NO_IDS",
    "ModelInfo",
    "parse_model_catalog",
    "parse_model_infos",
]
