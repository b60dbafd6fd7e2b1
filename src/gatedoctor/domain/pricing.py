"""Pricing payload normalization.

Gateways publish pricing in several shapes. Each shape has a matcher that
returns a tagged :class:`ShapeMatch` or ``None``; matchers are tried in a
fixed order and the first match wins:

``model_map``
    ``{"models": {"<model id>": {...}}, "usageFeeRate": ..., "updatedAt": ...}``
``model_list``
    ``{"data": [{"model": ...}]}``, ``{"pricing": [...]}`` or ``{"models": [...]}``
``root_keyed``
    ``{"<model id>": {...}}`` at the root of the payload

Payloads wrapped as ``{"success": true, "data": {...}}`` are unwrapped first.
Numeric fields nested under ``usdPer1MTokens`` take precedence over the flat
aliases. Fee and total are derived from the usage fee rate when absent.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from gatedoctor.config.constants import DEFAULT_USAGE_FEE_RATE, coerce_finite_float
from gatedoctor.infrastructure.errors import PricingNotFoundError, PricingPayloadInvalidError

MODEL_ID_FIELDS: Final = ("model", "id", "modelId")
NETWORK_FIELDS: Final = (
    "networkUsdPer1M",
    "network_usd_per_1m",
    "network",
    "networkUsdPerMillion",
    "usdPer1M",
)
PLATFORM_FIELDS: Final = ("platformUsdPer1M", "platform_usd_per_1m", "platformFee")
TOTAL_FIELDS: Final = ("totalUsdPer1M", "total_usd_per_1m", "total")
UPDATED_AT_FIELDS: Final = ("updatedAt", "updated_at", "timestamp", "pricingUpdatedAt")
USAGE_FEE_RATE_FIELDS: Final = ("usageFeeRate", "usage_fee_rate")
FEES_RATE_FIELDS: Final = ("platformFeeRate", "platform_fee_rate")

BREAKDOWN_KEY: Final = "usdPer1MTokens"
LIST_KEYS: Final = ("data", "pricing", "models")

MSG_NOT_AN_OBJECT: Final = "pricing response is not an object"
MSG_NO_MODELS: Final = "pricing response contains no models"


@dataclass(frozen=True)
class PricingEntry:
    """Pricing for one model exactly as published; derived fields may be absent."""

    model_id: str
    network_usd_per_1m: float
    platform_usd_per_1m: Optional[float] = None
    total_usd_per_1m: Optional[float] = None
    usage_fee_rate: Optional[float] = None
    updated_at: Optional[str] = None

    def estimate(
        self,
        default_usage_fee_rate: float = DEFAULT_USAGE_FEE_RATE,
        *,
        updated_at_fallback: Optional[str] = None,
    ) -> "EstimatedCost":
        rate = self.usage_fee_rate if self.usage_fee_rate is not None else default_usage_fee_rate
        network = self.network_usd_per_1m
        platform_fee = (
            self.platform_usd_per_1m
            if self.platform_usd_per_1m is not None
            else network * rate
        )
        total = self.total_usd_per_1m if self.total_usd_per_1m is not None else network * (1 + rate)
        return EstimatedCost(
            model=self.model_id,
            network=network,
            platform_fee=platform_fee,
            total=total,
            usage_fee_rate=rate,
            updated_at=self.updated_at or updated_at_fallback,
        )


class EstimatedCost(BaseModel):
    """Per-1M-token cost estimate in USD; serialized under both naming styles."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    currency: str = "USD"
    model: str
    network: float
    platform_fee: float = Field(alias="platformFee")
    total: float
    usage_fee_rate: float = Field(alias="usageFeeRate")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

    @computed_field(alias="networkUsdPer1M")  # type: ignore[prop-decorator]
    @property
    def network_usd_per_1m(self) -> float:
        return self.network

    @computed_field(alias="platformUsdPer1M")  # type: ignore[prop-decorator]
    @property
    def platform_usd_per_1m(self) -> float:
        return self.platform_fee

    @computed_field(alias="totalUsdPer1M")  # type: ignore[prop-decorator]
    @property
    def total_usd_per_1m(self) -> float:
        return self.total

    @property
    def fee_percent(self) -> int:
        return round(self.usage_fee_rate * 100)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class PricingIndex:
    usage_fee_rate: float
    models: Mapping[str, EstimatedCost]
    updated_at: Optional[str] = None

    def get(self, model_id: str) -> Optional[EstimatedCost]:
        return self.models.get(model_id)


@dataclass(frozen=True)
class ShapeMatch:
    shape: str
    entry: PricingEntry


ShapeMatcher = Callable[[Mapping[str, Any], str], Optional[ShapeMatch]]
ShapeCollector = Callable[[Mapping[str, Any]], Optional[list[PricingEntry]]]


def _first_number(obj: Mapping[str, Any], fields: Sequence[str]) -> Optional[float]:
    for name in fields:
        value = coerce_finite_float(obj.get(name))
        if value is not None:
            return value
    return None


def _first_str(obj: Mapping[str, Any], fields: Sequence[str]) -> Optional[str]:
    for name in fields:
        value = obj.get(name)
        if isinstance(value, str) and value.strip():
            return value
    return None


def _payload_usage_fee_rate(payload: Mapping[str, Any]) -> Optional[float]:
    rate = _first_number(payload, USAGE_FEE_RATE_FIELDS)
    if rate is not None:
        return rate
    fees = payload.get("fees")
    if isinstance(fees, Mapping):
        return _first_number(fees, FEES_RATE_FIELDS)
    return None


def _normalize_entry(
    model_id: str,
    entry: Mapping[str, Any],
    payload: Mapping[str, Any],
) -> Optional[PricingEntry]:
    breakdown = entry.get(BREAKDOWN_KEY)
    nested: Mapping[str, Any] = breakdown if isinstance(breakdown, Mapping) else {}

    network = _first_number(nested, ("network",))
    if network is None:
        network = _first_number(entry, NETWORK_FIELDS)
    if network is None:
        return None

    platform = _first_number(nested, ("platformFee",))
    if platform is None:
        platform = _first_number(entry, PLATFORM_FIELDS)

    total = _first_number(nested, ("total",))
    if total is None:
        total = _first_number(entry, TOTAL_FIELDS)

    usage_fee_rate = _first_number(entry, USAGE_FEE_RATE_FIELDS)
    if usage_fee_rate is None:
        usage_fee_rate = _payload_usage_fee_rate(payload)

    return PricingEntry(
        model_id=_first_str(entry, MODEL_ID_FIELDS) or model_id,
        network_usd_per_1m=network,
        platform_usd_per_1m=platform,
        total_usd_per_1m=total,
        usage_fee_rate=usage_fee_rate,
        updated_at=_first_str(entry, UPDATED_AT_FIELDS) or _first_str(payload, UPDATED_AT_FIELDS),
    )


def _entry_list(payload: Mapping[str, Any]) -> Optional[list[Any]]:
    for key in LIST_KEYS:
        candidate = payload.get(key)
        if isinstance(candidate, list):
            return candidate
    return None


def _match_model_map(payload: Mapping[str, Any], model_id: str) -> Optional[ShapeMatch]:
    models = payload.get("models")
    if not isinstance(models, Mapping):
        return None
    entry = models.get(model_id)
    if not isinstance(entry, Mapping):
        return None
    normalized = _normalize_entry(model_id, entry, payload)
    return ShapeMatch("model_map", normalized) if normalized else None


def _match_model_list(payload: Mapping[str, Any], model_id: str) -> Optional[ShapeMatch]:
    items = _entry_list(payload)
    if items is None:
        return None
    for item in items:
        if not isinstance(item, Mapping):
            continue
        if _first_str(item, MODEL_ID_FIELDS) != model_id:
            continue
        normalized = _normalize_entry(model_id, item, payload)
        if normalized:
            return ShapeMatch("model_list", normalized)
    return None


def _match_root_keyed(payload: Mapping[str, Any], model_id: str) -> Optional[ShapeMatch]:
    entry = payload.get(model_id)
    if not isinstance(entry, Mapping):
        return None
    normalized = _normalize_entry(model_id, entry, payload)
    return ShapeMatch("root_keyed", normalized) if normalized else None


PRICING_SHAPES: Final[tuple[ShapeMatcher, ...]] = (
    _match_model_map,
    _match_model_list,
    _match_root_keyed,
)


def _collect_model_map(payload: Mapping[str, Any]) -> Optional[list[PricingEntry]]:
    models = payload.get("models")
    if not isinstance(models, Mapping):
        return None
    entries: list[PricingEntry] = []
    for model_id, entry in models.items():
        if not isinstance(entry, Mapping):
            continue
        normalized = _normalize_entry(str(model_id), entry, payload)
        if normalized:
            entries.append(normalized)
    return entries


def _collect_model_list(payload: Mapping[str, Any]) -> Optional[list[PricingEntry]]:
    items = _entry_list(payload)
    if items is None:
        return None
    entries: list[PricingEntry] = []
    for item in items:
        if not isinstance(item, Mapping):
            continue
        model_id = _first_str(item, MODEL_ID_FIELDS)
        if model_id is None:
            continue
        normalized = _normalize_entry(model_id, item, payload)
        if normalized:
            entries.append(normalized)
    return entries


PRICING_COLLECTORS: Final[tuple[ShapeCollector, ...]] = (
    _collect_model_map,
    _collect_model_list,
)


def unwrap_pricing_payload(body: Any) -> Mapping[str, Any]:
    """Return the pricing payload, unwrapping ``{"success": ..., "data": {...}}``."""

    if not isinstance(body, Mapping):
        raise PricingPayloadInvalidError(MSG_NOT_AN_OBJECT)
    data = body.get("data")
    if isinstance(data, Mapping):
        return data
    return body


def find_pricing_entry(body: Any, model_id: str) -> ShapeMatch:
    payload = unwrap_pricing_payload(body)
    for matcher in PRICING_SHAPES:
        match = matcher(payload, model_id)
        if match is not None:
            return match
    raise PricingNotFoundError(model_id)


def parse_pricing_for_model(
    body: Any,
    model_id: str,
    default_usage_fee_rate: float = DEFAULT_USAGE_FEE_RATE,
) -> EstimatedCost:
    """Estimate the per-1M-token cost of ``model_id`` from a pricing body.

    Raises :class:`PricingPayloadInvalidError` for a non-object body and
    :class:`PricingNotFoundError` when no shape yields an entry for the model.
    """

    match = find_pricing_entry(body, model_id)
    estimated = match.entry.estimate(default_usage_fee_rate)
    return estimated.model_copy(update={"model": model_id})


def extract_pricing_entries(body: Any) -> list[PricingEntry]:
    payload = unwrap_pricing_payload(body)
    for collector in PRICING_COLLECTORS:
        entries = collector(payload)
        if entries is not None:
            return entries
    return []


def parse_pricing_index(
    body: Any,
    default_usage_fee_rate: float = DEFAULT_USAGE_FEE_RATE,
) -> PricingIndex:
    """Estimate costs for every model the pricing body lists."""

    payload = unwrap_pricing_payload(body)
    entries = extract_pricing_entries(payload)
    if not entries:
        raise PricingPayloadInvalidError(MSG_NO_MODELS)

    payload_rate = _payload_usage_fee_rate(payload)
    usage_fee_rate = payload_rate if payload_rate is not None else default_usage_fee_rate
    updated_at = _first_str(payload, UPDATED_AT_FIELDS)

    models = {
        entry.model_id: entry.estimate(usage_fee_rate, updated_at_fallback=updated_at)
        for entry in entries
    }
    return PricingIndex(usage_fee_rate=usage_fee_rate, models=models, updated_at=updated_at)


__all__ = [
    "EstimatedCost",
    "PRICING_COLLECTORS",
    "PRICING_SHAPES",
    "PricingEntry",
    "PricingIndex",
    "ShapeMatch",
    "extract_pricing_entries",
    "find_pricing_entry",
    "parse_pricing_for_model",
    "parse_pricing_index",
    "unwrap_pricing_payload",
]
