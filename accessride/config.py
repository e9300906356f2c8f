"""Process-wide settings and the rate-table loader."""
from __future__ import annotations

import json
import logging
import os
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from accessride.pricing import (
    DEFAULT_PRICING_CONFIG,
    BookingTypeRule,
    PeakWindow,
    PricingConfig,
    SupportWorkerTier,
    VehicleFeature,
)

logger = logging.getLogger(__name__)

DB_PATH = os.environ.get("ACCESSRIDE_DB", "accessride.db")
PRICING_FILE_ENV = "ACCESSRIDE_PRICING_FILE"
LOG_LEVEL = os.environ.get("ACCESSRIDE_LOG_LEVEL", "WARNING").upper()


def _decimal(data: Mapping[str, Any], key: str) -> Decimal:
    try:
        value = data[key]
    except KeyError as exc:
        raise ValueError(f"Pricing config is missing '{key}'") from exc
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal, str)):
        raise ValueError(f"Pricing config value '{key}' must be numeric, got {value!r}")
    try:
        amount = Decimal(str(value))
    except ArithmeticError as exc:
        raise ValueError(f"Pricing config value '{key}' is not a number: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Pricing config value '{key}' must be finite, got {value!r}")
    return amount


def pricing_config_from_dict(data: Mapping[str, Any]) -> PricingConfig:
    """Build a :class:`PricingConfig`, falling back to defaults for omitted sections."""
    default = DEFAULT_PRICING_CONFIG

    features = default.vehicle_features
    if "vehicle_features" in data:
        features = tuple(
            VehicleFeature(
                id=str(item["id"]),
                name=str(item.get("name", item["id"])),
                description=str(item.get("description", "")),
                surcharge=_decimal(item, "surcharge"),
            )
            for item in data["vehicle_features"]
        )

    tiers = default.support_worker_tiers
    if "support_worker_tiers" in data:
        tiers = tuple(
            SupportWorkerTier(
                count=int(item["count"]),
                hourly_rate=_decimal(item, "hourly_rate"),
                description=str(item.get("description", "")),
            )
            for item in data["support_worker_tiers"]
        )

    windows = default.peak_windows
    if "peak_windows" in data:
        if not isinstance(data["peak_windows"], Mapping):
            raise ValueError("Pricing config 'peak_windows' must map window labels to hours")
        windows = tuple(
            PeakWindow(
                label=str(label),
                start_hour=int(bounds["start"]),
                end_hour=int(bounds["end"]),
            )
            for label, bounds in data["peak_windows"].items()
        )

    rules = default.booking_type_rules
    if "booking_type_rules" in data:
        rules = tuple(
            BookingTypeRule(
                id=str(item["id"]),
                label=str(item.get("label", item["id"])),
                max_lead_hours=(
                    None if item.get("max_lead_hours") is None else float(item["max_lead_hours"])
                ),
                multiplier=_decimal(item, "multiplier"),
                description=str(item.get("description", "")),
                includes_max=bool(item.get("includes_max", True)),
            )
            for item in data["booking_type_rules"]
        )

    return PricingConfig(
        base_fare=_decimal(data, "base_fare") if "base_fare" in data else default.base_fare,
        vehicle_features=features,
        support_worker_tiers=tiers,
        distance_rate_per_mile=(
            _decimal(data, "distance_rate_per_mile")
            if "distance_rate_per_mile" in data
            else default.distance_rate_per_mile
        ),
        peak_multiplier=(
            _decimal(data, "peak_multiplier")
            if "peak_multiplier" in data
            else default.peak_multiplier
        ),
        peak_windows=windows,
        booking_type_rules=rules,
        currency_symbol=str(data.get("currency_symbol", default.currency_symbol)),
    )


def load_pricing_config(path: Optional[str] = None) -> PricingConfig:
    """Return the rate table from *path* or ``$ACCESSRIDE_PRICING_FILE``, else the defaults."""
    path = path or os.environ.get(PRICING_FILE_ENV)
    if not path:
        return DEFAULT_PRICING_CONFIG
    raw: Dict[str, Any] = json.loads(Path(path).read_text(encoding="utf-8"), parse_float=Decimal)
    try:
        config = pricing_config_from_dict(raw)
    except (KeyError, TypeError, AttributeError, ArithmeticError) as exc:
        raise ValueError(f"Malformed pricing config in {path}: {exc}") from exc
    logger.info("Loaded pricing config from %s", path)
    return config


@lru_cache(maxsize=1)
def get_pricing_config() -> PricingConfig:
    return load_pricing_config()


__all__ = [
    "DB_PATH",
    "LOG_LEVEL",
    "PRICING_FILE_ENV",
    "get_pricing_config",
    "load_pricing_config",
    "pricing_config_from_dict",
]
