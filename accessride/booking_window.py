"""Pickup-time window checks and booking type descriptions."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

from accessride.pricing import DEFAULT_PRICING_CONFIG, PricingConfig

MIN_NOTICE = timedelta(minutes=30)
MAX_ADVANCE = timedelta(days=10)
QUARTER_MINUTES = 15


@dataclass(frozen=True)
class PickupValidation:
    valid: bool
    error: Optional[str] = None


def round_up_to_quarter(dt: datetime) -> datetime:
    """Round *dt* up to the next quarter hour, dropping seconds."""
    remainder = dt.minute % QUARTER_MINUTES
    rounded = dt.replace(second=0, microsecond=0)
    if remainder:
        rounded += timedelta(minutes=QUARTER_MINUTES - remainder)
    return rounded


def minimum_pickup_time(now: datetime) -> datetime:
    return round_up_to_quarter(now + MIN_NOTICE)


def maximum_pickup_time(now: datetime) -> datetime:
    return now + MAX_ADVANCE


def _is_aware(dt: datetime) -> bool:
    return dt.tzinfo is not None and dt.utcoffset() is not None


def validate_pickup_time(pickup_time: datetime, now: datetime) -> PickupValidation:
    if _is_aware(pickup_time) != _is_aware(now):
        return PickupValidation(
            False, "Pickup time and booking time must both be naive or both be timezone-aware"
        )
    earliest = minimum_pickup_time(now)
    latest = maximum_pickup_time(now)
    if pickup_time < earliest:
        return PickupValidation(
            False,
            "Pickup time must be at least 30 minutes from now "
            f"(earliest: {earliest:%Y-%m-%d %H:%M})",
        )
    if pickup_time > latest:
        return PickupValidation(
            False,
            f"Pickup time cannot be more than 10 days ahead (latest: {latest:%Y-%m-%d})",
        )
    return PickupValidation(True)


def booking_type_info(
    booking_type: str, config: PricingConfig = DEFAULT_PRICING_CONFIG
) -> Dict[str, str]:
    for rule in config.booking_type_rules:
        if rule.id == booking_type:
            return {"id": rule.id, "label": rule.label, "description": rule.description}
    # Stored fares can outlive a rate-table override that dropped their type.
    return {"id": booking_type, "label": booking_type, "description": "Booking type adjustment"}


def peak_time_description(config: PricingConfig = DEFAULT_PRICING_CONFIG) -> str:
    windows = " and ".join(
        f"{w.start_hour}:00-{w.end_hour}:00" for w in config.peak_windows
    )
    pct = round((config.peak_multiplier - 1) * 100)
    return f"Peak hours: {windows} (+{pct}%)"


__all__ = [
    "MAX_ADVANCE",
    "MIN_NOTICE",
    "PickupValidation",
    "booking_type_info",
    "maximum_pickup_time",
    "minimum_pickup_time",
    "peak_time_description",
    "round_up_to_quarter",
    "validate_pickup_time",
]
