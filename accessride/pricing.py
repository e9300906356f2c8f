"""Rate table, booking classification, line items and peak-window rules."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
MAX_SUPPORT_WORKERS = 4

BOOKING_IMMEDIATE = "immediate"
BOOKING_SCHEDULED = "scheduled"
BOOKING_ADVANCE = "advance"


class InvalidFareInput(ValueError):
    """Raised when a caller passes values outside the engine's contract."""


@dataclass(frozen=True)
class VehicleFeature:
    id: str
    name: str
    description: str
    surcharge: Decimal


@dataclass(frozen=True)
class SupportWorkerTier:
    count: int
    hourly_rate: Decimal  # per worker, per hour
    description: str


@dataclass(frozen=True)
class PeakWindow:
    label: str
    start_hour: int
    end_hour: int  # exclusive

    def contains(self, hour: int) -> bool:
        return self.start_hour <= hour < self.end_hour


@dataclass(frozen=True)
class BookingTypeRule:
    id: str
    label: str
    max_lead_hours: Optional[float]  # None for the open-ended tier
    multiplier: Decimal
    description: str
    includes_max: bool = True

    def matches(self, hours: float) -> bool:
        if self.max_lead_hours is None:
            return True
        if self.includes_max:
            return hours <= self.max_lead_hours
        return hours < self.max_lead_hours


@dataclass(frozen=True)
class PricingConfig:
    base_fare: Decimal
    vehicle_features: Tuple[VehicleFeature, ...]
    support_worker_tiers: Tuple[SupportWorkerTier, ...]
    distance_rate_per_mile: Decimal
    peak_multiplier: Decimal
    peak_windows: Tuple[PeakWindow, ...]
    booking_type_rules: Tuple[BookingTypeRule, ...]
    currency_symbol: str = "£"

    def __post_init__(self) -> None:
        if self.peak_multiplier <= 1:
            raise ValueError("peak_multiplier must be greater than 1.0")
        counts = [tier.count for tier in self.support_worker_tiers]
        if len(set(counts)) != len(counts):
            raise ValueError("support_worker_tiers contains duplicate worker counts")
        for window in self.peak_windows:
            if not 0 <= window.start_hour < window.end_hour <= 24:
                raise ValueError(f"Invalid peak window hours for '{window.label}'")
        if not self.booking_type_rules:
            raise ValueError("booking_type_rules must not be empty")
        if self.booking_type_rules[-1].max_lead_hours is not None:
            raise ValueError("The last booking type rule must have no upper bound")

    def tier(self, count: int) -> Optional[SupportWorkerTier]:
        return next((t for t in self.support_worker_tiers if t.count == count), None)


DEFAULT_VEHICLE_FEATURES: Sequence[VehicleFeature] = (
    VehicleFeature(
        id="wheelchair",
        name="Wheelchair Accessible",
        description="Vehicle equipped with wheelchair ramp or lift",
        surcharge=Decimal("6.00"),
    ),
    VehicleFeature(
        id="patient-lift",
        name="Patient Lift",
        description="Hydraulic lift for mobility assistance",
        surcharge=Decimal("12.00"),
    ),
    VehicleFeature(
        id="oxygen-support",
        name="Oxygen Support",
        description="Vehicle equipped for oxygen tank transport",
        surcharge=Decimal("15.00"),
    ),
)

DEFAULT_SUPPORT_WORKER_TIERS: Sequence[SupportWorkerTier] = (
    SupportWorkerTier(0, Decimal("0.00"), "No support needed"),
    SupportWorkerTier(1, Decimal("20.50"), "One trained companion"),
    SupportWorkerTier(2, Decimal("18.50"), "Two support workers (10% discount)"),
    SupportWorkerTier(3, Decimal("17.50"), "Three support workers (15% discount)"),
    SupportWorkerTier(4, Decimal("16.50"), "Four support workers (20% discount)"),
)

DEFAULT_PEAK_WINDOWS: Sequence[PeakWindow] = (
    PeakWindow(label="morning", start_hour=6, end_hour=9),
    PeakWindow(label="evening", start_hour=15, end_hour=18),
)

DEFAULT_BOOKING_TYPE_RULES: Sequence[BookingTypeRule] = (
    BookingTypeRule(
        id=BOOKING_IMMEDIATE,
        label="On-Demand",
        max_lead_hours=3.0,
        multiplier=Decimal("1.5"),
        description="Pickup less than 3hrs from booking: +50% short-notice charge",
        includes_max=False,
    ),
    BookingTypeRule(
        id=BOOKING_SCHEDULED,
        label="Scheduled",
        max_lead_hours=12.0,
        multiplier=Decimal("1.0"),
        description="Pickup within 12hrs from booking: standard fare",
    ),
    BookingTypeRule(
        id=BOOKING_ADVANCE,
        label="Advance",
        max_lead_hours=None,
        multiplier=Decimal("0.9"),
        description="Pickup >12hr from booking: 10% discount",
    ),
)

DEFAULT_PRICING_CONFIG = PricingConfig(
    base_fare=Decimal("8.50"),
    vehicle_features=tuple(DEFAULT_VEHICLE_FEATURES),
    support_worker_tiers=tuple(DEFAULT_SUPPORT_WORKER_TIERS),
    distance_rate_per_mile=Decimal("2.20"),
    peak_multiplier=Decimal("1.15"),
    peak_windows=tuple(DEFAULT_PEAK_WINDOWS),
    booking_type_rules=tuple(DEFAULT_BOOKING_TYPE_RULES),
)


# ----------------------------------------------------------------------
# Engine values
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class BookingClassification:
    type: str
    lead_time_hours: float
    multiplier: Decimal
    adjustment: Decimal = ZERO


@dataclass(frozen=True)
class FeatureLine:
    id: str
    name: str
    price: Decimal


@dataclass(frozen=True)
class SupportWorkerLine:
    count: int
    billed_hours: int
    hourly_rate: Decimal
    total_cost: Decimal


@dataclass(frozen=True)
class DistanceLine:
    miles: Decimal
    rate_per_mile: Decimal
    total_cost: Decimal


@dataclass(frozen=True)
class LineItems:
    base_fare: Decimal
    vehicle_features: Tuple[FeatureLine, ...]
    support_workers: SupportWorkerLine
    distance: DistanceLine

    @property
    def vehicle_features_cost(self) -> Decimal:
        return sum((line.price for line in self.vehicle_features), ZERO)


@dataclass(frozen=True)
class PeakLine:
    is_peak: bool
    multiplier: Decimal
    surcharge: Decimal = ZERO


def to_decimal(value: object, field_name: str) -> Decimal:
    """Convert a caller-supplied number to ``Decimal`` without float noise."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise InvalidFareInput(f"{field_name} must be a number, got {value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidFareInput(f"{field_name} must be finite, got {value!r}")
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise InvalidFareInput(f"{field_name} must be finite, got {value!r}")
        return value
    return Decimal(str(value))


def _require_non_negative(value: object, field_name: str) -> Decimal:
    amount = to_decimal(value, field_name)
    if amount < 0:
        raise InvalidFareInput(f"{field_name} must be ≥ 0, got {value!r}")
    return amount


def _require_worker_count(count: object) -> int:
    if isinstance(count, bool) or not isinstance(count, int):
        raise InvalidFareInput(f"support_worker_count must be an integer, got {count!r}")
    if count < 0 or count > MAX_SUPPORT_WORKERS:
        raise InvalidFareInput(
            f"support_worker_count must be between 0 and {MAX_SUPPORT_WORKERS}, got {count}"
        )
    return count


# ----------------------------------------------------------------------
# Booking classifier
# ----------------------------------------------------------------------
def lead_time_hours(booking_time: datetime, pickup_time: datetime) -> float:
    try:
        delta = pickup_time - booking_time
    except TypeError as exc:
        raise InvalidFareInput(
            "booking_time and pickup_time must both be naive or both be timezone-aware"
        ) from exc
    hours = delta.total_seconds() / 3600.0
    if hours < 0:
        raise InvalidFareInput(
            f"pickup_time {pickup_time.isoformat()} is before booking_time {booking_time.isoformat()}"
        )
    return hours


def classify_lead_time(
    hours: float, config: PricingConfig = DEFAULT_PRICING_CONFIG
) -> BookingClassification:
    if isinstance(hours, bool) or not isinstance(hours, (int, float)) or not math.isfinite(hours):
        raise InvalidFareInput(f"lead time must be a finite number of hours, got {hours!r}")
    if hours < 0:
        raise InvalidFareInput(f"lead time must be ≥ 0 hours, got {hours}")
    # The last rule is unbounded, so the walk always matches.
    rule = next(r for r in config.booking_type_rules if r.matches(hours))
    return BookingClassification(type=rule.id, lead_time_hours=hours, multiplier=rule.multiplier)


def classify_booking(
    booking_time: datetime,
    pickup_time: datetime,
    config: PricingConfig = DEFAULT_PRICING_CONFIG,
) -> BookingClassification:
    return classify_lead_time(lead_time_hours(booking_time, pickup_time), config)


# ----------------------------------------------------------------------
# Line-item composer
# ----------------------------------------------------------------------
def billed_hours(duration_minutes: object) -> int:
    """Support-worker hours charged for a trip; never less than one."""
    minutes = _require_non_negative(duration_minutes, "duration_minutes")
    return max(1, math.ceil(minutes / 60))


def support_worker_rate(count: int, config: PricingConfig = DEFAULT_PRICING_CONFIG) -> Decimal:
    count = _require_worker_count(count)
    tier = config.tier(count)
    if tier is None:
        raise InvalidFareInput(f"No support worker tier configured for {count} worker(s)")
    return tier.hourly_rate


def compose_support_workers(
    count: int,
    duration_minutes: object,
    config: PricingConfig = DEFAULT_PRICING_CONFIG,
) -> SupportWorkerLine:
    rate = support_worker_rate(count, config)
    hours = billed_hours(duration_minutes)
    # The tier rate is already discounted per head and is still charged per head.
    total = hours * rate * count if count > 0 else ZERO
    return SupportWorkerLine(count=count, billed_hours=hours, hourly_rate=rate, total_cost=total)


def compose_feature_lines(
    selected_ids: Iterable[str], config: PricingConfig = DEFAULT_PRICING_CONFIG
) -> Tuple[FeatureLine, ...]:
    if isinstance(selected_ids, str):
        raise InvalidFareInput(
            f"vehicle feature ids must be a collection of ids, got the string {selected_ids!r}"
        )
    selected = {fid for fid in selected_ids}
    unknown = selected - {f.id for f in config.vehicle_features}
    if unknown:
        logger.debug("Ignoring unknown vehicle feature id(s): %s", ", ".join(sorted(unknown)))
    lines: List[FeatureLine] = []
    for feature in config.vehicle_features:
        if feature.id not in selected:
            continue
        lines.append(FeatureLine(id=feature.id, name=feature.name, price=feature.surcharge))
    return tuple(lines)


def compose_distance(
    distance_miles: object, config: PricingConfig = DEFAULT_PRICING_CONFIG
) -> DistanceLine:
    miles = _require_non_negative(distance_miles, "distance_miles")
    rate = config.distance_rate_per_mile
    return DistanceLine(miles=miles, rate_per_mile=rate, total_cost=miles * rate)


def compose_line_items(
    selected_ids: Iterable[str],
    support_worker_count: int,
    distance_miles: object,
    duration_minutes: object,
    config: PricingConfig = DEFAULT_PRICING_CONFIG,
) -> LineItems:
    return LineItems(
        base_fare=config.base_fare,
        vehicle_features=compose_feature_lines(selected_ids, config),
        support_workers=compose_support_workers(support_worker_count, duration_minutes, config),
        distance=compose_distance(distance_miles, config),
    )


# ----------------------------------------------------------------------
# Peak-window evaluator
# ----------------------------------------------------------------------
def is_peak_hour(hour: int, config: PricingConfig = DEFAULT_PRICING_CONFIG) -> bool:
    return any(window.contains(hour) for window in config.peak_windows)


def evaluate_peak(instant: datetime, config: PricingConfig = DEFAULT_PRICING_CONFIG) -> PeakLine:
    """Peak status from the instant's own hour of day; minutes and date are ignored."""
    return PeakLine(is_peak=is_peak_hour(instant.hour, config), multiplier=config.peak_multiplier)


__all__ = [
    "BOOKING_ADVANCE",
    "BOOKING_IMMEDIATE",
    "BOOKING_SCHEDULED",
    "BookingClassification",
    "BookingTypeRule",
    "DEFAULT_PRICING_CONFIG",
    "DistanceLine",
    "FeatureLine",
    "InvalidFareInput",
    "LineItems",
    "MAX_SUPPORT_WORKERS",
    "PeakLine",
    "PeakWindow",
    "PricingConfig",
    "SupportWorkerLine",
    "SupportWorkerTier",
    "VehicleFeature",
    "billed_hours",
    "classify_booking",
    "classify_lead_time",
    "compose_distance",
    "compose_feature_lines",
    "compose_line_items",
    "compose_support_workers",
    "evaluate_peak",
    "is_peak_hour",
    "lead_time_hours",
    "support_worker_rate",
    "to_decimal",
]
