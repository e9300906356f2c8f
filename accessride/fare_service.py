"""Fare totals, quoting and post-trip reconciliation."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from accessride.booking_window import booking_type_info
from accessride.config import get_pricing_config
from accessride.pricing import (
    ZERO,
    BookingClassification,
    DistanceLine,
    FeatureLine,
    InvalidFareInput,
    LineItems,
    PeakLine,
    PricingConfig,
    SupportWorkerLine,
    billed_hours,
    classify_booking,
    compose_line_items,
    evaluate_peak,
)

logger = logging.getLogger(__name__)

PENNY = Decimal("0.01")


@dataclass(frozen=True)
class FareTotals:
    subtotal: Decimal
    after_booking_type: Decimal
    booking_adjustment: Decimal
    peak_surcharge: Decimal
    total: Decimal


@dataclass(frozen=True)
class FareBreakdown:
    """Itemized fare for one booking.

    ``actual_total`` is only set on the value returned by :func:`reconcile_fare`;
    the estimate it was derived from is left untouched.
    """

    base_fare: Decimal
    vehicle_features: Tuple[FeatureLine, ...]
    support_workers: SupportWorkerLine
    distance: DistanceLine
    peak: PeakLine
    booking_type: BookingClassification
    estimated_total: Decimal
    actual_total: Optional[Decimal] = None

    @property
    def is_estimated(self) -> bool:
        return self.actual_total is None

    @property
    def final_total(self) -> Decimal:
        return self.estimated_total if self.actual_total is None else self.actual_total

    @property
    def difference(self) -> Decimal:
        """Actual minus estimated total; zero until reconciled."""
        return self.final_total - self.estimated_total

    @property
    def vehicle_features_cost(self) -> Decimal:
        return sum((line.price for line in self.vehicle_features), ZERO)

    def line_items(self) -> LineItems:
        return LineItems(
            base_fare=self.base_fare,
            vehicle_features=self.vehicle_features,
            support_workers=self.support_workers,
            distance=self.distance,
        )


def compute_totals(lines: LineItems, booking_multiplier: Decimal, peak: PeakLine) -> FareTotals:
    subtotal = (
        lines.base_fare
        + lines.vehicle_features_cost
        + lines.support_workers.total_cost
        + lines.distance.total_cost
    )
    after_booking_type = subtotal * booking_multiplier
    booking_adjustment = after_booking_type - subtotal
    # Peak surcharge compounds on the booking-type adjusted amount.
    peak_surcharge = after_booking_type * (peak.multiplier - 1) if peak.is_peak else ZERO
    return FareTotals(
        subtotal=subtotal,
        after_booking_type=after_booking_type,
        booking_adjustment=booking_adjustment,
        peak_surcharge=peak_surcharge,
        total=after_booking_type + peak_surcharge,
    )


def totalize(
    classification: BookingClassification, lines: LineItems, peak: PeakLine
) -> FareBreakdown:
    totals = compute_totals(lines, classification.multiplier, peak)
    return FareBreakdown(
        base_fare=lines.base_fare,
        vehicle_features=lines.vehicle_features,
        support_workers=lines.support_workers,
        distance=lines.distance,
        peak=replace(peak, surcharge=totals.peak_surcharge),
        booking_type=replace(classification, adjustment=totals.booking_adjustment),
        estimated_total=totals.total,
    )


def quote_fare(
    selected_feature_ids: Iterable[str],
    support_worker_count: int,
    distance_miles: object,
    duration_minutes: object,
    *,
    pickup_time: datetime,
    booking_time: Optional[datetime] = None,
    config: Optional[PricingConfig] = None,
) -> FareBreakdown:
    """Price a journey before it happens.

    ``booking_time`` defaults to now (in ``pickup_time``'s timezone when it has
    one). Lead time is measured from it once and carried on the breakdown.
    """
    config = config or get_pricing_config()
    if booking_time is None:
        booking_time = datetime.now(pickup_time.tzinfo)

    classification = classify_booking(booking_time, pickup_time, config)
    lines = compose_line_items(
        selected_feature_ids, support_worker_count, distance_miles, duration_minutes, config
    )
    peak = evaluate_peak(pickup_time, config)
    breakdown = totalize(classification, lines, peak)
    logger.debug(
        "Quoted %s fare %s (lead %.2fh, peak=%s)",
        classification.type,
        breakdown.estimated_total,
        classification.lead_time_hours,
        peak.is_peak,
    )
    return breakdown


def reconcile_fare(
    estimate: FareBreakdown,
    actual_duration_minutes: object,
    trip_end_time: datetime,
    *,
    config: Optional[PricingConfig] = None,
) -> FareBreakdown:
    """Return a finalized copy of *estimate* priced on the actual trip facts.

    Only the support-worker hours and the peak status are re-derived; the
    booking type keeps its quoted multiplier and every other line is carried
    over unchanged.
    """
    if estimate.actual_total is not None:
        raise InvalidFareInput("Fare breakdown has already been reconciled")
    config = config or get_pricing_config()

    workers = estimate.support_workers
    hours = billed_hours(actual_duration_minutes)
    # Quoted tier rate is kept even if the rate table changed since.
    actual_workers = replace(
        workers,
        billed_hours=hours,
        total_cost=hours * workers.hourly_rate * workers.count if workers.count > 0 else ZERO,
    )
    end_peak = evaluate_peak(trip_end_time, config)
    actual_peak = PeakLine(is_peak=end_peak.is_peak, multiplier=estimate.peak.multiplier)

    lines = replace(estimate.line_items(), support_workers=actual_workers)
    totals = compute_totals(lines, estimate.booking_type.multiplier, actual_peak)

    final = replace(
        estimate,
        support_workers=actual_workers,
        peak=replace(actual_peak, surcharge=totals.peak_surcharge),
        actual_total=totals.total,
    )
    logger.debug(
        "Reconciled fare: estimated %s, actual %s", estimate.estimated_total, final.actual_total
    )
    return final


# ----------------------------------------------------------------------
# Presentation and storage helpers
# ----------------------------------------------------------------------
def format_currency(amount: Decimal, symbol: str = "£") -> str:
    rounded = Decimal(str(amount)).quantize(PENNY, rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol}{abs(rounded):,.2f}"


def build_summary(breakdown: FareBreakdown, config: Optional[PricingConfig] = None) -> str:
    config = config or get_pricing_config()
    symbol = config.currency_symbol
    info = booking_type_info(breakdown.booking_type.type, config)
    workers = breakdown.support_workers
    lines = [
        f"Booking type: {info['label']} ({breakdown.booking_type.lead_time_hours:.1f} h lead time)",
        "",
        f"Base fare: {format_currency(breakdown.base_fare, symbol)}",
    ]
    if breakdown.vehicle_features:
        lines.append("Vehicle features:")
        for item in breakdown.vehicle_features:
            lines.append(f"  - {item.name}: {format_currency(item.price, symbol)}")
    else:
        lines.append("Vehicle features: none")
    if workers.count:
        lines.append(
            f"Support workers: {workers.count} × {workers.billed_hours} h"
            f" @ {format_currency(workers.hourly_rate, symbol)}/h:"
            f" {format_currency(workers.total_cost, symbol)}"
        )
    else:
        lines.append("Support workers: none")
    lines.append(
        f"Distance: {breakdown.distance.miles} mi"
        f" @ {format_currency(breakdown.distance.rate_per_mile, symbol)}/mi:"
        f" {format_currency(breakdown.distance.total_cost, symbol)}"
    )
    adjustment = breakdown.booking_type.adjustment
    if adjustment:
        sign = "+" if adjustment > 0 else ""
        lines.append(f"{info['description']}: {sign}{format_currency(adjustment, symbol)}")
    if breakdown.peak.is_peak:
        pct = (breakdown.peak.multiplier - 1) * 100
        lines.append(
            f"Peak time surcharge ({pct:.0f}%): +{format_currency(breakdown.peak.surcharge, symbol)}"
        )
    else:
        lines.append("Peak time surcharge: not applied")
    lines.append("")
    lines.append(f"Estimated total: {format_currency(breakdown.estimated_total, symbol)}")
    if breakdown.actual_total is not None:
        lines.append(f"Final total: {format_currency(breakdown.actual_total, symbol)}")
        diff = breakdown.difference
        if abs(diff) >= PENNY:
            label = "Additional charge" if diff > 0 else "Saving"
            lines.append(f"{label}: {format_currency(abs(diff), symbol)}")
    return "\n".join(lines)


def _money(value: Decimal) -> str:
    return str(value)


def breakdown_to_dict(breakdown: FareBreakdown) -> Dict[str, Any]:
    """JSON-safe representation; amounts are kept as decimal strings."""
    return {
        "base_fare": _money(breakdown.base_fare),
        "vehicle_features": [
            {"id": line.id, "name": line.name, "price": _money(line.price)}
            for line in breakdown.vehicle_features
        ],
        "support_workers": {
            "count": breakdown.support_workers.count,
            "billed_hours": breakdown.support_workers.billed_hours,
            "hourly_rate": _money(breakdown.support_workers.hourly_rate),
            "total_cost": _money(breakdown.support_workers.total_cost),
        },
        "distance": {
            "miles": _money(breakdown.distance.miles),
            "rate_per_mile": _money(breakdown.distance.rate_per_mile),
            "total_cost": _money(breakdown.distance.total_cost),
        },
        "peak": {
            "is_peak": breakdown.peak.is_peak,
            "multiplier": _money(breakdown.peak.multiplier),
            "surcharge": _money(breakdown.peak.surcharge),
        },
        "booking_type": {
            "type": breakdown.booking_type.type,
            "lead_time_hours": breakdown.booking_type.lead_time_hours,
            "multiplier": _money(breakdown.booking_type.multiplier),
            "adjustment": _money(breakdown.booking_type.adjustment),
        },
        "estimated_total": _money(breakdown.estimated_total),
        "actual_total": (
            None if breakdown.actual_total is None else _money(breakdown.actual_total)
        ),
    }


def breakdown_from_dict(data: Dict[str, Any]) -> FareBreakdown:
    workers = data["support_workers"]
    distance = data["distance"]
    peak = data["peak"]
    booking = data["booking_type"]
    features: List[FeatureLine] = [
        FeatureLine(id=item["id"], name=item["name"], price=Decimal(item["price"]))
        for item in data["vehicle_features"]
    ]
    actual = data.get("actual_total")
    return FareBreakdown(
        base_fare=Decimal(data["base_fare"]),
        vehicle_features=tuple(features),
        support_workers=SupportWorkerLine(
            count=int(workers["count"]),
            billed_hours=int(workers["billed_hours"]),
            hourly_rate=Decimal(workers["hourly_rate"]),
            total_cost=Decimal(workers["total_cost"]),
        ),
        distance=DistanceLine(
            miles=Decimal(distance["miles"]),
            rate_per_mile=Decimal(distance["rate_per_mile"]),
            total_cost=Decimal(distance["total_cost"]),
        ),
        peak=PeakLine(
            is_peak=bool(peak["is_peak"]),
            multiplier=Decimal(peak["multiplier"]),
            surcharge=Decimal(peak["surcharge"]),
        ),
        booking_type=BookingClassification(
            type=booking["type"],
            lead_time_hours=float(booking["lead_time_hours"]),
            multiplier=Decimal(booking["multiplier"]),
            adjustment=Decimal(booking["adjustment"]),
        ),
        estimated_total=Decimal(data["estimated_total"]),
        actual_total=None if actual is None else Decimal(actual),
    )


def reporting_fields(breakdown: FareBreakdown) -> Dict[str, Any]:
    """Flattened subset stored next to each booking for reporting."""
    return {
        "calculated_fare": float(breakdown.final_total),
        "base_fare": float(breakdown.base_fare),
        "distance_cost": float(breakdown.distance.total_cost),
        "vehicle_features_cost": float(breakdown.vehicle_features_cost),
        "support_workers_cost": float(breakdown.support_workers.total_cost),
        "peak_time_surcharge": float(breakdown.peak.surcharge),
        "peak_multiplier": float(breakdown.peak.multiplier) if breakdown.peak.is_peak else None,
        "booking_type_discount": float(breakdown.booking_type.adjustment),
        "booking_type": breakdown.booking_type.type,
        "lead_time_hours": breakdown.booking_type.lead_time_hours,
        "is_estimated": breakdown.is_estimated,
    }


__all__ = [
    "FareBreakdown",
    "FareTotals",
    "breakdown_from_dict",
    "breakdown_to_dict",
    "build_summary",
    "compute_totals",
    "format_currency",
    "quote_fare",
    "reconcile_fare",
    "reporting_fields",
    "totalize",
]
