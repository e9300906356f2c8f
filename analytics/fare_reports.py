"""Estimate versus final fare reports built on ``pricing_logs``."""
from __future__ import annotations

import sqlite3
from typing import Optional

import pandas as pd

REPORT_COLUMNS = (
    "id",
    "booking_id",
    "calculated_fare",
    "base_fare",
    "distance_cost",
    "vehicle_features_cost",
    "support_workers_cost",
    "peak_time_surcharge",
    "booking_type_discount",
    "booking_type",
    "lead_time_hours",
    "is_estimated",
    "created_at",
)


def load_pricing_logs(
    conn: sqlite3.Connection, booking_type: Optional[str] = None
) -> pd.DataFrame:
    """Load stored fare rows, newest first, optionally for one booking type."""
    query = f"SELECT {', '.join(REPORT_COLUMNS)} FROM pricing_logs"
    params: tuple = ()
    if booking_type:
        query += " WHERE booking_type = ?"
        params = (booking_type,)
    query += " ORDER BY created_at DESC, id DESC"
    try:
        df = pd.read_sql_query(query, conn, params=params)
    except Exception as exc:  # pragma: no cover - surfaces friendly error
        raise RuntimeError("pricing_logs table is required for fare reports") from exc
    df["is_estimated"] = df["is_estimated"].astype(bool)
    if not df.empty:
        df["created_at"] = pd.to_datetime(df["created_at"], utc=True, errors="coerce")
    return df


def reconciliation_drift(df: pd.DataFrame) -> pd.DataFrame:
    """Pair each booking's latest estimate with its final fare.

    Bookings that were never reconciled are dropped.
    """
    columns = ["booking_id", "booking_type", "estimated_fare", "final_fare", "difference"]
    if df.empty:
        return pd.DataFrame(columns=columns)

    latest = df.sort_values("id").groupby(["booking_id", "is_estimated"], as_index=False).last()
    estimates = latest[latest["is_estimated"]][["booking_id", "booking_type", "calculated_fare"]]
    finals = latest[~latest["is_estimated"]][["booking_id", "calculated_fare"]]
    merged = estimates.merge(finals, on="booking_id", suffixes=("_estimate", "_final"))
    merged = merged.rename(
        columns={
            "calculated_fare_estimate": "estimated_fare",
            "calculated_fare_final": "final_fare",
        }
    )
    merged["difference"] = merged["final_fare"] - merged["estimated_fare"]
    return merged[columns].sort_values("booking_id").reset_index(drop=True)


def drift_by_booking_type(df: pd.DataFrame) -> pd.DataFrame:
    """Summarise reconciliation drift per booking type."""
    drift = reconciliation_drift(df)
    columns = ["booking_type", "bookings", "mean_estimate", "mean_final", "mean_difference"]
    if drift.empty:
        return pd.DataFrame(columns=columns)
    summary = (
        drift.groupby("booking_type")
        .agg(
            bookings=("booking_id", "count"),
            mean_estimate=("estimated_fare", "mean"),
            mean_final=("final_fare", "mean"),
            mean_difference=("difference", "mean"),
        )
        .reset_index()
    )
    return summary[columns]


__all__ = [
    "REPORT_COLUMNS",
    "drift_by_booking_type",
    "load_pricing_logs",
    "reconciliation_drift",
]
