"""SQLite persistence for fare breakdowns."""
from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from accessride.fare_service import (
    FareBreakdown,
    breakdown_from_dict,
    breakdown_to_dict,
    reporting_fields,
)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS pricing_logs (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  booking_id TEXT NOT NULL,
  calculated_fare REAL NOT NULL,
  breakdown_json TEXT NOT NULL,
  peak_multiplier REAL,
  base_fare REAL NOT NULL,
  distance_cost REAL NOT NULL,
  vehicle_features_cost REAL,
  support_workers_cost REAL,
  peak_time_surcharge REAL,
  booking_type_discount REAL,
  booking_type TEXT,
  lead_time_hours REAL,
  is_estimated INTEGER NOT NULL DEFAULT 1 CHECK(is_estimated IN (0,1)),
  created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_pricing_logs_booking ON pricing_logs(booking_id, is_estimated);
"""


def ensure_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(SCHEMA_SQL)
    conn.commit()


def persist_fare(conn: sqlite3.Connection, booking_id: str, breakdown: FareBreakdown) -> int:
    """Store *breakdown* verbatim plus its reporting columns; returns the row id."""
    fields = reporting_fields(breakdown)
    cursor = conn.execute(
        """
        INSERT INTO pricing_logs (
            booking_id, calculated_fare, breakdown_json, peak_multiplier,
            base_fare, distance_cost, vehicle_features_cost, support_workers_cost,
            peak_time_surcharge, booking_type_discount, booking_type,
            lead_time_hours, is_estimated, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            booking_id,
            fields["calculated_fare"],
            json.dumps(breakdown_to_dict(breakdown)),
            fields["peak_multiplier"],
            fields["base_fare"],
            fields["distance_cost"],
            fields["vehicle_features_cost"],
            fields["support_workers_cost"],
            fields["peak_time_surcharge"],
            fields["booking_type_discount"],
            fields["booking_type"],
            fields["lead_time_hours"],
            int(fields["is_estimated"]),
            datetime.now(timezone.utc).isoformat(),
        ),
    )
    conn.commit()
    return int(cursor.lastrowid)


def load_breakdown(
    conn: sqlite3.Connection, booking_id: str, estimated: bool = True
) -> Optional[FareBreakdown]:
    """Return the most recent estimate (or final fare) stored for *booking_id*."""
    row = conn.execute(
        """
        SELECT breakdown_json FROM pricing_logs
        WHERE booking_id = ? AND is_estimated = ?
        ORDER BY id DESC
        LIMIT 1
        """,
        (booking_id, int(estimated)),
    ).fetchone()
    if row is None:
        return None
    return breakdown_from_dict(json.loads(row[0]))


__all__ = ["SCHEMA_SQL", "ensure_schema", "load_breakdown", "persist_fare"]
