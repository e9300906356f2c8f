import sqlite3
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from analytics.db import connection_scope
from analytics.fare_reports import drift_by_booking_type, load_pricing_logs, reconciliation_drift
from accessride.fare_service import quote_fare, reconcile_fare
from accessride.pricing import DEFAULT_PRICING_CONFIG
from accessride.repo import ensure_schema, persist_fare


def _store(conn, booking_id, lead_hours, actual_minutes=None, workers=1):
    pickup = datetime(2024, 8, 1, 12, 0)
    estimate = quote_fare(
        [],
        workers,
        10,
        45,
        pickup_time=pickup,
        booking_time=pickup - timedelta(hours=lead_hours),
        config=DEFAULT_PRICING_CONFIG,
    )
    persist_fare(conn, booking_id, estimate)
    if actual_minutes is not None:
        final = reconcile_fare(
            estimate,
            actual_minutes,
            pickup + timedelta(minutes=actual_minutes),
            config=DEFAULT_PRICING_CONFIG,
        )
        persist_fare(conn, booking_id, final)
        return estimate, final
    return estimate, None


@pytest.fixture()
def conn():
    connection = sqlite3.connect(":memory:")
    ensure_schema(connection)
    yield connection
    connection.close()


def test_load_pricing_logs_returns_frame(conn) -> None:
    _store(conn, "A", 1, actual_minutes=100)
    _store(conn, "B", 24)

    df = load_pricing_logs(conn)
    assert len(df) == 3
    assert df["is_estimated"].dtype == bool
    assert set(df["booking_type"]) == {"immediate", "advance"}

    only_advance = load_pricing_logs(conn, booking_type="advance")
    assert list(only_advance["booking_id"]) == ["B"]


def test_reconciliation_drift_pairs_estimates_with_finals(conn) -> None:
    _, final_a = _store(conn, "A", 1, actual_minutes=100)
    _, final_c = _store(conn, "C", 6, actual_minutes=30)
    _store(conn, "B", 24)

    drift = reconciliation_drift(load_pricing_logs(conn))

    assert list(drift["booking_id"]) == ["A", "C"]
    row_a = drift.iloc[0]
    assert row_a["estimated_fare"] == pytest.approx(float(final_a.estimated_total))
    assert row_a["final_fare"] == pytest.approx(float(final_a.actual_total))
    assert row_a["difference"] == pytest.approx(float(final_a.difference))
    assert drift.iloc[1]["difference"] == pytest.approx(0.0)


def test_drift_by_booking_type(conn) -> None:
    _store(conn, "A", 1, actual_minutes=100)
    _store(conn, "D", 2, actual_minutes=45)
    _store(conn, "C", 6, actual_minutes=30)

    summary = drift_by_booking_type(load_pricing_logs(conn)).set_index("booking_type")

    assert summary.loc["immediate", "bookings"] == 2
    assert summary.loc["scheduled", "bookings"] == 1
    # One extra billed hour for one worker at 20.50, lifted 50% for short notice.
    assert summary.loc["immediate", "mean_difference"] == pytest.approx(20.5 * 1.5 / 2)


def test_empty_reports(conn) -> None:
    df = load_pricing_logs(conn)
    assert df.empty
    assert reconciliation_drift(df).empty
    assert isinstance(drift_by_booking_type(df), pd.DataFrame)


def test_connection_scope_creates_schema(tmp_path: Path) -> None:
    db_path = tmp_path / "fares.db"
    with connection_scope(str(db_path)) as scoped:
        assert load_pricing_logs(scoped).empty
