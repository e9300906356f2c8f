import sqlite3
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from accessride.fare_service import quote_fare, reconcile_fare
from accessride.pricing import DEFAULT_PRICING_CONFIG
from accessride.repo import ensure_schema, load_breakdown, persist_fare

PICKUP = datetime(2024, 7, 9, 8, 0)


@pytest.fixture()
def conn():
    connection = sqlite3.connect(":memory:")
    ensure_schema(connection)
    yield connection
    connection.close()


@pytest.fixture()
def estimate():
    return quote_fare(
        ["wheelchair"],
        1,
        6.5,
        50,
        pickup_time=PICKUP,
        booking_time=PICKUP - timedelta(hours=2),
        config=DEFAULT_PRICING_CONFIG,
    )


def test_persist_fare_stores_reporting_columns(conn, estimate) -> None:
    rowid = persist_fare(conn, "BK-1", estimate)

    row = conn.execute(
        """
        SELECT booking_id, calculated_fare, base_fare, distance_cost,
               vehicle_features_cost, support_workers_cost, peak_time_surcharge,
               booking_type, is_estimated
        FROM pricing_logs WHERE id = ?
        """,
        (rowid,),
    ).fetchone()
    assert rowid == 1
    assert row[0] == "BK-1"
    assert row[1] == pytest.approx(float(estimate.estimated_total))
    assert row[2:7] == (
        pytest.approx(8.5),
        pytest.approx(14.3),
        pytest.approx(6.0),
        pytest.approx(20.5),
        pytest.approx(float(estimate.peak.surcharge)),
    )
    assert row[7] == "immediate"
    assert row[8] == 1


def test_load_breakdown_returns_exact_estimate_and_final(conn, estimate) -> None:
    final = reconcile_fare(estimate, 70, PICKUP + timedelta(minutes=70), config=DEFAULT_PRICING_CONFIG)
    persist_fare(conn, "BK-2", estimate)
    persist_fare(conn, "BK-2", final)

    assert load_breakdown(conn, "BK-2") == estimate
    assert load_breakdown(conn, "BK-2", estimated=False) == final
    assert load_breakdown(conn, "BK-missing") is None


def test_ensure_schema_is_idempotent(conn) -> None:
    ensure_schema(conn)
    tables = {
        row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    }
    assert "pricing_logs" in tables
