#!/usr/bin/env python3
"""Quick fare quote CLI for AccessRide.

Quotes a journey from distance, duration and options, optionally reconciles
it against the actual trip facts, persists both to SQLite and prints a
copy-paste summary.
"""
from __future__ import annotations

import argparse
import logging
import sqlite3
import sys
import uuid
from datetime import datetime
from typing import Sequence

from accessride.booking_window import peak_time_description, validate_pickup_time
from accessride.config import DB_PATH, LOG_LEVEL, get_pricing_config
from accessride.fare_service import build_summary, quote_fare, reconcile_fare
from accessride.pricing import InvalidFareInput
from accessride.repo import ensure_schema, persist_fare


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Quick fare quote CLI")
    parser.add_argument("--pickup", required=True, type=datetime.fromisoformat)
    parser.add_argument(
        "--booking-time",
        type=datetime.fromisoformat,
        dest="booking_time",
        help="Defaults to now",
    )
    parser.add_argument("--miles", type=float, required=True)
    parser.add_argument("--minutes", type=float, required=True)
    parser.add_argument("--workers", type=int, default=0)
    parser.add_argument("--feature", action="append", dest="features", default=[])
    parser.add_argument("--actual-minutes", type=float, dest="actual_minutes")
    parser.add_argument("--trip-end", type=datetime.fromisoformat, dest="trip_end")
    parser.add_argument("--booking-id", dest="booking_id")
    parser.add_argument("--db", default=DB_PATH)
    parser.add_argument(
        "--no-save", action="store_true", help="Do not persist the fare to the database"
    )
    args = parser.parse_args(argv)
    if (args.actual_minutes is None) != (args.trip_end is None):
        parser.error("--actual-minutes and --trip-end must be given together")
    return args


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=LOG_LEVEL)
    args = parse_args(sys.argv[1:] if argv is None else argv)
    config = get_pricing_config()
    booking_time = args.booking_time or datetime.now(args.pickup.tzinfo)

    window = validate_pickup_time(args.pickup, booking_time)
    if not window.valid:
        print(window.error)
        return 1

    try:
        estimate = quote_fare(
            args.features,
            args.workers,
            args.miles,
            args.minutes,
            pickup_time=args.pickup,
            booking_time=booking_time,
            config=config,
        )
        final = None
        if args.actual_minutes is not None:
            final = reconcile_fare(estimate, args.actual_minutes, args.trip_end, config=config)
    except InvalidFareInput as exc:
        print(str(exc))
        return 1

    booking_id = args.booking_id or uuid.uuid4().hex[:12]
    if not args.no_save:
        conn = sqlite3.connect(args.db)
        try:
            ensure_schema(conn)
            persist_fare(conn, booking_id, estimate)
            if final is not None:
                persist_fare(conn, booking_id, final)
        finally:
            conn.close()

    print("\n--- Fare Summary ---")
    print(build_summary(final or estimate, config))
    print(f"\n{peak_time_description(config)}")
    if not args.no_save:
        print(f"\nSaved booking {booking_id} to {args.db}.")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
