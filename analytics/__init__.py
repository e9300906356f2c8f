"""Reporting utilities over stored fare breakdowns."""

# pandas-backed helpers live in ``analytics.fare_reports`` so importing the
# package stays cheap.
from .db import connection_scope, get_connection

__all__ = ["connection_scope", "get_connection"]
