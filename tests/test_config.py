import json
import sys
from decimal import Decimal
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from accessride import config as config_module
from accessride.config import load_pricing_config, pricing_config_from_dict
from accessride.pricing import DEFAULT_PRICING_CONFIG, classify_lead_time


def test_defaults_without_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(config_module.PRICING_FILE_ENV, raising=False)
    assert load_pricing_config() is DEFAULT_PRICING_CONFIG


def test_override_file_is_read_as_decimal(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "pricing.json"
    path.write_text(
        json.dumps(
            {
                "base_fare": 9.10,
                "distance_rate_per_mile": 2.35,
                "peak_windows": {"morning": {"start": 7, "end": 10}},
                "support_worker_tiers": [
                    {"count": 0, "hourly_rate": 0},
                    {"count": 1, "hourly_rate": 21.25},
                ],
            }
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv(config_module.PRICING_FILE_ENV, str(path))

    loaded = load_pricing_config()

    assert loaded.base_fare == Decimal("9.10")
    assert loaded.distance_rate_per_mile == Decimal("2.35")
    assert [w.label for w in loaded.peak_windows] == ["morning"]
    assert loaded.tier(1).hourly_rate == Decimal("21.25")
    assert loaded.tier(2) is None
    assert loaded.vehicle_features == DEFAULT_PRICING_CONFIG.vehicle_features
    assert loaded.peak_multiplier == DEFAULT_PRICING_CONFIG.peak_multiplier


def test_booking_rules_can_be_overridden() -> None:
    loaded = pricing_config_from_dict(
        {
            "booking_type_rules": [
                {"id": "immediate", "max_lead_hours": 2, "multiplier": "1.4", "includes_max": False},
                {"id": "advance", "max_lead_hours": None, "multiplier": "0.95"},
            ]
        }
    )
    assert classify_lead_time(1.9, loaded).multiplier == Decimal("1.4")
    assert classify_lead_time(2.0, loaded).type == "advance"


def test_malformed_values_raise_value_error() -> None:
    with pytest.raises(ValueError, match="base_fare"):
        pricing_config_from_dict({"base_fare": "lots"})
    with pytest.raises(ValueError, match="peak_multiplier"):
        pricing_config_from_dict({"peak_multiplier": 0.9})


def test_missing_key_in_file_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "pricing.json"
    path.write_text(json.dumps({"vehicle_features": [{"name": "No id"}]}), encoding="utf-8")
    with pytest.raises(ValueError, match="Malformed pricing config"):
        load_pricing_config(str(path))


@pytest.mark.parametrize("value", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_amounts_are_rejected(value) -> None:
    with pytest.raises(ValueError, match="peak_multiplier"):
        pricing_config_from_dict({"peak_multiplier": value})
    with pytest.raises(ValueError, match="base_fare"):
        pricing_config_from_dict({"base_fare": value})


def test_peak_windows_given_as_a_list_are_reported(tmp_path: Path) -> None:
    path = tmp_path / "pricing.json"
    path.write_text(json.dumps({"peak_windows": [{"start": 6, "end": 9}]}), encoding="utf-8")
    with pytest.raises(ValueError, match="peak_windows"):
        load_pricing_config(str(path))


def test_bad_window_hours_in_file_are_reported(tmp_path: Path) -> None:
    path = tmp_path / "pricing.json"
    path.write_text(json.dumps({"peak_windows": {"morning": {"start": "six", "end": 9}}}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_pricing_config(str(path))
