"""
Pricing engine tests — pure math, no database.

Tests:
1-4.   Worked examples (toolpath only, threads, tooling, fast lead time)
5-8.   Properties (boundary, monotonicity, determinism, persisted round trip)
9-13.  Permissive input (blank, garbage, negative, currency strings, old records)
14-17. Rate table and lead time options
18-23. Tolerance default rule (bands, units, fractions)
"""

import math

import pytest

from quotecalc.calculations import CONFIG_FIELDS
from quotecalc.pricing_engine import (
    DEFAULT_LEAD_TIME_OPTION,
    PricingEngine,
    RateTable,
    default_tolerance_multiplier,
    normalize_lead_time_option,
    parse_tolerance,
    to_count,
    to_number,
)


def _base_config(**overrides):
    config = {
        "toolpath_grand_total": 100,
        "lead_time_option": "economy",
        "lead_time_multiplier": 1.0,
        "small_thread_count": 0,
        "medium_thread_count": 0,
        "large_thread_count": 0,
        "complexity_multiplier": 2.15,
        "tolerance_multiplier": 1.0,
        "tooling_enabled": False,
        "tooling_cost": 0,
    }
    config.update(overrides)
    return config


# ============================================================
# Worked examples
# ============================================================

def test_toolpath_only():
    result = PricingEngine().calculate(_base_config())
    assert result["base_price"] == pytest.approx(100.0)
    assert result["thread_cost"] == 0.0
    assert result["tooling_markup"] == 0.0
    assert result["adjusted_price"] == pytest.approx(215.0)
    assert result["final_price"] == pytest.approx(215.0)
    assert result["lead_time_multiplier"] == 1.0


def test_small_threads_add_to_base():
    result = PricingEngine().calculate(_base_config(small_thread_count=2, small_thread_rate=0.90))
    assert result["thread_cost"] == pytest.approx(1.80)
    assert result["base_price"] == pytest.approx(101.80)
    assert result["adjusted_price"] == pytest.approx(218.87)
    assert result["final_price"] == pytest.approx(218.87)


def test_tooling_added_after_multipliers():
    engine = PricingEngine()
    without = engine.calculate(_base_config(small_thread_count=2))
    result = engine.calculate(_base_config(small_thread_count=2, tooling_enabled=True, tooling_cost=50))
    assert result["tooling_markup"] == pytest.approx(75.0)
    # Tooling never passes through the multipliers
    assert result["adjusted_price"] == pytest.approx(without["adjusted_price"])
    assert result["final_price"] == pytest.approx(218.87 + 75.0)


def test_fast_lead_time_doubles_price():
    result = PricingEngine().calculate(_base_config(lead_time_option="fast", lead_time_multiplier=2.0))
    assert result["adjusted_price"] == pytest.approx(430.0)
    assert result["final_price"] == pytest.approx(430.0)
    assert result["lead_time_multiplier"] == 2.0


# ============================================================
# Properties
# ============================================================

@pytest.mark.parametrize("toolpath, lead, complexity, tolerance", [
    (100, 1.0, 2.15, 1.0),
    (123.45, 1.5, 1.8, 1.2),
    (0, 2.0, 3.15, 2.0),
    (9876.5, 1.0, 1.15, 0.75),
    (33.333, 1.0, 2.15, 1.0),
])
def test_no_threads_no_tooling_is_pure_product(toolpath, lead, complexity, tolerance):
    config = _base_config(
        toolpath_grand_total=toolpath,
        lead_time_multiplier=lead,
        complexity_multiplier=complexity,
        tolerance_multiplier=tolerance,
    )
    result = PricingEngine().calculate(config)
    # Exact: the engine leaves rounding to whoever stores the money
    assert result["final_price"] == toolpath * lead * complexity * tolerance
    assert result["adjusted_price"] == result["final_price"]


@pytest.mark.parametrize("field, low, high", [
    ("toolpath_grand_total", 100, 150),
    ("small_thread_count", 1, 10),
    ("medium_thread_count", 0, 3),
    ("large_thread_count", 2, 40),
    ("complexity_multiplier", 1.15, 3.15),
    ("tolerance_multiplier", 0.75, 2.0),
    ("tooling_cost", 0, 80),
])
def test_increasing_an_input_never_lowers_price(field, low, high):
    engine = PricingEngine()
    base = _base_config(small_thread_count=3, medium_thread_count=1, tooling_enabled=True, tooling_cost=20)
    lower = engine.calculate({**base, field: low})
    higher = engine.calculate({**base, field: high})
    assert higher["final_price"] >= lower["final_price"]


def test_same_input_same_output():
    engine = PricingEngine()
    config = _base_config(small_thread_count=5, large_thread_count=2, tooling_enabled=True, tooling_cost=33.33)
    assert engine.calculate(config) == engine.calculate(dict(config))


def test_persisted_record_reprices_identically():
    """What a save stores, fed back into the engine, reproduces the stored final price."""
    engine = PricingEngine()
    record = engine.price(_base_config(
        toolpath_grand_total="245.10",
        lead_time_option="standard",
        lead_time_multiplier=None,
        small_thread_count="4",
        large_thread_count=3,
        complexity_multiplier=2.65,
        tolerance_multiplier=1.2,
        tooling_enabled=True,
        tooling_cost="40",
    ))
    reloaded = {field: record[field] for field in CONFIG_FIELDS}
    assert engine.calculate(reloaded)["final_price"] == record["final_price"]
    assert record["lead_time_multiplier"] == 1.5


# ============================================================
# Permissive input
# ============================================================

def test_empty_config_prices_to_zero():
    result = PricingEngine().calculate({})
    assert result["final_price"] == 0.0
    assert result["lead_time_multiplier"] == 1.0


def test_garbage_numbers_become_zero():
    result = PricingEngine().calculate(_base_config(
        toolpath_grand_total="abc",
        small_thread_count="",
        medium_thread_count=None,
        large_thread_count="lots",
        tooling_enabled=True,
        tooling_cost="n/a",
    ))
    for value in result.values():
        assert not math.isnan(value)
    assert result["final_price"] == 0.0


def test_negative_and_fractional_counts():
    assert to_count("-3") == 0
    assert to_count("2.7") == 2
    assert to_count(float("nan")) == 0
    result = PricingEngine().calculate(_base_config(small_thread_count=-4, toolpath_grand_total=-50))
    assert result["base_price"] == 0.0


def test_currency_strings_parse():
    assert to_number("$1,250.50") == 1250.50
    assert to_number("  12 ") == 12.0
    assert to_number(True) == 0.0
    assert to_number(float("inf")) == 0.0
    assert to_number("", default=1.0) == 1.0


def test_tooling_cost_without_toggle_means_enabled():
    """Records saved before the tooling toggle existed only carry a cost."""
    config = _base_config(tooling_cost=50)
    del config["tooling_enabled"]
    assert PricingEngine().calculate(config)["tooling_markup"] == pytest.approx(75.0)

    disabled = PricingEngine().calculate(_base_config(tooling_cost=50, tooling_enabled=False))
    assert disabled["tooling_markup"] == 0.0


# ============================================================
# Rate table and lead time options
# ============================================================

def test_default_rate_table():
    table = RateTable()
    assert table.lead_time_multiplier("fast") == 2.0
    assert table.lead_time_multiplier("standard") == 1.5
    assert table.lead_time_multiplier("economy") == 1.0
    assert table.thread_rate("small") == 0.90
    assert table.thread_rate("medium") == 0.75
    assert table.thread_rate("large") == 1.10
    assert DEFAULT_LEAD_TIME_OPTION == "economy"


def test_legacy_day_labels_map_to_options():
    assert normalize_lead_time_option("7-12 Days") == "economy"
    assert normalize_lead_time_option("3-5 days") == "fast"
    assert normalize_lead_time_option(None) == "economy"
    assert RateTable().lead_time_multiplier("overnight") == 1.0


def test_lead_time_multiplier_follows_option_when_missing():
    engine = PricingEngine()
    result = engine.calculate(_base_config(lead_time_option="fast", lead_time_multiplier=None))
    assert result["lead_time_multiplier"] == 2.0
    # Zero or garbage multiplier falls back to the option too
    result = engine.calculate(_base_config(lead_time_option="standard", lead_time_multiplier="x"))
    assert result["lead_time_multiplier"] == 1.5


def test_rate_table_overrides_are_per_engine():
    custom = PricingEngine(RateTable(
        lead_time_multipliers={"economy": 1.2},
        thread_rates={"small": 1.00},
    ))
    config = _base_config(lead_time_multiplier=None, small_thread_count=10, small_thread_rate=None)
    result = custom.calculate(config)
    assert result["thread_cost"] == pytest.approx(10.0)
    assert result["final_price"] == pytest.approx(110 * 1.2 * 2.15)

    # A fresh engine is untouched by the overrides above
    assert PricingEngine().calculate(config)["thread_cost"] == pytest.approx(9.0)


# ============================================================
# Tolerance default rule
# ============================================================

@pytest.mark.parametrize("tolerance, expected", [
    ("0.010", 0.75),
    (0.02, 0.75),
    ("±0.005", 1.0),
    (0.0075, 1.0),
    ("+/- .004", 1.2),
    (0.003, 1.2),
    ("0.002", 1.5),
    (0.0005, 1.5),
])
def test_tolerance_bands(tolerance, expected):
    assert default_tolerance_multiplier(tolerance) == expected


def test_unreadable_tolerance_is_neutral():
    assert default_tolerance_multiplier(None) == 1.0
    assert default_tolerance_multiplier("see drawing") == 1.0
    assert parse_tolerance("see drawing") is None


def test_loose_multiplier_is_configurable():
    assert default_tolerance_multiplier("0.015", loose_multiplier=0.95) == 0.95
    assert default_tolerance_multiplier("0.005", loose_multiplier=0.95) == 1.0


def test_parse_tolerance_text():
    assert parse_tolerance("±0.005") == 0.005
    assert parse_tolerance("0.010 in") == 0.01
    assert parse_tolerance(-0.002) == 0.002


@pytest.mark.parametrize("tolerance, inches, expected", [
    ("5 thou", 0.005, 1.0),
    ("±2 mils", 0.002, 1.5),
    ("0.05 mm", 0.05 / 25.4, 1.5),
    ("1/64", 1 / 64, 0.75),
    ("±1/32\"", 1 / 32, 0.75),
    ("M6 ±0.004", 0.004, 1.2),
])
def test_tolerance_units_and_fractions(tolerance, inches, expected):
    assert parse_tolerance(tolerance) == pytest.approx(inches)
    assert default_tolerance_multiplier(tolerance) == expected


def test_default_configuration_uses_tolerance_suggestion():
    config = PricingEngine().default_configuration("0.002")
    assert config["tolerance_multiplier"] == 1.5
    assert config["complexity_multiplier"] == 2.15
    assert config["lead_time_option"] == "economy"
    assert config["lead_time_multiplier"] == 1.0
    assert config["small_thread_rate"] == 0.90
