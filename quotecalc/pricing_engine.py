"""
Quote Price Calculator — per-part pricing rules.

Pure math — no I/O, no database, no global state. Toolpath cost + threads,
scaled by lead time, complexity and tolerance, plus marked-up tooling.

Input: PricingConfiguration dict (toolpath total, lead time, thread counts/rates,
       multipliers, tooling)
Output: price breakdown {base_price, thread_cost, tooling_markup,
        adjusted_price, final_price, lead_time_multiplier}

The engine never raises on bad numbers. Blank, missing or garbage numeric input
is treated as 0. Validation happens at the save boundary.
"""

import math
import re
from typing import Optional

from .config import settings

# Tooling is billed at cost × 1.5 and added after the multipliers.
TOOLING_MARKUP_FACTOR = 1.5

THREAD_SIZES = ("small", "medium", "large")

THREAD_SIZE_LABELS = {
    "small": "Small (< M3)",
    "medium": "Medium (M4-M8)",
    "large": "Large (> M8)",
}

DEFAULT_THREAD_RATES = {
    "small": 0.90,
    "medium": 0.75,
    "large": 1.10,
}

# Lead time → price multiplier. Faster delivery costs more.
LEAD_TIME_OPTIONS = {
    "fast": {"label": "3-5 Business Days", "days": "3-5 Days", "multiplier": 2.0},
    "standard": {"label": "5-7 Business Days", "days": "5-7 Days", "multiplier": 1.5},
    "economy": {"label": "7-12 Business Days", "days": "7-12 Days", "multiplier": 1.0},
}
DEFAULT_LEAD_TIME_OPTION = "economy"

# Older saved calculations carry the day-range string instead of the option key
_LEAD_TIME_ALIASES = {opt["days"].lower(): key for key, opt in LEAD_TIME_OPTIONS.items()}

# A tolerance number with an optional unit: "0.005", ".002 in", "5 thou", "0.05 mm"
_TOLERANCE_NUMBER = re.compile(
    r"(?<![\w.])(\d*\.\d+|\d+)(?!\.?\d)\s*(thou|thousandths?|mils?|mm|inch(?:es)?|in)?(?![a-z])",
    re.IGNORECASE,
)
# Fractional inches: "1/64", "±1/32"
_TOLERANCE_FRACTION = re.compile(r"(?<![\d.])(\d+)\s*/\s*(\d+)(?![\d.])")
_UNITS_PER_INCH = {
    "thou": 1000,
    "thousandth": 1000,
    "thousandths": 1000,
    "mil": 1000,
    "mils": 1000,
    "mm": 25.4,
}


def to_number(value, default: float = 0.0) -> float:
    """
    Permissive numeric parse — mirrors what the calculator form accepts.

    None, "", "abc", NaN and inf all come back as `default`.
    Strings may carry "$" and thousands separators.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.strip().replace("$", "").replace(",", "")
        if not value:
            return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def to_count(value) -> int:
    """Thread counts: whole, non-negative. "2.7" → 2, "-3" → 0, "" → 0."""
    number = to_number(value)
    if number <= 0:
        return 0
    return int(number)


def _non_negative(value) -> float:
    number = to_number(value)
    return number if number > 0 else 0.0


def normalize_lead_time_option(option) -> str:
    """Map an option key or a legacy day-range label ("7-12 Days") to an option key."""
    if option is None:
        return DEFAULT_LEAD_TIME_OPTION
    key = str(option).strip().lower()
    if key in LEAD_TIME_OPTIONS:
        return key
    return _LEAD_TIME_ALIASES.get(key, key or DEFAULT_LEAD_TIME_OPTION)


class RateTable:
    """
    Lead-time multipliers and per-thread rates for one calculation.

    The shop edits these inline, so a table is built per request from the
    defaults plus whatever overrides came in. Nothing here is shared state.
    """

    def __init__(self, lead_time_multipliers: Optional[dict] = None,
                 thread_rates: Optional[dict] = None,
                 complexity_multiplier: Optional[float] = None,
                 tolerance_multiplier: Optional[float] = None):
        self.lead_time_multipliers = {
            key: opt["multiplier"] for key, opt in LEAD_TIME_OPTIONS.items()
        }
        for option, multiplier in (lead_time_multipliers or {}).items():
            multiplier = to_number(multiplier)
            if multiplier > 0:
                self.lead_time_multipliers[normalize_lead_time_option(option)] = multiplier

        self.thread_rates = dict(DEFAULT_THREAD_RATES)
        for size, rate in (thread_rates or {}).items():
            if size in THREAD_SIZES:
                self.thread_rates[size] = _non_negative(rate)

        # Slider starting points for configurations that leave them out
        self.complexity_multiplier = (
            settings.DEFAULT_COMPLEXITY_MULTIPLIER if complexity_multiplier is None else complexity_multiplier
        )
        self.tolerance_multiplier = (
            settings.DEFAULT_TOLERANCE_MULTIPLIER if tolerance_multiplier is None else tolerance_multiplier
        )

    def lead_time_multiplier(self, option) -> float:
        return self.lead_time_multipliers.get(normalize_lead_time_option(option), 1.0)

    def thread_rate(self, size: str) -> float:
        return self.thread_rates.get(size, 0.0)

    def to_dict(self) -> dict:
        return {
            "lead_time_options": [
                {
                    "value": key,
                    "label": opt["label"],
                    "days": opt["days"],
                    "multiplier": self.lead_time_multipliers[key],
                }
                for key, opt in LEAD_TIME_OPTIONS.items()
            ],
            "thread_rates": [
                {"size": size, "label": THREAD_SIZE_LABELS[size], "rate": self.thread_rates[size]}
                for size in THREAD_SIZES
            ],
        }


def parse_tolerance(tolerance) -> Optional[float]:
    """
    Pull the numeric band out of a part's tolerance text.

    Result is in inches. "±0.005" → 0.005, "+/- .002" → 0.002,
    "0.010 in" → 0.01, "5 thou" → 0.005, "0.05 mm" → ~0.002, "1/64" → 0.015625.
    A bare number is read as inches. Sign is ignored. Returns None when there
    is no number to read; a number glued to letters ("M6") is not one.
    """
    if tolerance is None or isinstance(tolerance, bool):
        return None
    if isinstance(tolerance, (int, float)):
        value = abs(float(tolerance))
        return None if math.isnan(value) or math.isinf(value) else value

    text = str(tolerance)
    fraction = _TOLERANCE_FRACTION.search(text)
    match = _TOLERANCE_NUMBER.search(text)
    if fraction and (match is None or fraction.start() <= match.start()):
        denominator = int(fraction.group(2))
        return int(fraction.group(1)) / denominator if denominator else None
    if not match:
        return None
    unit = (match.group(2) or "").lower()
    return float(match.group(1)) / _UNITS_PER_INCH.get(unit, 1)


def default_tolerance_multiplier(tolerance, loose_multiplier: Optional[float] = None) -> float:
    """
    Suggested tolerance multiplier — tighter tolerance, higher price.

    >= 0.010"          → loose_multiplier (settings.LOOSE_TOLERANCE_MULTIPLIER)
    0.005" - 0.010"    → 1.0
    0.003" - 0.005"    → 1.2
    < 0.003"           → 1.5
    Only a suggestion for a part's first visit to the calculator.
    """
    if loose_multiplier is None:
        loose_multiplier = settings.LOOSE_TOLERANCE_MULTIPLIER

    value = parse_tolerance(tolerance)
    if value is None:
        return settings.DEFAULT_TOLERANCE_MULTIPLIER

    if value >= 0.010:
        return loose_multiplier
    elif value >= 0.005:
        return 1.0
    elif value >= 0.003:
        return 1.2
    return 1.5


class PricingEngine:
    """
    Per-part price calculator.

    Stateless apart from the RateTable it was built with — safe to share.
    """

    def __init__(self, rate_table: Optional[RateTable] = None):
        self.rate_table = rate_table or RateTable()

    def normalize(self, config: dict) -> dict:
        """
        Fill in a complete PricingConfiguration from loose input.

        Absent rates and multipliers take the rate table defaults;
        anything present but unreadable becomes 0. Counts and costs are floored at 0.
        """
        config = config or {}
        thread_counts = config.get("thread_counts") or {}
        thread_rates = config.get("thread_rates") or {}

        option = normalize_lead_time_option(config.get("lead_time_option"))
        lead_multiplier = to_number(config.get("lead_time_multiplier"))
        if lead_multiplier <= 0:
            lead_multiplier = self.rate_table.lead_time_multiplier(option)

        normalized = {
            "toolpath_grand_total": _non_negative(config.get("toolpath_grand_total")),
            "lead_time_option": option,
            "lead_time_multiplier": lead_multiplier,
        }

        for size in THREAD_SIZES:
            count = config.get(f"{size}_thread_count", thread_counts.get(size))
            rate = config.get(f"{size}_thread_rate", thread_rates.get(size))
            normalized[f"{size}_thread_count"] = to_count(count)
            normalized[f"{size}_thread_rate"] = (
                self.rate_table.thread_rate(size) if rate is None else _non_negative(rate)
            )

        complexity = config.get("complexity_multiplier")
        tolerance = config.get("tolerance_multiplier")
        normalized["complexity_multiplier"] = (
            self.rate_table.complexity_multiplier if complexity is None else _non_negative(complexity)
        )
        normalized["tolerance_multiplier"] = (
            self.rate_table.tolerance_multiplier if tolerance is None else _non_negative(tolerance)
        )

        tooling_cost = _non_negative(config.get("tooling_cost"))
        tooling_enabled = config.get("tooling_enabled")
        if tooling_enabled is None:
            # Saved calculations predating the toggle: a tooling cost means tooling was on
            tooling_enabled = tooling_cost > 0
        normalized["tooling_enabled"] = bool(tooling_enabled)
        normalized["tooling_cost"] = tooling_cost
        normalized["notes"] = config.get("notes") or ""
        return normalized

    def calculate(self, config: dict) -> dict:
        """
        Price one part.

        1. thread_cost    = Σ count × rate over small/medium/large
        2. tooling_markup = tooling_cost × 1.5 (only when tooling is enabled)
        3. base_price     = toolpath_grand_total + thread_cost
        4. adjusted_price = base_price × lead × complexity × tolerance
        5. final_price    = adjusted_price + tooling_markup

        Amounts come back unrounded; callers round to cents where money is
        stored or shown on a line item.
        """
        c = self.normalize(config)

        thread_cost = sum(
            c[f"{size}_thread_count"] * c[f"{size}_thread_rate"] for size in THREAD_SIZES
        )
        tooling_markup = c["tooling_cost"] * TOOLING_MARKUP_FACTOR if c["tooling_enabled"] else 0.0
        base_price = c["toolpath_grand_total"] + thread_cost
        adjusted_price = (
            base_price
            * c["lead_time_multiplier"]
            * c["complexity_multiplier"]
            * c["tolerance_multiplier"]
        )

        return {
            "thread_cost": thread_cost,
            "tooling_markup": tooling_markup,
            "base_price": base_price,
            "adjusted_price": adjusted_price,
            "final_price": adjusted_price + tooling_markup,
            "lead_time_multiplier": c["lead_time_multiplier"],
        }

    def price(self, config: dict) -> dict:
        """normalize + calculate — the full record a calculation save persists (unrounded)."""
        normalized = self.normalize(config)
        result = self.calculate(normalized)
        normalized["total_thread_cost"] = result["thread_cost"]
        normalized["tooling_markup"] = result["tooling_markup"]
        normalized["base_price"] = result["base_price"]
        normalized["adjusted_price"] = result["adjusted_price"]
        normalized["final_price"] = result["final_price"]
        return normalized

    def default_configuration(self, tolerance=None) -> dict:
        """Starting point for a part with no saved calculation."""
        config = self.normalize({
            "toolpath_grand_total": 0,
            "lead_time_option": DEFAULT_LEAD_TIME_OPTION,
            "tooling_enabled": False,
        })
        config["tolerance_multiplier"] = default_tolerance_multiplier(tolerance)
        return config
