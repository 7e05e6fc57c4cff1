"""
Metric catalog - direction, display name and formatting per metric
"""
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Mapping

HIGHER_BETTER = "higher_better"
LOWER_BETTER = "lower_better"

METRIC_DIRECTIONS: Dict[str, str] = {
    "ctr": HIGHER_BETTER,
    "conversions": HIGHER_BETTER,
    "cv": HIGHER_BETTER,
    "cvr": HIGHER_BETTER,
    "budget_rate": HIGHER_BETTER,  # spend vs daily budget, ideally up to 100%
    "roas": HIGHER_BETTER,
    "cpa": LOWER_BETTER,
    "cpm": LOWER_BETTER,
    "cpc": LOWER_BETTER,
}

METRIC_DISPLAY_NAMES: Dict[str, str] = {
    "budget_rate": "Budget rate",
    "ctr": "CTR",
    "conversions": "CV",
    "cv": "CV",
    "cpm": "CPM",
    "cpa": "CPA",
    "cvr": "CVR",
    "roas": "ROAS",
    "cpc": "CPC",
}

PERCENT_METRICS = {"ctr", "cvr", "roas"}
RATE_METRICS = {"budget_rate"}
COUNT_METRICS = {"conversions", "cv"}
CURRENCY_METRICS = {"cpa", "cpm", "cpc", "spend"}
RATIO_METRICS = {"frequency"}

# Keys used by the ads platform rows for some metrics
_VALUE_ALIASES: Dict[str, tuple] = {
    "budget_rate": ("budget_rate", "budgetRate"),
    "conversions": ("conversions", "cv"),
    "cv": ("conversions", "cv"),
}


def _key(metric_id: str) -> str:
    return (metric_id or "").strip().lower()


def direction(metric_id: str) -> str:
    """Better direction of a metric; unknown metrics are treated as higher-is-better."""
    return METRIC_DIRECTIONS.get(_key(metric_id), HIGHER_BETTER)


def display_name(metric_id: str) -> str:
    return METRIC_DISPLAY_NAMES.get(_key(metric_id), metric_id)


def metric_id_for(name: str) -> str:
    """Reverse lookup of display_name(); the first catalog id wins (CV -> conversions)."""
    for metric_id, label in METRIC_DISPLAY_NAMES.items():
        if label.lower() == (name or "").strip().lower():
            return metric_id
    return _key(name)


def round_half_up(value: float, digits: int = 0) -> Decimal:
    """Round like a person would (2.5 -> 3), not like round() does (2.5 -> 2)."""
    exponent = Decimal(1).scaleb(-digits)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def format_value(value: Any, metric_id: str) -> str:
    """
    Format a metric value for messages.

    Examples:
        format_value(0.899888, "ctr") -> "0.9%"
        format_value(62.178, "budget_rate") -> "62%"
        format_value(1926.884, "cpa") -> "1,927"
    """
    key = _key(metric_id)
    try:
        if key in PERCENT_METRICS:
            return f"{round_half_up(value, 1)}%"
        if key in RATE_METRICS:
            return f"{round_half_up(value)}%"
        if key in COUNT_METRICS:
            return f"{round_half_up(value)}"
        if key in CURRENCY_METRICS:
            return f"{int(round_half_up(value)):,}"
        if key in RATIO_METRICS:
            return f"{round_half_up(value, 1)}"
    except (InvalidOperation, TypeError, ValueError):
        pass
    return str(value)


def metric_value(data: Mapping[str, Any], metric_id: str) -> float:
    """Read a metric from a raw stats row; missing or non-numeric values read as 0."""
    if not data:
        return 0.0

    key = _key(metric_id)
    for alias in _VALUE_ALIASES.get(key, (key,)):
        raw = data.get(alias)
        if raw is None or raw == "":
            continue
        try:
            return float(raw)
        except (TypeError, ValueError):
            return 0.0
    return 0.0
