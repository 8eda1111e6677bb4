"""
Display formatting for engine outputs. The engine returns raw numbers and a
Unit tag; every string shown to the user is produced here.
"""

import numpy as np

from kpi_definitions import Unit

# Unit -> (decimals, suffix). Must cover every Unit member.
FORMAT_RULES = {
    Unit.PERCENT: (1, "%"),
    Unit.MILLION_USD: (2, " MM"),
    Unit.TIMES: (1, "x"),
    Unit.PER_TEN_THOUSAND: (1, ""),
    Unit.POINTS: (0, " pts"),
    Unit.MINUTES: (0, " min"),
    Unit.HOURS: (0, " h"),
    Unit.PER_MONTH: (0, " /mo"),
    Unit.KWH_PER_TONNE: (0, " kWh/t"),
    Unit.KG_PER_TONNE: (0, " kg/t"),
}

STATE_COLORS = {
    "good": "#16c172",
    "warn": "#ffbf3c",
    "bad": "#ff5d5d",
}

MODE_LABELS = {
    "month": "Month",
    "quarter": "Quarter",
    "year": "Year",
    "budget": "Budget",
}


def format_value(value: float, unit: Unit) -> str:
    decimals, suffix = FORMAT_RULES[Unit(unit)]
    return f"{value:.{decimals}f}{suffix}"


def reference_label(reference) -> str:
    if reference is None:
        return ""
    if str(getattr(reference, "value", reference)) == "budget":
        return "Budget"
    return str(reference)


def format_delta(delta_pct: float | None, reference=None) -> str:
    """'Δ vs <ref>: +4.5%'; empty string when there is no comparison."""
    if delta_pct is None:
        return ""
    sign = "+" if delta_pct >= 0 else "-"
    text = f"{sign}{abs(delta_pct):.1f}%"
    label = reference_label(reference)
    return f"Δ vs {label}: {text}" if label else text


def state_color(state) -> str:
    return STATE_COLORS[str(getattr(state, "value", state))]


def spark_points(values, width: float = 100.0, height: float = 28.0, pad: float = 1.0) -> np.ndarray:
    """(x, y) points in SVG space; a flat series sits on the bottom line."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return np.empty((0, 2))
    span = arr.max() - arr.min()
    norm = (arr - arr.min()) / (span if span else 1.0)
    ys = (height - pad) - norm * (height - 2 * pad)
    xs = np.linspace(0.0, width, arr.size) if arr.size > 1 else np.zeros(1)
    return np.column_stack([xs, ys])


def sparkline_svg(values, color: str, width: float = 100.0, height: float = 28.0) -> str:
    pts = spark_points(values, width, height)
    if len(pts) == 0:
        return ""
    d = " ".join(f"{'M' if i == 0 else 'L'} {x:.2f} {y:.2f}" for i, (x, y) in enumerate(pts))
    return (
        f'<svg viewBox="0 0 {width:g} {height:g}" preserveAspectRatio="none" '
        f'style="width:100%;height:{height:g}px">'
        f'<path d="{d}" fill="none" stroke="{color}" stroke-width="1.6"/></svg>'
    )
