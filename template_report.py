"""
Template-based scorecard report and tabular export.
"""

import pandas as pd

from decision_engine import DashboardResult
from formatting import MODE_LABELS, format_delta, format_value, reference_label
from kpi_definitions import PERSPECTIVE_NAMES


def generate_template_report(result: DashboardResult) -> str:
    sections = []
    ref = reference_label(result.reference)

    sections.append("## 1. Overview")
    sections.append(
        f"Period {result.period}, compared by {MODE_LABELS[result.mode.value].lower()}"
        + (f" (reference: {ref})." if ref else " (no reference period available).")
    )
    sections.append("")

    sections.append("## 2. Perspective health")
    for pid, agg in result.aggregates.items():
        sections.append(
            f"- {PERSPECTIVE_NAMES[pid]}: {agg.healthy_count}/{agg.total} favorable indicators "
            f"({agg.ratio_pct}%) — {agg.band.value.upper()}"
        )
    sections.append("")

    sections.append("## 3. Cause-effect chain")
    chain = " -> ".join(f"{PERSPECTIVE_NAMES[n.perspective_id]} [{n.band.value.upper()}]" for n in result.chain)
    sections.append(chain)
    sections.append("")

    sections.append("## 4. Indicators")
    for pid, evaluations in result.evaluations.items():
        if not evaluations:
            continue
        sections.append(f"### {PERSPECTIVE_NAMES[pid]}")
        for e in evaluations:
            line = (
                f"- {e.name}: {format_value(e.actual, e.unit)} {e.state.value.upper()} "
                f"(target {format_value(e.target, e.unit)}, budget {format_value(e.budget, e.unit)})"
            )
            delta = format_delta(e.delta_pct, e.reference)
            if delta:
                line += f". {delta}"
            sections.append(line)
        sections.append("")

    attention = [e for evs in result.evaluations.values() for e in evs if e.state.value == "bad"]
    sections.append("## 5. Attention")
    if attention:
        for e in attention:
            sections.append(f"- {e.name} is past its warning threshold ({format_value(e.warning, e.unit)}).")
    else:
        sections.append("No indicator is past its warning threshold.")

    return "\n".join(sections)


def evaluations_to_frame(result: DashboardResult) -> pd.DataFrame:
    rows = []
    for pid, evaluations in result.evaluations.items():
        for e in evaluations:
            rows.append({
                "perspective": PERSPECTIVE_NAMES[pid],
                "kpi_id": e.kpi_id,
                "kpi": e.name,
                "unit": e.unit.value,
                "state": e.state.value,
                "actual": e.actual,
                "target": e.target,
                "warning": e.warning,
                "budget": e.budget,
                "reference": e.reference,
                "reference_value": e.reference_value,
                "delta_pct": None if e.delta_pct is None else round(e.delta_pct, 2),
            })
    return pd.DataFrame(rows, columns=[
        "perspective", "kpi_id", "kpi", "unit", "state", "actual", "target",
        "warning", "budget", "reference", "reference_value", "delta_pct",
    ])
