import logging
import os

import pandas as pd
import streamlit as st

from config import configure_logging, load_settings
from data_source import build_default_snapshot
from decision_engine import (
    ComparisonMode,
    DashboardResult,
    evaluate_segments,
    get_policy_definitions,
    run_dashboard_engine,
)
from formatting import (
    MODE_LABELS,
    STATE_COLORS,
    format_delta,
    format_value,
    reference_label,
    sparkline_svg,
    state_color,
)
from kpi import DataIntegrityError, Snapshot
from kpi_definitions import PERSPECTIVE_NAMES, get_kpi_definitions
from template_report import evaluations_to_frame, generate_template_report

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
SPARK_PERIODS = 12
CARDS_PER_ROW = 4

logger = logging.getLogger(__name__)


@st.cache_resource
def load_snapshot(seed: int, history_start: str, history_months: int, visible_months: int) -> Snapshot:
    return build_default_snapshot(seed, history_start, history_months, visible_months)


def _badge(state) -> str:
    return (
        f'<span style="background:{state_color(state)};color:#0b1020;padding:0.1rem 0.45rem;'
        f'border-radius:999px;font-size:0.75rem;font-weight:700;">{state.value.upper()}</span>'
    )


def causal_map_dot(result: DashboardResult) -> str:
    """Graphviz source for the Learning -> Process -> Customer -> Financial map."""
    lines = [
        "digraph G {",
        "  rankdir=LR;",
        '  bgcolor="transparent";',
        '  node [shape=box, style="rounded,filled", fillcolor="#0f1526", fontcolor="white", penwidth=2];',
    ]
    for node in result.chain:
        lines.append(
            f'  {node.perspective_id} [label="{PERSPECTIVE_NAMES[node.perspective_id]}", '
            f'color="{state_color(node.band)}"];'
        )
    for edge in result.edges:
        lines.append(f'  {edge.source} -> {edge.target} [color="{state_color(edge.band)}", penwidth=2];')
    lines.append("}")
    return "\n".join(lines)


def history_chart_frame(snapshot: Snapshot, kpi_id: str) -> pd.DataFrame:
    """Full history of one KPI with its target and warning lines, indexed by period."""
    df = snapshot.to_frame()
    df = df[df["kpi_id"] == kpi_id]
    return df.set_index("period")[["actual", "target", "warning"]]


def _inject_css():
    st.markdown("""
    <style>
    .stApp { max-width: 100%; }
    .kpi-name { font-weight: 600; margin-bottom: 0.15rem; }
    .kpi-sub { font-size: 0.8rem; color: #6b7280; }
    </style>
    """, unsafe_allow_html=True)


def render_summary(result: DashboardResult) -> None:
    cols = st.columns(len(result.aggregates))
    for col, (pid, agg) in zip(cols, result.aggregates.items()):
        with col:
            st.markdown(f"**{PERSPECTIVE_NAMES[pid]}** {_badge(agg.band)}", unsafe_allow_html=True)
            st.progress(agg.ratio_pct / 100)
            st.caption(f"{agg.healthy_count}/{agg.total} favorable indicators — {agg.ratio_pct}%")


def render_kpi_card(snapshot: Snapshot, evaluation, period: str) -> None:
    kpi = snapshot.kpi(evaluation.kpi_id)
    with st.container(border=True):
        st.markdown(
            f'<div class="kpi-name">{evaluation.name} {_badge(evaluation.state)}</div>',
            unsafe_allow_html=True,
        )
        # metric arrows follow the leading sign, which already means improvement/regression
        delta = format_delta(evaluation.delta_pct)
        st.metric(
            label=evaluation.unit.value,
            value=format_value(evaluation.actual, evaluation.unit),
            delta=delta or None,
            delta_color="normal",
            help=f"Δ vs {reference_label(evaluation.reference)}" if delta else "No comparison available",
        )
        if delta:
            st.caption(format_delta(evaluation.delta_pct, evaluation.reference))
        st.markdown(
            f'<div class="kpi-sub">Budget: <b>{format_value(evaluation.budget, evaluation.unit)}</b> | '
            f'Target: <b>{format_value(evaluation.target, evaluation.unit)}</b></div>',
            unsafe_allow_html=True,
        )
        series = snapshot.series(evaluation.kpi_id)[-SPARK_PERIODS:]
        st.markdown(sparkline_svg(series, state_color(evaluation.state)), unsafe_allow_html=True)

        segments = evaluate_segments(snapshot, kpi, period)
        with st.expander("Breakdown", expanded=False):
            st.line_chart(
                history_chart_frame(snapshot, evaluation.kpi_id),
                color=[state_color(evaluation.state), STATE_COLORS["good"], STATE_COLORS["warn"]],
                height=180,
            )
            if segments:
                st.dataframe(
                    [
                        {
                            "Segment": s.name,
                            "Actual": format_value(s.actual, s.unit),
                            "Target": format_value(s.target, s.unit),
                            "State": s.state.value.upper(),
                        }
                        for s in segments
                    ],
                    hide_index=True,
                    width="stretch",
                )


def render_perspectives(snapshot: Snapshot, result: DashboardResult) -> None:
    for pid, evaluations in result.evaluations.items():
        st.subheader(PERSPECTIVE_NAMES[pid])
        if not evaluations:
            st.caption("No indicators match the search.")
            continue
        for start in range(0, len(evaluations), CARDS_PER_ROW):
            cols = st.columns(CARDS_PER_ROW)
            for col, evaluation in zip(cols, evaluations[start:start + CARDS_PER_ROW]):
                with col:
                    render_kpi_card(snapshot, evaluation, result.period)


def main():
    st.set_page_config(page_title="Balanced Scorecard", layout="wide", initial_sidebar_state="expanded")
    _inject_css()

    try:
        settings = load_settings(BASE_DIR)
    except ValueError as e:
        st.error(f"Configuration error: {e}")
        st.stop()
    configure_logging(settings.log_level)

    try:
        snapshot = load_snapshot(
            settings.seed, settings.history_start, settings.history_months, settings.visible_months
        )
    except (DataIntegrityError, ValueError) as e:
        logger.exception("Could not build KPI snapshot")
        st.error(f"KPI data rejected: {e}")
        st.stop()

    # ----- Sidebar: Filters -----
    with st.sidebar:
        st.markdown("### Filters")
        st.divider()
        periods = list(snapshot.visible_periods)
        period = st.selectbox("Period", periods, index=len(periods) - 1, key="period_select")
        modes = [m.value for m in ComparisonMode]
        mode = st.radio(
            "Compare against",
            modes,
            index=modes.index(settings.default_mode.value),
            format_func=lambda m: MODE_LABELS[m],
            key="mode_select",
        )
        query = st.text_input("Search indicator", placeholder="e.g. margin", key="kpi_query")

        with st.expander("KPI definitions", expanded=False):
            for kpi_id, defn in get_kpi_definitions().items():
                st.markdown(f"**{defn['name']}**")
                st.caption(defn.get("business_question", ""))
        with st.expander("Policy definitions", expanded=False):
            for policy_id, defn in get_policy_definitions().items():
                st.caption(f"**{policy_id}**: {defn.get('condition', '')}")

    result = run_dashboard_engine(snapshot, period, mode, query.strip())

    # ----- Main area -----
    st.title("Balanced Scorecard")
    st.caption("Learning -> Process -> Customer -> Financial, plus Sustainability")

    render_summary(result)

    st.subheader("Cause-effect map")
    st.graphviz_chart(causal_map_dot(result))

    render_perspectives(snapshot, result)

    st.divider()
    report = generate_template_report(result)
    col_report, col_table = st.columns(2)
    with col_report:
        st.download_button(
            "Download Scorecard Report",
            data=report,
            file_name=f"scorecard_{period}_{mode}.md",
            mime="text/markdown",
            key="dl_report",
        )
    with col_table:
        st.download_button(
            "Download Indicators (CSV)",
            data=evaluations_to_frame(result).to_csv(index=False),
            file_name=f"indicators_{period}_{mode}.csv",
            mime="text/csv",
            key="dl_table",
        )


if __name__ == "__main__":
    main()
