from __future__ import annotations

from app import causal_map_dot, history_chart_frame
from decision_engine import run_dashboard_engine


def test_causal_map_colors_edges_by_source(scorecard):
    dot = causal_map_dot(run_dashboard_engine(scorecard, "2025-12", "month"))
    assert dot.startswith("digraph G {")
    assert 'lrn [label="Learning", color="#16c172"];' in dot
    assert 'fin [label="Financial", color="#ff5d5d"];' in dot
    assert 'pro -> cus [color="#ffbf3c", penwidth=2];' in dot
    assert "sus" not in dot


def test_history_chart_frame_covers_full_history(scorecard, periods):
    df = history_chart_frame(scorecard, "gross_margin")
    assert list(df.columns) == ["actual", "target", "warning"]
    assert list(df.index) == list(periods)
    assert df.loc["2025-12", "actual"] == 23.0
    assert df.loc["2024-01", "actual"] == 22.0
    assert (df["target"] == 24.0).all()
    assert (df["warning"] == 21.5).all()
