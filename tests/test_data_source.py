from __future__ import annotations

import pandas as pd
import pytest

from data_source import LCG, build_default_snapshot, generate_series
from kpi_definitions import KPI_DEFINITIONS

from conftest import kpi_def


def test_lcg_known_sequence():
    rnd = LCG(20251113)
    assert rnd() == 2594431540 / 2 ** 32
    assert rnd() == 2046175235 / 2 ** 32


def test_lcg_is_deterministic_and_bounded():
    a, b = LCG(7), LCG(7)
    values = [a() for _ in range(200)]
    assert values == [b() for _ in range(200)]
    assert all(0 <= v < 1 for v in values)


def test_generate_series_respects_floor_for_higher_is_better():
    k = kpi_def("otif", target=20.0, warning=10.0)
    series = generate_series(k, base=0.0, rnd=LCG(1), length=24)
    assert len(series) == 24
    assert min(series) >= 8.5


def test_generate_series_respects_ceiling_for_lower_is_better():
    k = kpi_def("mttr", polarity="down", target=32.0, warning=40.0, unit="min")
    series = generate_series(k, base=500.0, rnd=LCG(1), length=24)
    assert max(series) <= 48
    assert all(v == int(v) for v in series)


def test_default_snapshot_shape():
    snap = build_default_snapshot()
    assert len(snap.periods) == 24
    assert snap.periods[0] == "2024-01"
    assert snap.visible_periods == snap.periods[12:]
    assert snap.visible_periods[0] == "2025-01"
    assert [p.perspective_id for p in snap.perspectives] == ["lrn", "pro", "cus", "fin", "sus"]
    assert sum(len(p.kpis) for p in snap.perspectives) == len(KPI_DEFINITIONS) == 19


def test_default_snapshot_records_carry_catalog_policy():
    snap = build_default_snapshot()
    for _, k in snap.iter_kpis():
        for period in snap.periods:
            rec = snap.record(k.kpi_id, period)
            assert (rec.target, rec.warning, rec.budget) == (k.target, k.warning, k.budget)
        assert [s.name for s in snap.segments_for(k.kpi_id)] == ["Line A", "Line B"]


def test_same_seed_same_data_different_seed_different_data():
    a = build_default_snapshot(seed=42).to_frame()
    b = build_default_snapshot(seed=42).to_frame()
    c = build_default_snapshot(seed=43).to_frame()
    pd.testing.assert_frame_equal(a, b)
    assert not a["actual"].equals(c["actual"])


def test_visible_window_must_fit_history():
    with pytest.raises(ValueError):
        build_default_snapshot(history_months=6, visible_months=12)
