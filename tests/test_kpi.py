from __future__ import annotations

import pandas as pd
import pytest

from kpi import (
    DataIntegrityError,
    UnknownPeriodError,
    build_snapshot,
    make_periods,
    normalize_columns,
)
from kpi_definitions import Perspective

from conftest import history_frame, kpi_def


@pytest.fixture
def two_kpis():
    return [kpi_def("oee"), kpi_def("scrap", polarity="down", target=2.0, warning=3.0, budget=2.4)]


@pytest.fixture
def catalog(two_kpis):
    return (Perspective("pro", "Process", tuple(two_kpis)),)


@pytest.fixture
def frame(two_kpis, periods):
    return history_frame(two_kpis, periods, {"oee": list(range(24)), "scrap": 2.5})


def test_make_periods():
    periods = make_periods("2024-01", 24)
    assert len(periods) == 24
    assert periods[0] == "2024-01"
    assert periods[11] == "2024-12"
    assert periods[12] == "2025-01"
    assert periods[-1] == "2025-12"


def test_build_snapshot_and_lookups(frame, catalog, periods):
    snap = build_snapshot(frame, catalog, periods=periods, visible_periods=periods[-12:])
    assert snap.periods == periods
    assert snap.visible_periods[0] == "2025-01"
    assert snap.record("oee", "2024-03").actual == 2.0
    assert snap.record("scrap", "2025-12").budget == 2.4
    assert snap.series("oee") == [float(v) for v in range(24)]
    assert snap.offset_period("2024-02", -1) == "2024-01"
    assert snap.offset_period("2024-01", -1) is None
    assert snap.offset_period("2025-12", 1) is None
    assert snap.is_visible("2025-06")
    assert not snap.is_visible("2024-06")
    assert snap.kpi("scrap").target == 2.0


def test_to_frame_exports_every_record(frame, catalog):
    out = build_snapshot(frame, catalog).to_frame()
    assert len(out) == 48
    assert list(out.columns) == ["perspective", "kpi_id", "period", "actual", "target", "warning", "budget"]
    assert set(out["perspective"]) == {"pro"}


def test_aliased_columns_are_accepted(frame, catalog):
    aliased = frame.rename(columns={
        "kpi_id": "KPI", "period": "Period", "actual": "Actual",
        "target": "Target", "warning": "Warning", "budget": "Plan",
    })
    assert list(normalize_columns(aliased).columns) == list(frame.columns)
    snap = build_snapshot(aliased, catalog)
    assert snap.record("scrap", "2024-01").actual == 2.5


def test_datetime_periods_are_accepted(frame, catalog):
    frame = frame.copy()
    frame["period"] = pd.to_datetime(frame["period"] + "-01")
    snap = build_snapshot(frame, catalog)
    assert snap.periods[0] == "2024-01"


def test_records_are_read_only(frame, catalog):
    snap = build_snapshot(frame, catalog)
    with pytest.raises(TypeError):
        snap.records["oee"]["2024-01"] = None


def test_unknown_period_lookup(frame, catalog):
    snap = build_snapshot(frame, catalog)
    with pytest.raises(UnknownPeriodError):
        snap.record("oee", "2023-12")
    with pytest.raises(UnknownPeriodError):
        snap.offset_period("1999-01", -1)


def test_missing_record_is_rejected(frame, catalog):
    gap = frame.drop(index=frame[(frame["kpi_id"] == "oee") & (frame["period"] == "2024-07")].index)
    with pytest.raises(DataIntegrityError, match="oee"):
        build_snapshot(gap, catalog, periods=make_periods("2024-01", 24))


def test_missing_column_is_rejected(frame, catalog):
    with pytest.raises(DataIntegrityError, match="budget"):
        build_snapshot(frame.drop(columns=["budget"]), catalog)


@pytest.mark.parametrize("bad_value", [None, "n/a"])
def test_non_numeric_values_are_rejected(frame, catalog, bad_value):
    frame = frame.astype({"warning": object})
    frame.loc[3, "warning"] = bad_value
    with pytest.raises(DataIntegrityError, match="non-numeric"):
        build_snapshot(frame, catalog)


def test_duplicate_records_are_rejected(frame, catalog):
    with pytest.raises(DataIntegrityError, match="Duplicate"):
        build_snapshot(pd.concat([frame, frame.iloc[[0]]]), catalog)


def test_unknown_kpi_is_rejected(frame, catalog):
    extra = frame.iloc[[0]].assign(kpi_id="mystery")
    with pytest.raises(DataIntegrityError, match="mystery"):
        build_snapshot(pd.concat([frame, extra]), catalog)


def test_non_contiguous_history_is_rejected(two_kpis, catalog):
    periods = ("2024-01", "2024-03")
    with pytest.raises(DataIntegrityError, match="contiguous"):
        build_snapshot(history_frame(two_kpis, periods, {"oee": 1.0, "scrap": 1.0}), catalog, periods=periods)


def test_visible_periods_must_be_in_history(frame, catalog):
    with pytest.raises(DataIntegrityError, match="Visible"):
        build_snapshot(frame, catalog, visible_periods=("2026-01",))


def test_records_outside_history_are_rejected(frame, catalog, periods):
    with pytest.raises(DataIntegrityError, match="outside history"):
        build_snapshot(frame, catalog, periods=periods[:12])


def test_segments_for_unknown_kpi_are_rejected(frame, catalog):
    with pytest.raises(DataIntegrityError, match="ghost"):
        build_snapshot(frame, catalog, segments={"ghost": []})


def test_unknown_kpi_lookup(frame, catalog):
    snap = build_snapshot(frame, catalog)
    with pytest.raises(KeyError):
        snap.kpi("mystery")
