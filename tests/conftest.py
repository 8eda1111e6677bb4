"""Shared builders for small, hand-checkable scorecards."""

from __future__ import annotations

import pandas as pd
import pytest

from kpi import build_snapshot, make_periods
from kpi_definitions import KPIDefinition, Perspective, Polarity, Unit


def kpi_def(kpi_id, polarity="up", target=10.0, warning=5.0, budget=10.0, unit="%", name=None):
    return KPIDefinition(
        kpi_id=kpi_id,
        name=name or kpi_id.replace("_", " ").title(),
        unit=Unit(unit),
        polarity=Polarity(polarity),
        target=target,
        warning=warning,
        budget=budget,
    )


def history_frame(kpis, periods, actuals):
    """actuals: kpi_id -> scalar (every period) or list aligned with periods."""
    rows = []
    for k in kpis:
        values = actuals[k.kpi_id]
        for i, period in enumerate(periods):
            rows.append({
                "kpi_id": k.kpi_id,
                "period": period,
                "actual": values[i] if isinstance(values, list) else values,
                "target": k.target,
                "warning": k.warning,
                "budget": k.budget,
            })
    return pd.DataFrame(rows)


@pytest.fixture
def periods():
    return make_periods("2024-01", 24)


@pytest.fixture
def margin():
    return kpi_def("gross_margin", target=24.0, warning=21.5, budget=24.0, name="Gross Margin")


@pytest.fixture
def scorecard(periods, margin):
    """
    Learning 4/4 good, Process 2/4 good, Customer 3/4 good (one bad),
    Financial 0/4 good (Gross Margin 22.0 -> 23.0 in the last two periods), Sustainability 1/1.
    """
    good, warn, bad = 12.0, 7.0, 1.0
    lrn = [kpi_def(f"lrn_{i}") for i in range(4)]
    pro = [kpi_def(f"pro_{i}") for i in range(4)]
    cus = [kpi_def(f"cus_{i}") for i in range(3)] + [kpi_def("cus_late", polarity="down", target=2.0, warning=3.0, budget=2.4)]
    fin = [margin] + [kpi_def(f"fin_{i}") for i in range(3)]
    sus = [kpi_def("sus_0", polarity="down", target=390.0, warning=430.0, budget=400.0, unit="kWh/t")]
    perspectives = (
        Perspective("lrn", "Learning", tuple(lrn)),
        Perspective("pro", "Process", tuple(pro)),
        Perspective("cus", "Customer", tuple(cus)),
        Perspective("fin", "Financial", tuple(fin)),
        Perspective("sus", "Sustainability", tuple(sus)),
    )
    actuals = {k.kpi_id: good for k in lrn}
    actuals.update({"pro_0": good, "pro_1": good, "pro_2": warn, "pro_3": bad})
    actuals.update({"cus_0": good, "cus_1": good, "cus_2": good, "cus_late": 4.0})
    actuals.update({"gross_margin": [22.0] * 23 + [23.0], "fin_0": warn, "fin_1": bad, "fin_2": bad})
    actuals["sus_0"] = 380.0
    kpis = [k for p in perspectives for k in p.kpis]
    return build_snapshot(
        history_frame(kpis, periods, actuals),
        perspectives,
        periods=periods,
        visible_periods=periods[-12:],
    )
