"""
Synthetic KPI history — seeded and fully reproducible.

Same seed -> same dataset. Each series starts at a base value and drifts
slightly toward improvement with unit-scaled noise; it never falls far past
the warning threshold. Target, warning and budget are written into every
period record.
"""

import logging

import pandas as pd

from kpi import Segment, Snapshot, build_snapshot, make_periods
from kpi_definitions import KPIDefinition, Perspective, Polarity, Unit, get_catalog

logger = logging.getLogger(__name__)

DEFAULT_SEED = 20251113
DEFAULT_HISTORY_START = "2024-01"
DEFAULT_HISTORY_MONTHS = 24
DEFAULT_VISIBLE_MONTHS = 12

# Draw order is part of the dataset: changing it changes every series.
GENERATION_ORDER = ("fin", "cus", "pro", "lrn", "sus")

BASE_VALUES = {
    "gross_margin": 22.0,
    "ebitda_sales": 10.5,
    "operating_cash_flow": 1.5,
    "inventory_turnover": 6.8,
    "otif": 90.0,
    "rescheduling_rate": 8.5,
    "complaints_per_10k_orders": 4.2,
    "nps": 52.0,
    "oee": 58.0,
    "scrap": 3.2,
    "mttr": 42.0,
    "mtbf": 38.0,
    "training_hours": 14.0,
    "improvement_ideas": 14.0,
    "five_s_compliance": 70.0,
    "critical_role_coverage": 64.0,
    "energy_per_tonne": 440.0,
    "co2_per_tonne": 205.0,
    "recycled_waste": 58.0,
}

DRIFT_PER_PERIOD = 0.006
NOISE_BY_UNIT = {Unit.PERCENT: 0.6, Unit.MILLION_USD: 0.06, Unit.TIMES: 0.04}
DEFAULT_NOISE = 0.9
DECIMALS_BY_UNIT = {Unit.PERCENT: 1, Unit.MILLION_USD: 2, Unit.PER_TEN_THOUSAND: 1, Unit.TIMES: 1}
FLOOR_FACTOR = 0.85  # higher-is-better never drops below warning * factor
CEILING_FACTOR = 1.2  # lower-is-better never rises above warning * factor
SEGMENT_JITTER = 0.1


class LCG:
    """Linear congruential generator returning floats in [0, 1)."""

    MULTIPLIER = 1664525
    INCREMENT = 1013904223
    MODULUS = 2 ** 32

    def __init__(self, seed: int = DEFAULT_SEED):
        self._state = seed

    def __call__(self) -> float:
        self._state = (self._state * self.MULTIPLIER + self.INCREMENT) % self.MODULUS
        return self._state / self.MODULUS


def jitter(rnd: LCG, base: float, vol: float) -> float:
    return base * (1 + (rnd() * 2 - 1) * vol)


def generate_series(kpi: KPIDefinition, base: float, rnd: LCG, length: int) -> list[float]:
    direction = 1 if kpi.polarity == Polarity.HIGHER_IS_BETTER else -1
    noise = NOISE_BY_UNIT.get(kpi.unit, DEFAULT_NOISE)
    decimals = DECIMALS_BY_UNIT.get(kpi.unit, 0)
    values = []
    v = base
    for _ in range(length):
        v = v * (1 + direction * DRIFT_PER_PERIOD) + (rnd() * 2 - 1) * noise
        if direction > 0:
            v = max(v, kpi.warning * FLOOR_FACTOR)
        else:
            v = min(v, kpi.warning * CEILING_FACTOR)
        values.append(round(v, decimals))
    return values


def build_history_frame(
    perspectives: tuple[Perspective, ...],
    periods: tuple[str, ...],
    seed: int = DEFAULT_SEED,
) -> tuple[pd.DataFrame, dict[str, list[Segment]]]:
    """Long-format history (kpi_id, period, actual, target, warning, budget) plus segments."""
    rnd = LCG(seed)
    by_id = {p.perspective_id: p for p in perspectives}
    rows = []
    segments: dict[str, list[Segment]] = {}
    for pid in GENERATION_ORDER:
        for kpi in by_id[pid].kpis:
            base = BASE_VALUES[kpi.kpi_id]
            series = generate_series(kpi, base, rnd, len(periods))
            for period, actual in zip(periods, series):
                rows.append({
                    "kpi_id": kpi.kpi_id,
                    "period": period,
                    "actual": actual,
                    "target": kpi.target,
                    "warning": kpi.warning,
                    "budget": kpi.budget,
                })
            segments[kpi.kpi_id] = [
                Segment("Line A", jitter(rnd, base, SEGMENT_JITTER)),
                Segment("Line B", jitter(rnd, base * 1.02, SEGMENT_JITTER)),
            ]
    return pd.DataFrame(rows), segments


def build_default_snapshot(
    seed: int = DEFAULT_SEED,
    history_start: str = DEFAULT_HISTORY_START,
    history_months: int = DEFAULT_HISTORY_MONTHS,
    visible_months: int = DEFAULT_VISIBLE_MONTHS,
) -> Snapshot:
    if not 0 < visible_months <= history_months:
        raise ValueError("visible_months must be between 1 and history_months")
    perspectives = get_catalog()
    periods = make_periods(history_start, history_months)
    frame, segments = build_history_frame(perspectives, periods, seed)
    logger.info("Generated %d synthetic KPI records (seed=%d)", len(frame), seed)
    return build_snapshot(
        frame,
        perspectives,
        periods=periods,
        visible_periods=periods[-visible_months:],
        segments=segments,
    )
