"""
KPI Evaluation & Comparison Engine — deterministic scorecard logic.

All health states, deltas, perspective scores and the cause-effect chain are
computed HERE, from an immutable Snapshot. The presentation layer only formats
and draws these outputs.

THRESHOLD POLICY:
- KPI thresholds (target / warning / budget) are read from the record of the
  period being evaluated, never from catalog defaults.
- Perspective bands use fixed aggregator constants, independent of KPI thresholds.
- Every function is pure: same snapshot + same inputs -> same outputs.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum

from kpi import Snapshot, UnknownPeriodError
from kpi_definitions import CAUSAL_CHAIN, KPIDefinition, Polarity, Unit

logger = logging.getLogger(__name__)


class Status(str, Enum):
    """Health state of a KPI, and band of a perspective. Severity: good > warn > bad."""
    GOOD = "good"
    WARN = "warn"
    BAD = "bad"


class ComparisonMode(str, Enum):
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    BUDGET = "budget"


class BudgetReference(str, Enum):
    """Sentinel: compare against the evaluated period's own budget."""
    BUDGET = "budget"


BUDGET = BudgetReference.BUDGET


# -----------------------------------------------------------------------------
# POLICY DEFINITIONS — Explicit constants with justification
# -----------------------------------------------------------------------------

POLICY_DEFINITIONS = {
    "kpi_state": {
        "id": "kpi_state",
        "condition": "up: good if actual >= target, warn if actual >= warning, else bad (mirrored for down)",
        "threshold": None,
        "unit": "kpi",
        "why_threshold": "Per-period target and warning from the KPI record; boundaries resolve to the better state.",
    },
    "band_good": {
        "id": "band_good",
        "condition": "Share of KPIs in good state >= 70%",
        "threshold": 70,
        "unit": "percent",
        "why_threshold": "Clear majority of the perspective on target.",
    },
    "band_warn": {
        "id": "band_warn",
        "condition": "Share of KPIs in good state >= 40%",
        "threshold": 40,
        "unit": "percent",
        "why_threshold": "Perspective partially on target; below this it is banded bad.",
    },
    "comparison_offsets": {
        "id": "comparison_offsets",
        "condition": "month = -1, quarter = -3, year = -12 periods; budget = same-period budget",
        "threshold": None,
        "unit": "periods",
        "why_threshold": "Look-back outside the maintained history yields no comparison.",
    },
}

BAND_GOOD_MIN_PCT = POLICY_DEFINITIONS["band_good"]["threshold"]
BAND_WARN_MIN_PCT = POLICY_DEFINITIONS["band_warn"]["threshold"]

MODE_OFFSETS = {
    ComparisonMode.MONTH: -1,
    ComparisonMode.QUARTER: -3,
    ComparisonMode.YEAR: -12,
}


def get_policy_definitions() -> dict:
    return POLICY_DEFINITIONS


@dataclass
class KPIEvaluation:
    kpi_id: str
    name: str
    unit: Unit
    polarity: Polarity
    state: Status
    actual: float
    target: float
    warning: float
    budget: float
    reference: str | None  # period label, "budget", or None
    reference_value: float | None
    delta_pct: float | None


@dataclass
class SegmentEvaluation:
    name: str
    unit: Unit
    polarity: Polarity
    actual: float
    target: float
    state: Status


@dataclass
class PerspectiveAggregate:
    perspective_id: str
    healthy_count: int
    total: int
    ratio_pct: int
    band: Status


@dataclass
class ChainNode:
    perspective_id: str
    band: Status


@dataclass
class ChainEdge:
    source: str
    target: str
    band: Status  # always the source node's band


@dataclass
class DashboardResult:
    """
    Output of one dashboard query (period + comparison mode + optional name filter).
    `evaluations` holds only KPIs passing the filter; aggregates and chain always
    cover every KPI.
    """
    period: str
    mode: ComparisonMode
    reference: str | BudgetReference | None
    evaluations: dict[str, list[KPIEvaluation]] = field(default_factory=dict)
    aggregates: dict[str, PerspectiveAggregate] = field(default_factory=dict)
    chain: list[ChainNode] = field(default_factory=list)
    edges: list[ChainEdge] = field(default_factory=list)


# -----------------------------------------------------------------------------
# STATE CLASSIFIER
# -----------------------------------------------------------------------------

def classify(actual: float, target: float, warning: float, polarity: Polarity) -> Status:
    if polarity == Polarity.HIGHER_IS_BETTER:
        if actual >= target:
            return Status.GOOD
        return Status.WARN if actual >= warning else Status.BAD
    if actual <= target:
        return Status.GOOD
    return Status.WARN if actual <= warning else Status.BAD


# -----------------------------------------------------------------------------
# REFERENCE RESOLVER
# -----------------------------------------------------------------------------

def resolve_reference(
    snapshot: Snapshot,
    period: str,
    mode: ComparisonMode | str,
) -> str | BudgetReference | None:
    """
    Period to compare against, BUDGET for plan-vs-actual, or None when the
    look-back falls outside history. Raises UnknownPeriodError if `period`
    itself is not in history.
    """
    mode = ComparisonMode(mode)
    snapshot.period_index(period)
    if mode == ComparisonMode.BUDGET:
        return BUDGET
    return snapshot.offset_period(period, MODE_OFFSETS[mode])


# -----------------------------------------------------------------------------
# DELTA CALCULATOR
# -----------------------------------------------------------------------------

def compute_delta(actual: float, reference: float | None, polarity: Polarity) -> float | None:
    """
    Percentage change vs reference, signed so that positive always means improvement.
    None when there is no reference or it is zero.
    """
    if reference is None or reference == 0:
        return None
    raw = (actual - reference) / reference * 100
    return raw if polarity == Polarity.HIGHER_IS_BETTER else -raw


def reference_value(
    snapshot: Snapshot,
    kpi_id: str,
    period: str,
    mode: ComparisonMode | str,
) -> float | None:
    ref = resolve_reference(snapshot, period, mode)
    if ref is None:
        return None
    if ref is BUDGET:
        return snapshot.record(kpi_id, period).budget
    return snapshot.record(kpi_id, ref).actual


# -----------------------------------------------------------------------------
# AGGREGATOR
# -----------------------------------------------------------------------------

def band_for(ratio_pct: float) -> Status:
    if ratio_pct >= BAND_GOOD_MIN_PCT:
        return Status.GOOD
    if ratio_pct >= BAND_WARN_MIN_PCT:
        return Status.WARN
    return Status.BAD


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def kpi_state(snapshot: Snapshot, kpi: KPIDefinition, period: str) -> Status:
    rec = snapshot.record(kpi.kpi_id, period)
    return classify(rec.actual, rec.target, rec.warning, kpi.polarity)


def aggregate(snapshot: Snapshot, perspective_id: str, period: str) -> PerspectiveAggregate:
    perspective = snapshot.perspective(perspective_id)
    total = len(perspective.kpis)
    healthy = sum(1 for k in perspective.kpis if kpi_state(snapshot, k, period) == Status.GOOD)
    ratio_pct = _round_half_up(healthy / total * 100)
    return PerspectiveAggregate(
        perspective_id=perspective_id,
        healthy_count=healthy,
        total=total,
        ratio_pct=ratio_pct,
        band=band_for(ratio_pct),
    )


# -----------------------------------------------------------------------------
# CAUSAL-FLOW DERIVER
# -----------------------------------------------------------------------------
# Fixed display ordering; each node is banded independently, nothing propagates.

def derive_chain(snapshot: Snapshot, period: str) -> list[ChainNode]:
    return [ChainNode(pid, aggregate(snapshot, pid, period).band) for pid in CAUSAL_CHAIN]


def chain_edges(chain: list[ChainNode]) -> list[ChainEdge]:
    return [ChainEdge(a.perspective_id, b.perspective_id, a.band) for a, b in zip(chain, chain[1:])]


# -----------------------------------------------------------------------------
# PER-KPI EVALUATION
# -----------------------------------------------------------------------------

def evaluate_kpi(
    snapshot: Snapshot,
    kpi: KPIDefinition,
    period: str,
    mode: ComparisonMode | str,
) -> KPIEvaluation:
    rec = snapshot.record(kpi.kpi_id, period)
    ref = resolve_reference(snapshot, period, mode)
    ref_value = reference_value(snapshot, kpi.kpi_id, period, mode)
    return KPIEvaluation(
        kpi_id=kpi.kpi_id,
        name=kpi.name,
        unit=kpi.unit,
        polarity=kpi.polarity,
        state=classify(rec.actual, rec.target, rec.warning, kpi.polarity),
        actual=rec.actual,
        target=rec.target,
        warning=rec.warning,
        budget=rec.budget,
        reference=ref.value if ref is BUDGET else ref,
        reference_value=ref_value,
        delta_pct=compute_delta(rec.actual, ref_value, kpi.polarity),
    )


def evaluate_segments(snapshot: Snapshot, kpi: KPIDefinition, period: str) -> list[SegmentEvaluation]:
    """Segments are judged against the parent KPI's target and warning for `period`."""
    rec = snapshot.record(kpi.kpi_id, period)
    out = []
    for seg in snapshot.segments_for(kpi.kpi_id):
        polarity = seg.polarity or kpi.polarity
        out.append(
            SegmentEvaluation(
                name=seg.name,
                unit=seg.unit or kpi.unit,
                polarity=polarity,
                actual=seg.actual,
                target=rec.target,
                state=classify(seg.actual, rec.target, rec.warning, polarity),
            )
        )
    return out


def filter_kpis(kpis, text: str = "") -> list[KPIDefinition]:
    needle = (text or "").strip().lower()
    if not needle:
        return list(kpis)
    return [k for k in kpis if needle in k.name.lower()]


def run_dashboard_engine(
    snapshot: Snapshot,
    period: str,
    mode: ComparisonMode | str = ComparisonMode.MONTH,
    name_filter: str = "",
) -> DashboardResult:
    """
    Evaluate the whole scorecard for one selected period and comparison mode.
    The period must be in the snapshot's visible window.
    """
    mode = ComparisonMode(mode)
    if not snapshot.is_visible(period):
        raise UnknownPeriodError(f"Period '{period}' is not selectable")

    result = DashboardResult(period=period, mode=mode, reference=resolve_reference(snapshot, period, mode))
    for p in snapshot.perspectives:
        result.aggregates[p.perspective_id] = aggregate(snapshot, p.perspective_id, period)
        result.evaluations[p.perspective_id] = [
            evaluate_kpi(snapshot, k, period, mode) for k in filter_kpis(p.kpis, name_filter)
        ]
    result.chain = derive_chain(snapshot, period)
    result.edges = chain_edges(result.chain)

    logger.debug(
        "Dashboard evaluated: period=%s mode=%s reference=%s filter=%r",
        period, mode.value, result.reference, name_filter,
    )
    return result
