"""
Time Series Store — immutable per-KPI history with per-period policy values.

The data source hands over a long-format table (one row per KPI and period)
carrying (actual, target, warning, budget). It is validated once here and frozen
into a Snapshot. Malformed or incomplete data is rejected at this boundary;
nothing downstream ever sees a partial record.
"""

import logging
from dataclasses import dataclass, field
from functools import cached_property
from types import MappingProxyType
from typing import Any, Iterator, Mapping

import numpy as np
import pandas as pd

from kpi_definitions import KPIDefinition, Perspective, Polarity, Unit, find_kpi

logger = logging.getLogger(__name__)

RECORD_COLUMNS = ["kpi_id", "period", "actual", "target", "warning", "budget"]
VALUE_COLUMNS = ["actual", "target", "warning", "budget"]


class DataIntegrityError(ValueError):
    """Data source violated the snapshot contract (missing, duplicate or malformed records)."""


class UnknownPeriodError(KeyError):
    """Period is not part of the maintained history (or of the visible window)."""


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = df.columns.astype(str).str.strip()
    col_map = {
        "KPI": "kpi_id",
        "kpi": "kpi_id",
        "KPI_ID": "kpi_id",
        "Period": "period",
        "Actual": "actual",
        "Target": "target",
        "Warning": "warning",
        "Budget": "budget",
        "Plan": "budget",
    }
    for old, new in col_map.items():
        if old in df.columns and new not in df.columns:
            df = df.rename(columns={old: new})
    return df


normalize_columns = _normalize_columns


def _get_col(df: pd.DataFrame, *candidates: str) -> str:
    for c in candidates:
        if c in df.columns:
            return c
    raise DataIntegrityError(f"Required column not found. Tried: {candidates}")


def make_periods(start: str, count: int) -> tuple[str, ...]:
    """Contiguous monthly periods as YYYY-MM strings."""
    return tuple(pd.period_range(start=start, periods=count, freq="M").strftime("%Y-%m"))


def _check_contiguous(periods: tuple[str, ...]) -> None:
    if len(set(periods)) != len(periods):
        raise DataIntegrityError("History periods must be unique")
    try:
        ordinals = pd.PeriodIndex(list(periods), freq="M").asi8
    except (ValueError, TypeError) as e:
        raise DataIntegrityError(f"History periods must be YYYY-MM: {e}") from e
    if len(ordinals) > 1 and (np.diff(ordinals) != 1).any():
        raise DataIntegrityError("History periods must form a contiguous monthly sequence")


@dataclass(frozen=True)
class HistoricalRecord:
    actual: float
    target: float
    warning: float
    budget: float


@dataclass(frozen=True)
class Segment:
    """Sub-entity of a KPI (e.g. a production line). Unset overrides fall back to the parent KPI."""
    name: str
    actual: float
    polarity: Polarity | None = None
    unit: Unit | None = None


@dataclass(frozen=True)
class Snapshot:
    perspectives: tuple[Perspective, ...]
    periods: tuple[str, ...]
    visible_periods: tuple[str, ...]
    records: Mapping[str, Mapping[str, HistoricalRecord]]
    segments: Mapping[str, tuple[Segment, ...]] = field(default_factory=lambda: MappingProxyType({}))

    @cached_property
    def _period_index(self) -> dict[str, int]:
        return {p: i for i, p in enumerate(self.periods)}

    def period_index(self, period: str) -> int:
        try:
            return self._period_index[period]
        except KeyError:
            raise UnknownPeriodError(f"Period '{period}' is not in history") from None

    def offset_period(self, period: str, offset: int) -> str | None:
        """Period `offset` months away from `period`, or None when outside history."""
        idx = self.period_index(period) + offset
        if 0 <= idx < len(self.periods):
            return self.periods[idx]
        return None

    def is_visible(self, period: str) -> bool:
        return period in self.visible_periods

    def kpi(self, kpi_id: str) -> KPIDefinition:
        return find_kpi(self.perspectives, kpi_id)

    def perspective(self, perspective_id: str) -> Perspective:
        for p in self.perspectives:
            if p.perspective_id == perspective_id:
                return p
        raise KeyError(perspective_id)

    def iter_kpis(self) -> Iterator[tuple[Perspective, KPIDefinition]]:
        for p in self.perspectives:
            for k in p.kpis:
                yield p, k

    def record(self, kpi_id: str, period: str) -> HistoricalRecord:
        self.period_index(period)
        try:
            return self.records[kpi_id][period]
        except KeyError:
            raise DataIntegrityError(f"No record for KPI '{kpi_id}' in period '{period}'") from None

    def series(self, kpi_id: str) -> list[float]:
        return [self.record(kpi_id, p).actual for p in self.periods]

    def segments_for(self, kpi_id: str) -> tuple[Segment, ...]:
        return self.segments.get(kpi_id, ())

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for p, k in self.iter_kpis():
            for period in self.periods:
                rec = self.records[k.kpi_id][period]
                rows.append({
                    "perspective": p.perspective_id,
                    "kpi_id": k.kpi_id,
                    "period": period,
                    "actual": rec.actual,
                    "target": rec.target,
                    "warning": rec.warning,
                    "budget": rec.budget,
                })
        return pd.DataFrame(rows, columns=["perspective"] + RECORD_COLUMNS)


def _fail(message: str) -> None:
    logger.error("Rejected KPI history: %s", message)
    raise DataIntegrityError(message)


def _period_strings(col: pd.Series) -> pd.Series:
    if pd.api.types.is_datetime64_any_dtype(col):
        return col.dt.strftime("%Y-%m")
    return col.astype(str).str.strip()


def build_snapshot(
    frame: pd.DataFrame,
    perspectives: tuple[Perspective, ...],
    periods: tuple[str, ...] | None = None,
    visible_periods: tuple[str, ...] | None = None,
    segments: Mapping[str, Any] | None = None,
) -> Snapshot:
    """
    Validate a long-format history table and freeze it into a Snapshot.

    Args:
        frame: one row per (kpi_id, period) with actual/target/warning/budget
        perspectives: the catalog (see kpi_definitions.get_catalog)
        periods: full ordered history; defaults to the sorted periods found in `frame`
        visible_periods: user-selectable subset; defaults to the whole history
        segments: optional kpi_id -> list of Segment

    Raises:
        DataIntegrityError on any missing, duplicate, unknown or non-numeric record.
    """
    df = _normalize_columns(frame)
    for name in RECORD_COLUMNS:
        _get_col(df, name)
    df = df[RECORD_COLUMNS].copy()
    df["kpi_id"] = df["kpi_id"].astype(str).str.strip()
    df["period"] = _period_strings(df["period"])

    for c in VALUE_COLUMNS:
        df[c] = pd.to_numeric(df[c], errors="coerce")
    bad = df[df[VALUE_COLUMNS].isna().any(axis=1)]
    if not bad.empty:
        first = bad.iloc[0]
        _fail(f"{len(bad)} row(s) with missing or non-numeric values (first: {first['kpi_id']} {first['period']})")

    catalog_ids = [k.kpi_id for p in perspectives for k in p.kpis]
    unknown = sorted(set(df["kpi_id"]) - set(catalog_ids))
    if unknown:
        _fail(f"Unknown KPI id(s): {unknown}")

    dupes = df[df.duplicated(subset=["kpi_id", "period"], keep=False)]
    if not dupes.empty:
        _fail(f"Duplicate records for: {sorted(set(zip(dupes['kpi_id'], dupes['period'])))[:5]}")

    if periods is None:
        periods = tuple(sorted(df["period"].unique()))
    periods = tuple(periods)
    if not periods:
        _fail("History is empty")
    _check_contiguous(periods)

    if visible_periods is None:
        visible_periods = periods
    visible_periods = tuple(visible_periods)
    outside = [p for p in visible_periods if p not in periods]
    if outside:
        _fail(f"Visible periods outside history: {outside}")

    stray = sorted(set(df["period"]) - set(periods))
    if stray:
        _fail(f"Records for periods outside history: {stray[:5]}")

    records: dict[str, dict[str, HistoricalRecord]] = {k: {} for k in catalog_ids}
    for row in df.itertuples(index=False):
        records[row.kpi_id][row.period] = HistoricalRecord(
            actual=float(row.actual),
            target=float(row.target),
            warning=float(row.warning),
            budget=float(row.budget),
        )

    for kpi_id in catalog_ids:
        missing = [p for p in periods if p not in records[kpi_id]]
        if missing:
            _fail(f"KPI '{kpi_id}' has no record for {len(missing)} period(s), first {missing[0]}")

    frozen_segments = {}
    for kpi_id, segs in (segments or {}).items():
        if kpi_id not in records:
            _fail(f"Segments given for unknown KPI '{kpi_id}'")
        frozen_segments[kpi_id] = tuple(segs)

    logger.info(
        "KPI snapshot built: %d perspectives, %d KPIs, %d periods (%d visible)",
        len(perspectives), len(catalog_ids), len(periods), len(visible_periods),
    )
    return Snapshot(
        perspectives=tuple(perspectives),
        periods=periods,
        visible_periods=visible_periods,
        records=MappingProxyType({k: MappingProxyType(v) for k, v in records.items()}),
        segments=MappingProxyType(frozen_segments),
    )
