"""
Runtime settings from the environment (optionally a .env file) and logging setup.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import pandas as pd
from dotenv import load_dotenv

from data_source import (
    DEFAULT_HISTORY_MONTHS,
    DEFAULT_HISTORY_START,
    DEFAULT_SEED,
    DEFAULT_VISIBLE_MONTHS,
)
from decision_engine import ComparisonMode

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    seed: int = DEFAULT_SEED
    history_start: str = DEFAULT_HISTORY_START
    history_months: int = DEFAULT_HISTORY_MONTHS
    visible_months: int = DEFAULT_VISIBLE_MONTHS
    default_mode: ComparisonMode = ComparisonMode.MONTH
    log_level: str = "INFO"


def _load_env_from_project(project_dir: str | Path) -> None:
    for d in [Path(project_dir), Path(__file__).resolve().parent, Path.cwd()]:
        env_file = d / ".env"
        if env_file.exists():
            load_dotenv(env_file)
            return


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _month_env(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return str(pd.Period(raw.strip(), freq="M"))
    except (ValueError, TypeError):
        raise ValueError(f"{name} must be YYYY-MM, got {raw!r}") from None


def load_settings(project_dir: str | Path = ".") -> Settings:
    _load_env_from_project(project_dir)
    history_months = _int_env("KPI_HISTORY_MONTHS", DEFAULT_HISTORY_MONTHS)
    visible_months = _int_env("KPI_VISIBLE_MONTHS", DEFAULT_VISIBLE_MONTHS)
    if not 0 < visible_months <= history_months:
        raise ValueError("KPI_VISIBLE_MONTHS must be between 1 and KPI_HISTORY_MONTHS")

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"LOG_LEVEL {log_level!r} is not a logging level")

    return Settings(
        seed=_int_env("KPI_DATA_SEED", DEFAULT_SEED),
        history_start=_month_env("KPI_HISTORY_START", DEFAULT_HISTORY_START),
        history_months=history_months,
        visible_months=visible_months,
        default_mode=ComparisonMode(os.getenv("KPI_DEFAULT_MODE", "month").strip().lower()),
        log_level=log_level,
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
