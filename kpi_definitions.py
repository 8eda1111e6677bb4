"""
KPI Definitions — Balanced-scorecard catalog.

Each KPI is defined with:
- perspective: owning perspective id (lrn | pro | cus | fin | sus)
- unit: semantic unit tag (drives display formatting only)
- polarity: "up" (higher is better) | "down" (lower is better)
- target / warning / budget: default policy values written into every period record
- business_question: what executive question it answers

Perspectives are listed in canonical order. The cause-effect chain uses the
first four: Learning -> Process -> Customer -> Financial.
"""

from dataclasses import dataclass
from enum import Enum


class Polarity(str, Enum):
    HIGHER_IS_BETTER = "up"
    LOWER_IS_BETTER = "down"


class Unit(str, Enum):
    PERCENT = "%"
    MILLION_USD = "MM USD"
    TIMES = "x"
    PER_TEN_THOUSAND = "‱"
    POINTS = "pts"
    MINUTES = "min"
    HOURS = "h"
    PER_MONTH = "/mo"
    KWH_PER_TONNE = "kWh/t"
    KG_PER_TONNE = "kg/t"


# Semantic kind of each unit; not used by any comparison.
UNIT_KINDS = {
    Unit.PERCENT: "percentage",
    Unit.MILLION_USD: "currency",
    Unit.TIMES: "ratio",
    Unit.PER_TEN_THOUSAND: "rate",
    Unit.POINTS: "count",
    Unit.MINUTES: "count",
    Unit.HOURS: "count",
    Unit.PER_MONTH: "rate",
    Unit.KWH_PER_TONNE: "rate",
    Unit.KG_PER_TONNE: "rate",
}


@dataclass(frozen=True)
class KPIDefinition:
    kpi_id: str
    name: str
    unit: Unit
    polarity: Polarity
    target: float
    warning: float
    budget: float


@dataclass(frozen=True)
class Perspective:
    perspective_id: str
    name: str
    kpis: tuple[KPIDefinition, ...]


PERSPECTIVE_NAMES = {
    "lrn": "Learning",
    "pro": "Process",
    "cus": "Customer",
    "fin": "Financial",
    "sus": "Sustainability",
}

PERSPECTIVE_ORDER = ("lrn", "pro", "cus", "fin", "sus")
CAUSAL_CHAIN = ("lrn", "pro", "cus", "fin")


KPI_DEFINITIONS = {
    # Financial
    "gross_margin": {
        "name": "Gross Margin",
        "perspective": "fin",
        "unit": "%",
        "polarity": "up",
        "target": 24.0,
        "warning": 21.5,
        "budget": 24.0,
        "business_question": "How much of each sale is left after direct costs?",
    },
    "ebitda_sales": {
        "name": "EBITDA / Sales",
        "perspective": "fin",
        "unit": "%",
        "polarity": "up",
        "target": 12.0,
        "warning": 9.5,
        "budget": 12.0,
        "business_question": "Is the operation profitable before financing and depreciation?",
    },
    "operating_cash_flow": {
        "name": "Operating Cash Flow",
        "perspective": "fin",
        "unit": "MM USD",
        "polarity": "up",
        "target": 2.0,
        "warning": 1.2,
        "budget": 2.0,
        "business_question": "Does the business generate cash from its operations?",
    },
    "inventory_turnover": {
        "name": "Inventory Turnover",
        "perspective": "fin",
        "unit": "x",
        "polarity": "up",
        "target": 7.2,
        "warning": 6.3,
        "budget": 7.0,
        "business_question": "How efficiently is working capital tied up in stock?",
    },
    # Customer
    "otif": {
        "name": "OTIF",
        "perspective": "cus",
        "unit": "%",
        "polarity": "up",
        "target": 95.0,
        "warning": 88.0,
        "budget": 94.0,
        "business_question": "Are orders delivered on time and in full?",
    },
    "rescheduling_rate": {
        "name": "Rescheduling Rate",
        "perspective": "cus",
        "unit": "%",
        "polarity": "down",
        "target": 5.0,
        "warning": 7.5,
        "budget": 6.0,
        "business_question": "How often do committed delivery dates have to be renegotiated?",
    },
    "complaints_per_10k_orders": {
        "name": "Complaints per 10k Orders",
        "perspective": "cus",
        "unit": "‱",
        "polarity": "down",
        "target": 2.5,
        "warning": 3.8,
        "budget": 2.8,
        "business_question": "How frequently do customers raise formal complaints?",
    },
    "nps": {
        "name": "NPS",
        "perspective": "cus",
        "unit": "pts",
        "polarity": "up",
        "target": 60.0,
        "warning": 48.0,
        "budget": 58.0,
        "business_question": "Would customers recommend us?",
    },
    # Process
    "oee": {
        "name": "OEE",
        "perspective": "pro",
        "unit": "%",
        "polarity": "up",
        "target": 68.0,
        "warning": 60.0,
        "budget": 65.0,
        "business_question": "How much of planned production time is truly productive?",
    },
    "scrap": {
        "name": "Scrap",
        "perspective": "pro",
        "unit": "%",
        "polarity": "down",
        "target": 2.0,
        "warning": 3.0,
        "budget": 2.4,
        "business_question": "What share of output is lost to defects?",
    },
    "mttr": {
        "name": "MTTR",
        "perspective": "pro",
        "unit": "min",
        "polarity": "down",
        "target": 32.0,
        "warning": 40.0,
        "budget": 36.0,
        "business_question": "How quickly are failures repaired?",
    },
    "mtbf": {
        "name": "MTBF",
        "perspective": "pro",
        "unit": "h",
        "polarity": "up",
        "target": 48.0,
        "warning": 38.0,
        "budget": 44.0,
        "business_question": "How long do assets run between failures?",
    },
    # Learning
    "training_hours": {
        "name": "Training Hours per Person",
        "perspective": "lrn",
        "unit": "h",
        "polarity": "up",
        "target": 24.0,
        "warning": 16.0,
        "budget": 20.0,
        "business_question": "Are people getting enough training?",
    },
    "improvement_ideas": {
        "name": "Improvement Ideas Implemented",
        "perspective": "lrn",
        "unit": "/mo",
        "polarity": "up",
        "target": 25.0,
        "warning": 12.0,
        "budget": 20.0,
        "business_question": "Is continuous improvement actually happening?",
    },
    "five_s_compliance": {
        "name": "5S Compliance",
        "perspective": "lrn",
        "unit": "%",
        "polarity": "up",
        "target": 85.0,
        "warning": 72.0,
        "budget": 80.0,
        "business_question": "Are workplace standards being sustained?",
    },
    "critical_role_coverage": {
        "name": "Critical Role Coverage",
        "perspective": "lrn",
        "unit": "%",
        "polarity": "up",
        "target": 80.0,
        "warning": 68.0,
        "budget": 75.0,
        "business_question": "Do critical roles have qualified backups?",
    },
    # Sustainability
    "energy_per_tonne": {
        "name": "Energy per Tonne",
        "perspective": "sus",
        "unit": "kWh/t",
        "polarity": "down",
        "target": 390.0,
        "warning": 430.0,
        "budget": 400.0,
        "business_question": "How energy-intensive is each tonne produced?",
    },
    "co2_per_tonne": {
        "name": "CO2 Emissions per Tonne",
        "perspective": "sus",
        "unit": "kg/t",
        "polarity": "down",
        "target": 170.0,
        "warning": 200.0,
        "budget": 180.0,
        "business_question": "What is the carbon footprint per tonne?",
    },
    "recycled_waste": {
        "name": "Recycled Waste",
        "perspective": "sus",
        "unit": "%",
        "polarity": "up",
        "target": 75.0,
        "warning": 60.0,
        "budget": 70.0,
        "business_question": "How much of our waste is recycled?",
    },
}


def _to_definition(kpi_id: str, defn: dict) -> KPIDefinition:
    return KPIDefinition(
        kpi_id=kpi_id,
        name=defn["name"],
        unit=Unit(defn["unit"]),
        polarity=Polarity(defn["polarity"]),
        target=float(defn["target"]),
        warning=float(defn["warning"]),
        budget=float(defn["budget"]),
    )


def build_catalog(definitions: dict[str, dict]) -> tuple[Perspective, ...]:
    """
    Group definitions into perspectives in canonical order.
    Raises ValueError for unknown perspectives or an empty perspective.
    """
    grouped: dict[str, list[KPIDefinition]] = {pid: [] for pid in PERSPECTIVE_ORDER}
    for kpi_id, defn in definitions.items():
        pid = defn["perspective"]
        if pid not in grouped:
            raise ValueError(f"KPI '{kpi_id}' references unknown perspective '{pid}'")
        grouped[pid].append(_to_definition(kpi_id, defn))

    perspectives = []
    for pid in PERSPECTIVE_ORDER:
        if not grouped[pid]:
            raise ValueError(f"Perspective '{pid}' has no KPIs")
        perspectives.append(Perspective(pid, PERSPECTIVE_NAMES[pid], tuple(grouped[pid])))
    return tuple(perspectives)


def get_catalog() -> tuple[Perspective, ...]:
    return build_catalog(KPI_DEFINITIONS)


def get_kpi_definitions() -> dict[str, dict]:
    return KPI_DEFINITIONS


def find_kpi(perspectives: tuple[Perspective, ...], kpi_id: str) -> KPIDefinition:
    for p in perspectives:
        for k in p.kpis:
            if k.kpi_id == kpi_id:
                return k
    raise KeyError(kpi_id)
