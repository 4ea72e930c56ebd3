"""Illustrative preset scenarios for the Bottleneck Mapper."""

from typing import Dict, List

from bottleneck_mapper.capacity import total_headcount
from bottleneck_mapper.config import DEFAULT_STAGE_TEMPLATES, DEFAULT_UTILIZATION
from bottleneck_mapper.economics import commercial_from_offers
from bottleneck_mapper.models import (
    Benchmark,
    Cash,
    Commercial,
    HeadcountRow,
    Offer,
    Scenario,
    Stage,
)


def default_stages() -> List[Stage]:
    return [
        Stage(id=sid, name=name, unit=unit, owner=owner, utilization=DEFAULT_UTILIZATION)
        for sid, name, unit, owner in DEFAULT_STAGE_TEMPLATES
    ]


def _staffed(stage: Stage, fte: float, focus: float, util: float, rate: float, yld: float) -> Stage:
    return Stage(
        id=stage.id, name=stage.name, unit=stage.unit, owner=stage.owner,
        fte=fte, focus_hours_per_week=focus, utilization=util,
        standard_rate_per_hour=rate, yield_rate=yld
    )


def cargo_like() -> Scenario:
    base = default_stages()
    staffing = [
        (2, 18, 0.70, 15, 1.0), (2, 22, 0.75, 2, 0.9), (2, 22, 0.80, 1.2, 0.9),
        (2, 22, 0.80, 8, 0.9), (2, 22, 0.80, 6, 0.88), (1, 20, 0.85, 4, 0.9),
        (2, 22, 0.85, 2.5, 0.95), (2, 25, 0.80, 4, 0.95), (2, 20, 0.80, 4, 0.95),
        (2, 22, 0.80, 6, 0.95), (2, 20, 0.80, 6, 0.95),
    ]
    offers = [
        Offer("o1", "Marketplace SaaS", 6500, 0.78, 0.7),
        Offer("o2", "Enterprise Add-on", 18000, 0.72, 0.3),
    ]
    headcount = [
        HeadcountRow("h1", "Marketing", 2, 18, 0.7, 0.5),
        HeadcountRow("h2", "SDR/BDR", 2, 22, 0.75, 0),
        HeadcountRow("h3", "Sales AE", 2, 22, 0.8, 0),
        HeadcountRow("h4", "RevOps", 1, 18, 0.75, 0),
        HeadcountRow("h5", "Delivery", 2, 25, 0.8, 0.5),
        HeadcountRow("h6", "CS", 2, 20, 0.75, 0),
    ]
    return Scenario(
        name="Cargo-like (illustrative)",
        stages=tuple(_staffed(s, *row) for s, row in zip(base, staffing)),
        funnel_counts=(20000, 1200, 420, 260, 210, 140, 70),
        commercial=commercial_from_offers(offers),
        cash=Cash(cac=1800, payback_days=75, dso=28, prepay_share=0.25),
        headcount=total_headcount(headcount),
        window_days=90
    )


def saas_mid() -> Scenario:
    base = default_stages()
    staffing = [
        (1, 18, 0.70, 10, 1.0), (1, 20, 0.75, 1.5, 0.9), (1, 20, 0.80, 1, 0.9),
        (1, 20, 0.80, 6, 0.9), (1, 20, 0.80, 4, 0.88), (1, 20, 0.85, 3, 0.9),
        (1, 20, 0.85, 2, 0.95),
    ]
    stages = [_staffed(s, *row) for s, row in zip(base, staffing)] + base[len(staffing):]
    headcount = [
        HeadcountRow("h1", "Marketing", 1, 18, 0.7, 0),
        HeadcountRow("h2", "SDR", 1, 20, 0.75, 0),
        HeadcountRow("h3", "AE", 1, 22, 0.8, 0),
        HeadcountRow("h4", "CS/PS", 1, 20, 0.75, 0),
    ]
    return Scenario(
        name="SaaS Mid-Market (generic)",
        stages=tuple(stages),
        funnel_counts=(8000, 500, 200, 120, 90, 60, 30),
        commercial=commercial_from_offers([Offer("o1", "Core SaaS", 5000, 0.75, 1.0)]),
        cash=Cash(cac=1500, payback_days=90, dso=30, prepay_share=0.2),
        headcount=total_headcount(headcount),
        window_days=90
    )


def _velocity_stages(activation_rate: float) -> tuple:
    return (
        Stage("v1", "Lead", "lead", "Marketing", 2, 20, 0.8, 5.0, 1.0),
        Stage("v2", "MQL", "lead", "Marketing", 2, 20, 0.8, 2.0, 1.0),
        Stage("v3", "SQL", "lead", "SDR", 2, 20, 0.8, 1.0, 1.0),
        Stage("v4", "SAL", "meeting", "AE", 1, 20, 0.8, 1.5, 1.0),
        Stage("v5", "Opp", "opportunity", "AE", 2, 20, 0.8, 0.4, 1.0),
        Stage("v6", "Won", "customer", "AE", 2, 20, 0.8, 0.2, 1.0),
        Stage("v7", "Activation", "customer", "CS", 2, 20, 0.8, 0.2, activation_rate),
    )


def velocity_current() -> Scenario:
    return Scenario(
        name="Current 90d (illustrative)",
        stages=_velocity_stages(0.78),
        conversion_rates=(0.42, 0.55, 0.72, 0.50, 0.28),
        commercial=Commercial(12500, 0.81, 42, churn_monthly=0.02, time_to_value_days=12),
        cash=Cash(cac=2300),
        headcount=58,
        window_days=90,
        inbound_volume=1400,
        terminal_stage="Won"
    )


def velocity_previous() -> Scenario:
    return Scenario(
        name="Prev 90d",
        stages=_velocity_stages(0.82),
        conversion_rates=(0.45, 0.60, 0.75, 0.55, 0.36),
        commercial=Commercial(12000, 0.80, 45, churn_monthly=0.018, time_to_value_days=10),
        cash=Cash(cac=2400),
        headcount=55,
        window_days=90,
        inbound_volume=1250,
        terminal_stage="Won"
    )


def velocity_benchmark() -> Benchmark:
    """Targets taken from the previous period."""
    return Benchmark(
        name="Prev 90d targets",
        inbound_volume=1250,
        rate_targets={"Lead": 0.45, "MQL": 0.60, "SQL": 0.75, "SAL": 0.55, "Opp": 0.36},
        average_selling_price=12000,
        sales_cycle_days=45,
        metric_targets={"cac": 2400, "churn_monthly": 0.018, "onboarding_days": 10,
                        "activation_rate": 0.82}
    )


PRESETS: Dict[str, Dict] = {
    "cargo_like": {"label": "Cargo-like (illustrative)", "scenario": cargo_like},
    "saas_mid": {"label": "SaaS Mid-Market (generic)", "scenario": saas_mid},
    "velocity": {
        "label": "Acquisition velocity (current vs previous)",
        "scenario": velocity_current,
        "previous": velocity_previous,
        "benchmark": velocity_benchmark,
    },
}
