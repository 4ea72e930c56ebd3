"""Data models for the Bottleneck Mapper."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from bottleneck_mapper.config import (
    CASH_EFFICIENCY_THRESHOLD,
    DAYS_PER_WEEK,
    DEFAULT_CONFIDENCE,
    DEFAULT_TERMINAL_STAGE,
    DEFAULT_UTILIZATION,
    DEFAULT_WINDOW_DAYS,
    LOWER_IS_BETTER,
    SLIGHTLY_BELOW_THRESHOLD,
)


# =============================================================================
# INPUT RECORDS
# =============================================================================

@dataclass(frozen=True)
class Stage:
    id: str
    name: str
    unit: str = ""
    owner: str = ""
    fte: float = 0.0
    focus_hours_per_week: float = 0.0
    utilization: float = DEFAULT_UTILIZATION
    standard_rate_per_hour: float = 0.0
    yield_rate: float = 1.0


@dataclass(frozen=True)
class Offer:
    id: str
    name: str
    average_selling_price: float
    gross_margin: float
    share: float


@dataclass(frozen=True)
class HeadcountRow:
    id: str
    role: str
    fte: float
    focus_hours_per_week: float = 0.0
    utilization: float = 0.0
    contractors: float = 0.0


@dataclass(frozen=True)
class Commercial:
    average_selling_price: float = 0.0
    gross_margin: float = 0.0
    sales_cycle_days: float = 0.0
    churn_monthly: float = 0.0
    time_to_value_days: float = 0.0


@dataclass(frozen=True)
class Cash:
    cac: float = 0.0
    payback_days: float = 0.0
    dso: float = 0.0
    prepay_share: float = 0.0


@dataclass(frozen=True)
class BacklogItem:
    stage_id: str
    queued_units: float


@dataclass(frozen=True)
class Scenario:
    """One immutable bundle of pipeline inputs.

    ``conversion_rates[i]`` is the rate from demand stage ``i`` to ``i + 1``.
    When it is empty the rates are derived from ``funnel_counts``.
    """
    name: str
    stages: Tuple[Stage, ...]
    conversion_rates: Tuple[float, ...] = ()
    funnel_counts: Tuple[float, ...] = ()
    commercial: Commercial = field(default_factory=Commercial)
    cash: Cash = field(default_factory=Cash)
    headcount: float = 0.0
    window_days: float = DEFAULT_WINDOW_DAYS
    delivery_capacity_per_week: Optional[float] = None
    inbound_volume: Optional[float] = None
    terminal_stage: str = DEFAULT_TERMINAL_STAGE

    @property
    def weeks_in_window(self) -> float:
        days = self.window_days
        if days is None or not math.isfinite(days) or days <= 0:
            return 0.0
        return days / DAYS_PER_WEEK

    @property
    def terminal_index(self) -> int:
        for i, stage in enumerate(self.stages):
            if stage.name == self.terminal_stage:
                return i
        return len(self.stages) - 1

    @property
    def demand_stages(self) -> Tuple[Stage, ...]:
        return tuple(self.stages[:self.terminal_index + 1])

    @property
    def post_sale_stages(self) -> Tuple[Stage, ...]:
        return tuple(self.stages[self.terminal_index + 1:])


@dataclass(frozen=True)
class Benchmark:
    """Target values; ``rate_targets`` is keyed by the stage a rate leaves."""
    name: str = "Benchmark"
    inbound_volume: Optional[float] = None
    rate_targets: Dict[str, float] = field(default_factory=dict)
    average_selling_price: Optional[float] = None
    sales_cycle_days: Optional[float] = None
    metric_targets: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class AnalysisOptions:
    """Per-run settings.

    ``window_days`` only fills in a parsed scenario that omits its own window;
    analysis always uses ``Scenario.window_days``.
    """
    window_days: float = DEFAULT_WINDOW_DAYS
    lower_is_better: FrozenSet[str] = LOWER_IS_BETTER
    cash_efficiency_threshold: float = CASH_EFFICIENCY_THRESHOLD
    slightly_below_threshold: float = SLIGHTLY_BELOW_THRESHOLD
    confidence: float = DEFAULT_CONFIDENCE


# =============================================================================
# RESULT RECORDS
# =============================================================================

class ConstraintKind(str, Enum):
    STAGE = "stage"
    DELIVERY = "delivery"
    NONE = "none"


class AttainmentStatus(str, Enum):
    ON_TARGET = "on/above target"
    SLIGHTLY_BELOW = "slightly below"
    BELOW_TARGET = "below target"
    NOT_COMPARABLE = "not comparable"


class Lever(str, Enum):
    INBOUND_VOLUME = "inbound_volume"
    CONVERSION_RATE = "conversion_rate"
    ACTIVATION_RATE = "activation_rate"
    AVERAGE_SELLING_PRICE = "average_selling_price"
    SALES_CYCLE_DAYS = "sales_cycle_days"


@dataclass(frozen=True)
class LeverKey:
    lever: Lever
    stage: Optional[str] = None

    @property
    def label(self) -> str:
        if self.lever == Lever.CONVERSION_RATE:
            return f"{self.stage} rate"
        return {
            Lever.INBOUND_VOLUME: "Inbound volume",
            Lever.ACTIVATION_RATE: "Activation rate",
            Lever.AVERAGE_SELLING_PRICE: "Average selling price",
            Lever.SALES_CYCLE_DAYS: "Sales cycle",
        }[self.lever]


@dataclass(frozen=True)
class StageFlow:
    stage_id: str
    stage_name: str
    capacity_per_week: float
    downstream_product: float
    flow_per_week: float
    is_demand_stage: bool


@dataclass(frozen=True)
class ConstraintResult:
    stage_flows: Tuple[StageFlow, ...]
    inbound_per_week: Optional[float]
    demand_flow: float
    delivery_flow: float
    system_flow: float
    kind: ConstraintKind
    constraint_label: Optional[str]
    constraint_index: Optional[int]

    @property
    def is_delivery_constrained(self) -> bool:
        return self.kind == ConstraintKind.DELIVERY


@dataclass(frozen=True)
class RequiredVolume:
    stage_name: str
    target_flow: float
    volume_per_week: float
    reachable: bool


@dataclass(frozen=True)
class Economics:
    units_window: float
    revenue_window: float
    gross_profit_window: float
    revenue_per_headcount_ceiling: float
    cash_efficiency_ratio: float
    cash_constrained: bool
    sales_velocity_per_week: float
    payback_months: float
    ltv_to_cac: float


@dataclass(frozen=True)
class EconomicsDelta:
    units_window: float
    revenue_window: float
    gross_profit_window: float
    revenue_per_headcount_ceiling: float
    sales_velocity_per_week: float


@dataclass(frozen=True)
class BenchmarkRow:
    metric: str
    label: str
    current: float
    target: Optional[float]
    ratio: Optional[float]
    status: AttainmentStatus
    lower_is_better: bool = False


@dataclass(frozen=True)
class ImpactResult:
    key: LeverKey
    current_value: float
    patched_value: float
    flow_delta: float
    economics_delta: EconomicsDelta


@dataclass(frozen=True)
class RateInterval:
    from_stage: str
    to_stage: str
    rate: float
    lower: float
    upper: float


@dataclass(frozen=True)
class BacklogWeeks:
    stage_id: str
    stage_name: str
    queued_units: float
    capacity_per_week: float
    weeks_of_backlog: float


@dataclass(frozen=True)
class PipelineResult:
    scenario: Scenario
    downstream_products: Tuple[float, ...]
    constraint: ConstraintResult
    economics: Economics
    benchmark_rows: Tuple[BenchmarkRow, ...] = ()
    impacts: Tuple[ImpactResult, ...] = ()
    top_impact: Optional[ImpactResult] = None
    best_metric: Optional[BenchmarkRow] = None
    backlog: Tuple[BacklogWeeks, ...] = ()
    required_volumes: Tuple[RequiredVolume, ...] = ()
    rate_intervals: Tuple[RateInterval, ...] = ()
    previous_deltas: Dict[str, Optional[float]] = field(default_factory=dict)

    @property
    def system_flow_per_week(self) -> float:
        return self.constraint.system_flow

    @property
    def constraint_label(self) -> Optional[str]:
        return self.constraint.constraint_label
