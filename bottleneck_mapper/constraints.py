"""Constraint solving for the Bottleneck Mapper.

Every demand stage (up to and including the terminal "won" stage) limits
terminal output to ``capacity x downstream product``. The smallest of those
is the demand-side flow; the post-sale delivery capacity caps it again.
"""

import logging
import math
from typing import List, Optional, Sequence

import numpy as np

from bottleneck_mapper.capacity import capacity_table, sanitize
from bottleneck_mapper.config import DELIVERY_LABEL, FLOW_EPSILON, UNBOUNDED
from bottleneck_mapper.funnel import downstream_products, resolve_rates
from bottleneck_mapper.models import (
    ConstraintKind,
    ConstraintResult,
    RequiredVolume,
    Scenario,
    Stage,
    StageFlow,
)

logger = logging.getLogger(__name__)


def inbound_per_week(scenario: Scenario) -> Optional[float]:
    if scenario.inbound_volume is None:
        return None
    weeks = scenario.weeks_in_window
    return sanitize(scenario.inbound_volume) / weeks if weeks > 0 else 0.0


def resolve_delivery_capacity(scenario: Scenario, capacities: Sequence[float]) -> float:
    """Explicit delivery capacity, else the tightest staffed post-sale stage."""
    if scenario.delivery_capacity_per_week is not None:
        return sanitize(scenario.delivery_capacity_per_week)

    post_sale = [c for c in capacities[scenario.terminal_index + 1:] if c > 0]
    if post_sale:
        return min(post_sale)
    return UNBOUNDED


def solve_constraints(scenario: Scenario) -> ConstraintResult:
    """Find the system-limiting stage and the achievable flow per week."""
    stages = scenario.stages
    capacities = capacity_table(stages)
    terminal = scenario.terminal_index
    downstream = downstream_products(resolve_rates(scenario))
    arrivals = inbound_per_week(scenario)

    stage_flows = []
    for i, stage in enumerate(stages):
        is_demand = i <= terminal
        product = downstream[i] if is_demand else 1.0
        effective = capacities[i]
        if i == 0 and arrivals is not None:
            effective = min(effective, arrivals)
        stage_flows.append(StageFlow(
            stage_id=stage.id,
            stage_name=stage.name,
            capacity_per_week=capacities[i],
            downstream_product=product,
            flow_per_week=effective * product,
            is_demand_stage=is_demand
        ))

    delivery_flow = resolve_delivery_capacity(scenario, capacities)
    demand = np.array([f.flow_per_week for f in stage_flows if f.is_demand_stage], dtype=float)

    if demand.size == 0:
        return ConstraintResult(
            stage_flows=tuple(stage_flows),
            inbound_per_week=arrivals,
            demand_flow=0.0,
            delivery_flow=delivery_flow,
            system_flow=0.0,
            kind=ConstraintKind.NONE,
            constraint_label=None,
            constraint_index=None
        )

    # argmin reports the first index on ties: upstream stages are fixed first
    index = int(np.argmin(demand))
    demand_flow = float(demand[index])
    system_flow = min(demand_flow, delivery_flow)

    if delivery_flow < demand_flow - FLOW_EPSILON:
        kind, label, constraint_index = ConstraintKind.DELIVERY, DELIVERY_LABEL, None
    else:
        kind, label, constraint_index = ConstraintKind.STAGE, stages[index].name, index

    logger.debug(
        "Scenario %s: demand %.4f/wk, delivery %s/wk, constraint %s",
        scenario.name, demand_flow, delivery_flow, label
    )

    return ConstraintResult(
        stage_flows=tuple(stage_flows),
        inbound_per_week=arrivals,
        demand_flow=demand_flow,
        delivery_flow=delivery_flow,
        system_flow=system_flow,
        kind=kind,
        constraint_label=label,
        constraint_index=constraint_index
    )


def required_rate(stage: Stage, target_flow: float, downstream_product: float) -> RequiredVolume:
    """Volume per week a stage must process to deliver ``target_flow`` terminal units.

    A zero downstream product means no volume at this stage can reach the
    target; that case is flagged ``reachable=False`` rather than reported as 0.
    """
    target = sanitize(target_flow)
    product = sanitize(downstream_product)
    if product <= 0:
        return RequiredVolume(stage.name, target, 0.0, reachable=False)
    return RequiredVolume(stage.name, target, target / product, reachable=True)


def required_volumes(scenario: Scenario, constraint: ConstraintResult) -> List[RequiredVolume]:
    """Per-stage volume needed to saturate delivery capacity."""
    if not math.isfinite(constraint.delivery_flow):
        return []
    return [
        required_rate(stage, constraint.delivery_flow, flow.downstream_product)
        for stage, flow in zip(scenario.stages, constraint.stage_flows)
        if flow.is_demand_stage
    ]


def inbound_gap(scenario: Scenario, required: Sequence[RequiredVolume]) -> Optional[float]:
    """Extra inbound volume over the window needed to fill delivery capacity.

    None when inbound volume is not modeled or the target is unreachable.
    """
    if scenario.inbound_volume is None or not required or not required[0].reachable:
        return None
    needed = required[0].volume_per_week * scenario.weeks_in_window
    return needed - sanitize(scenario.inbound_volume)
