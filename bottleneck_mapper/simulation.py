"""What-if impact simulation for the Bottleneck Mapper."""

import logging
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from bottleneck_mapper.benchmarks import activation_rate
from bottleneck_mapper.capacity import sanitize
from bottleneck_mapper.constraints import solve_constraints
from bottleneck_mapper.economics import economics_delta, rollup
from bottleneck_mapper.funnel import resolve_rates
from bottleneck_mapper.models import (
    AnalysisOptions,
    Benchmark,
    ConstraintResult,
    Economics,
    ImpactResult,
    Lever,
    LeverKey,
    Scenario,
)

logger = logging.getLogger(__name__)


def evaluate_scenario(scenario: Scenario,
                      options: AnalysisOptions = AnalysisOptions()) -> Tuple[ConstraintResult, Economics]:
    """Run capacity, conversion, constraint and economics for one scenario."""
    constraint = solve_constraints(scenario)
    economics = rollup(
        constraint.system_flow,
        scenario.window_days,
        scenario.commercial,
        scenario.headcount,
        scenario.cash,
        options.cash_efficiency_threshold
    )
    return constraint, economics


def simulation_keys(scenario: Scenario) -> List[LeverKey]:
    """Simulatable levers in funnel order."""
    keys = []
    if scenario.inbound_volume is not None:
        keys.append(LeverKey(Lever.INBOUND_VOLUME))
    stages = scenario.demand_stages
    for i in range(len(resolve_rates(scenario))):
        keys.append(LeverKey(Lever.CONVERSION_RATE, stages[i].name))
    if scenario.post_sale_stages:
        keys.append(LeverKey(Lever.ACTIVATION_RATE))
    keys.append(LeverKey(Lever.AVERAGE_SELLING_PRICE))
    keys.append(LeverKey(Lever.SALES_CYCLE_DAYS))
    return keys


def _rate_index(scenario: Scenario, stage_name: Optional[str]) -> int:
    for i, stage in enumerate(scenario.demand_stages[:-1]):
        if stage.name == stage_name:
            return i
    raise KeyError(f"No conversion rate leaves stage {stage_name!r}")


def current_value(scenario: Scenario, key: LeverKey) -> float:
    if key.lever == Lever.INBOUND_VOLUME:
        return sanitize(scenario.inbound_volume)
    if key.lever == Lever.CONVERSION_RATE:
        return resolve_rates(scenario)[_rate_index(scenario, key.stage)]
    if key.lever == Lever.ACTIVATION_RATE:
        return activation_rate(scenario) or 0.0
    if key.lever == Lever.AVERAGE_SELLING_PRICE:
        return sanitize(scenario.commercial.average_selling_price)
    return sanitize(scenario.commercial.sales_cycle_days)


def target_value(benchmark: Benchmark, key: LeverKey) -> Optional[float]:
    if key.lever == Lever.INBOUND_VOLUME:
        return benchmark.inbound_volume
    if key.lever == Lever.CONVERSION_RATE:
        return benchmark.rate_targets.get(key.stage)
    if key.lever == Lever.ACTIVATION_RATE:
        return benchmark.metric_targets.get(Lever.ACTIVATION_RATE.value)
    if key.lever == Lever.AVERAGE_SELLING_PRICE:
        return benchmark.average_selling_price
    return benchmark.sales_cycle_days


def restored_value(scenario: Scenario, key: LeverKey, benchmark: Benchmark,
                   options: AnalysisOptions = AnalysisOptions()) -> float:
    """The lever's value after moving it to the more favorable of current and target."""
    current = current_value(scenario, key)
    target = target_value(benchmark, key)
    if target is None:
        return current
    target = sanitize(target)
    if key.lever.value in options.lower_is_better:
        # a zero target for a lower-is-better metric means "no target set"
        return min(current, target) if target > 0 else current
    return max(current, target)


def patch_scenario(scenario: Scenario, key: LeverKey, benchmark: Benchmark,
                   options: AnalysisOptions = AnalysisOptions()) -> Scenario:
    """Copy of ``scenario`` with the single field behind ``key`` restored to benchmark."""
    value = restored_value(scenario, key, benchmark, options)

    if key.lever == Lever.INBOUND_VOLUME:
        return replace(scenario, inbound_volume=value)
    if key.lever == Lever.CONVERSION_RATE:
        rates = resolve_rates(scenario)
        rates[_rate_index(scenario, key.stage)] = value
        return replace(scenario, conversion_rates=tuple(rates))
    if key.lever == Lever.ACTIVATION_RATE:
        index = scenario.terminal_index + 1
        stages = list(scenario.stages)
        stages[index] = replace(stages[index], yield_rate=value)
        return replace(scenario, stages=tuple(stages))
    if key.lever == Lever.AVERAGE_SELLING_PRICE:
        return replace(scenario, commercial=replace(scenario.commercial, average_selling_price=value))
    return replace(scenario, commercial=replace(scenario.commercial, sales_cycle_days=value))


def impact_of_restoring(key: LeverKey, scenario: Scenario, benchmark: Benchmark,
                        options: AnalysisOptions = AnalysisOptions(),
                        baseline: Optional[Tuple[ConstraintResult, Economics]] = None) -> ImpactResult:
    """Full-pipeline uplift from restoring one lever to its benchmark."""
    base_constraint, base_economics = baseline or evaluate_scenario(scenario, options)
    patched = patch_scenario(scenario, key, benchmark, options)
    patched_constraint, patched_economics = evaluate_scenario(patched, options)

    return ImpactResult(
        key=key,
        current_value=current_value(scenario, key),
        patched_value=current_value(patched, key),
        flow_delta=patched_constraint.system_flow - base_constraint.system_flow,
        economics_delta=economics_delta(patched_economics, base_economics)
    )


def rank_impacts(scenario: Scenario, benchmark: Benchmark,
                 options: AnalysisOptions = AnalysisOptions()) -> List[ImpactResult]:
    """Impact of every lever, largest gross-profit uplift first, funnel order on ties."""
    baseline = evaluate_scenario(scenario, options)
    impacts = [
        impact_of_restoring(key, scenario, benchmark, options, baseline)
        for key in simulation_keys(scenario)
    ]
    # sorted() is stable, so equal deltas keep funnel order
    ranked = sorted(impacts, key=lambda r: -r.economics_delta.gross_profit_window)
    logger.debug("Ranked %d levers for scenario %s", len(ranked), scenario.name)
    return ranked


def top_recommendation(impacts: Sequence[ImpactResult]) -> Optional[ImpactResult]:
    """Lever with the largest positive gross-profit uplift; earliest wins ties."""
    best = None
    for impact in impacts:
        uplift = impact.economics_delta.gross_profit_window
        if uplift <= 0:
            continue
        if best is None or uplift > best.economics_delta.gross_profit_window:
            best = impact
    return best
