"""End-to-end pipeline analysis for the Bottleneck Mapper."""

import logging
import math
from dataclasses import replace
from typing import Dict, Iterable, Optional

from bottleneck_mapper.benchmarks import best_metric, score_benchmarks
from bottleneck_mapper.capacity import weeks_of_backlog
from bottleneck_mapper.constraints import required_volumes
from bottleneck_mapper.funnel import downstream_products, rate_intervals, resolve_rates
from bottleneck_mapper.models import (
    AnalysisOptions,
    BacklogItem,
    Benchmark,
    PipelineResult,
    Scenario,
)
from bottleneck_mapper.simulation import evaluate_scenario, rank_impacts, top_recommendation

logger = logging.getLogger(__name__)


def delta_pct(current: float, previous: float) -> Optional[float]:
    """Relative change versus the previous period; None when it has no base."""
    if previous is None or current is None:
        return None
    if not math.isfinite(previous) or not math.isfinite(current) or previous == 0:
        return None
    return (current - previous) / abs(previous)


def _comparable_metrics(scenario: Scenario, result: PipelineResult) -> Dict[str, float]:
    metrics = {
        "system_flow_per_week": result.constraint.system_flow,
        "revenue_window": result.economics.revenue_window,
        "gross_profit_window": result.economics.gross_profit_window,
        "sales_velocity_per_week": result.economics.sales_velocity_per_week,
        "ltv_to_cac": result.economics.ltv_to_cac,
        "cash_efficiency_ratio": result.economics.cash_efficiency_ratio,
        "average_selling_price": scenario.commercial.average_selling_price,
    }
    stages = scenario.demand_stages
    for i, rate in enumerate(resolve_rates(scenario)):
        metrics[f"rate:{stages[i].name}"] = rate
    return metrics


def compare_scenarios(current: PipelineResult, previous: PipelineResult) -> Dict[str, Optional[float]]:
    """Period-over-period relative change for headline metrics and rates."""
    now = _comparable_metrics(current.scenario, current)
    before = _comparable_metrics(previous.scenario, previous)
    return {key: delta_pct(value, before.get(key)) for key, value in now.items()}


def run_pipeline(scenario: Scenario,
                 benchmark: Optional[Benchmark] = None,
                 previous: Optional[Scenario] = None,
                 backlog: Iterable[BacklogItem] = (),
                 options: AnalysisOptions = AnalysisOptions()) -> PipelineResult:
    """Compute every derived quantity for a scenario.

    The call is pure: identical inputs always produce an identical result
    and no input record is modified.
    """
    logger.debug("Running pipeline for scenario %s", scenario.name)
    constraint, economics = evaluate_scenario(scenario, options)

    rows = ()
    impacts = ()
    top = None
    best = None
    if benchmark is not None:
        rows = tuple(score_benchmarks(scenario, benchmark, options))
        impacts = tuple(rank_impacts(scenario, benchmark, options))
        top = top_recommendation(impacts)
        best = best_metric(rows)

    result = PipelineResult(
        scenario=scenario,
        downstream_products=tuple(downstream_products(resolve_rates(scenario))),
        constraint=constraint,
        economics=economics,
        benchmark_rows=rows,
        impacts=impacts,
        top_impact=top,
        best_metric=best,
        backlog=tuple(weeks_of_backlog(scenario.stages, backlog)),
        required_volumes=tuple(required_volumes(scenario, constraint)),
        rate_intervals=tuple(rate_intervals(scenario, options.confidence))
    )

    if previous is not None:
        prior = run_pipeline(previous, options=options)
        result = replace(result, previous_deltas=compare_scenarios(result, prior))

    return result
