"""Benchmark attainment scoring for the Bottleneck Mapper."""

import logging
import math
from typing import List, Optional, Sequence

from bottleneck_mapper.capacity import sanitize
from bottleneck_mapper.config import SLIGHTLY_BELOW_THRESHOLD
from bottleneck_mapper.funnel import resolve_rates
from bottleneck_mapper.models import (
    AnalysisOptions,
    AttainmentStatus,
    Benchmark,
    BenchmarkRow,
    Scenario,
)

logger = logging.getLogger(__name__)

METRIC_LABELS = {
    "inbound_volume": "Volume",
    "activation_rate": "Activation rate",
    "average_selling_price": "Average selling price",
    "sales_cycle_days": "Sales cycle (days)",
    "cac": "CAC",
    "dso": "DSO",
    "churn_monthly": "Monthly churn",
    "onboarding_days": "Onboarding (days)",
    "gross_margin": "Gross margin",
    "payback_days": "Payback (days)",
    "prepay_share": "Prepay share",
}


def attainment(current: float, target: Optional[float],
               lower_is_better: bool = False) -> Optional[float]:
    """Ratio of current to target, inverted when a smaller value is better.

    Returns None when the ratio is undefined (no positive target, or a zero
    current value for a lower-is-better metric).
    """
    if target is None:
        return None
    current = sanitize(current)
    target = sanitize(target)
    if target <= 0:
        return None
    if lower_is_better:
        return target / current if current > 0 else None
    return current / target


def classify(ratio: Optional[float],
             slightly_below: float = SLIGHTLY_BELOW_THRESHOLD) -> AttainmentStatus:
    if ratio is None or not math.isfinite(ratio):
        return AttainmentStatus.NOT_COMPARABLE
    if ratio >= 1.0:
        return AttainmentStatus.ON_TARGET
    if ratio >= slightly_below:
        return AttainmentStatus.SLIGHTLY_BELOW
    return AttainmentStatus.BELOW_TARGET


def score_metric(metric: str, label: str, current: float, target: Optional[float],
                 options: AnalysisOptions = AnalysisOptions()) -> BenchmarkRow:
    lower = metric in options.lower_is_better
    ratio = attainment(current, target, lower_is_better=lower)
    return BenchmarkRow(
        metric=metric,
        label=label,
        current=sanitize(current),
        target=None if target is None else sanitize(target),
        ratio=ratio,
        status=classify(ratio, options.slightly_below_threshold),
        lower_is_better=lower
    )


def current_volume(scenario: Scenario) -> Optional[float]:
    if scenario.inbound_volume is not None:
        return sanitize(scenario.inbound_volume)
    if scenario.funnel_counts:
        return sanitize(scenario.funnel_counts[0])
    return None


def activation_rate(scenario: Scenario) -> Optional[float]:
    """Yield of the first post-sale stage; None when no post-sale stage exists."""
    post_sale = scenario.post_sale_stages
    if not post_sale:
        return None
    return sanitize(post_sale[0].yield_rate)


def current_metric_value(scenario: Scenario, metric: str) -> Optional[float]:
    values = {
        "cac": scenario.cash.cac,
        "dso": scenario.cash.dso,
        "payback_days": scenario.cash.payback_days,
        "prepay_share": scenario.cash.prepay_share,
        "churn_monthly": scenario.commercial.churn_monthly,
        "onboarding_days": scenario.commercial.time_to_value_days,
        "gross_margin": scenario.commercial.gross_margin,
        "average_selling_price": scenario.commercial.average_selling_price,
        "sales_cycle_days": scenario.commercial.sales_cycle_days,
        "inbound_volume": current_volume(scenario),
        "activation_rate": activation_rate(scenario),
    }
    return values.get(metric)


def score_benchmarks(scenario: Scenario, benchmark: Benchmark,
                     options: AnalysisOptions = AnalysisOptions()) -> List[BenchmarkRow]:
    """One row per funnel transition plus volume and commercial targets."""
    rows = []

    volume = current_volume(scenario)
    if volume is not None:
        rows.append(score_metric("inbound_volume", METRIC_LABELS["inbound_volume"],
                                 volume, benchmark.inbound_volume, options))

    stages = scenario.demand_stages
    for i, rate in enumerate(resolve_rates(scenario)):
        source, destination = stages[i].name, stages[i + 1].name
        rows.append(score_metric(
            f"rate:{source}", f"{source} → {destination}",
            rate, benchmark.rate_targets.get(source), options
        ))

    rows.append(score_metric(
        "average_selling_price", METRIC_LABELS["average_selling_price"],
        scenario.commercial.average_selling_price, benchmark.average_selling_price, options
    ))
    rows.append(score_metric(
        "sales_cycle_days", METRIC_LABELS["sales_cycle_days"],
        scenario.commercial.sales_cycle_days, benchmark.sales_cycle_days, options
    ))

    scored = {row.metric for row in rows}
    for metric, target in benchmark.metric_targets.items():
        if metric in scored:
            continue
        current = current_metric_value(scenario, metric)
        if current is None:
            logger.warning("No current value for benchmark metric %s; skipped", metric)
            continue
        rows.append(score_metric(metric, METRIC_LABELS.get(metric, metric), current, target, options))

    return rows


def best_metric(rows: Sequence[BenchmarkRow]) -> Optional[BenchmarkRow]:
    """Highest comparable attainment ratio, earliest row on ties."""
    comparable = [r for r in rows if r.status != AttainmentStatus.NOT_COMPARABLE]
    if not comparable:
        return None
    return max(comparable, key=lambda r: r.ratio)
