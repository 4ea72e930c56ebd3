"""Funnel conversion modeling for the Bottleneck Mapper."""

import math
from typing import List, Sequence, Tuple

import numpy as np
from scipy import stats as stats_module

from bottleneck_mapper.capacity import sanitize
from bottleneck_mapper.config import DEFAULT_CONFIDENCE
from bottleneck_mapper.models import RateInterval, Scenario


def _finite(value) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def rates_from_counts(counts: Sequence[float]) -> List[float]:
    """rate[i] = count[i+1] / count[i], or 0 when count[i] is not positive."""
    clean = [sanitize(c) for c in counts]
    return [
        clean[i + 1] / clean[i] if clean[i] > 0 else 0.0
        for i in range(len(clean) - 1)
    ]


def counts_from_rates(initial_count: float, rates: Sequence[float]) -> List[float]:
    """Expand a starting count through successive conversion rates."""
    counts = [sanitize(initial_count)]
    for rate in rates:
        counts.append(counts[-1] * _finite(rate))
    return counts


def downstream_products(rates: Sequence[float]) -> List[float]:
    """Probability that a unit entering each stage reaches the terminal stage.

    For ``n`` rates this returns ``n + 1`` products where ``D[i] = rates[i] * D[i+1]``
    and the terminal entry is 1. A zero rate zeroes every product upstream of it.
    """
    clean = np.array([_finite(r) for r in rates], dtype=float)
    if clean.size == 0:
        return [1.0]
    tail = np.cumprod(clean[::-1])[::-1]
    return [float(d) for d in tail] + [1.0]


def resolve_rates(scenario: Scenario) -> List[float]:
    """Conversion rates aligned to the scenario's demand transitions.

    Explicit rates win over funnel counts. Missing transitions read as 0.
    """
    n_transitions = max(scenario.terminal_index, 0)
    if scenario.conversion_rates:
        rates = [_finite(r) for r in scenario.conversion_rates]
    else:
        rates = rates_from_counts(scenario.funnel_counts)
    rates = rates[:n_transitions]
    return rates + [0.0] * (n_transitions - len(rates))


def calculate_confidence_interval(successes: float, trials: float,
                                  confidence: float = DEFAULT_CONFIDENCE) -> Tuple[float, float]:
    """Calculate Wilson score confidence interval for a proportion."""
    if trials <= 0:
        return (0.0, 1.0)

    p = min(successes, trials) / trials
    z = stats_module.norm.ppf((1 + confidence) / 2)

    denominator = 1 + z**2 / trials
    center = (p + z**2 / (2 * trials)) / denominator
    margin = z * np.sqrt((p * (1 - p) + z**2 / (4 * trials)) / trials) / denominator

    return (float(max(0.0, center - margin)), float(min(1.0, center + margin)))


def rate_intervals(scenario: Scenario,
                   confidence: float = DEFAULT_CONFIDENCE) -> List[RateInterval]:
    """Interval estimates for count-derived rates; empty when only rates are given."""
    if scenario.conversion_rates or not scenario.funnel_counts:
        return []

    stages = scenario.demand_stages
    counts = [sanitize(c) for c in scenario.funnel_counts]
    rates = rates_from_counts(counts)
    intervals = []
    for i, rate in enumerate(rates[:max(len(stages) - 1, 0)]):
        lower, upper = calculate_confidence_interval(counts[i + 1], counts[i], confidence)
        intervals.append(RateInterval(
            from_stage=stages[i].name,
            to_stage=stages[i + 1].name,
            rate=rate,
            lower=lower,
            upper=upper
        ))
    return intervals
