"""Economics rollup for the Bottleneck Mapper."""

import math
from typing import Iterable

from bottleneck_mapper.capacity import sanitize
from bottleneck_mapper.config import (
    CASH_EFFICIENCY_THRESHOLD,
    DAYS_PER_MONTH,
    DAYS_PER_WEEK,
    MONTHS_PER_YEAR,
    UNBOUNDED,
)
from bottleneck_mapper.models import Cash, Commercial, Economics, EconomicsDelta, Offer


def commercial_from_offers(offers: Iterable[Offer], sales_cycle_days: float = 0.0,
                           churn_monthly: float = 0.0,
                           time_to_value_days: float = 0.0) -> Commercial:
    """Collapse an offer mix into share-weighted price and margin."""
    offers = list(offers)
    asp = sum(sanitize(o.average_selling_price) * sanitize(o.share) for o in offers)
    share_total = sum(sanitize(o.share) for o in offers) or 1.0
    gm = sum(sanitize(o.gross_margin) * sanitize(o.share) for o in offers) / share_total
    return Commercial(
        average_selling_price=asp,
        gross_margin=gm,
        sales_cycle_days=sales_cycle_days,
        churn_monthly=churn_monthly,
        time_to_value_days=time_to_value_days
    )


def rollup(system_flow: float, window_days: float, commercial: Commercial,
           headcount: float, cash: Cash,
           cash_threshold: float = CASH_EFFICIENCY_THRESHOLD) -> Economics:
    """Convert achievable flow into window revenue, profit and efficiency ratios.

    Args:
        system_flow: Terminal units per week the pipeline can sustain
        window_days: Length of the reporting window
        commercial: Price, margin, cycle and churn terms
        headcount: Total FTE including contractors
        cash: CAC and working-capital terms
        cash_threshold: GP30/CAC below this marks cash as a constraint

    Returns:
        Economics record. Ratios whose denominator is zero are ``UNBOUNDED``.
    """
    flow = sanitize(system_flow)
    days = sanitize(window_days)
    weeks = days / DAYS_PER_WEEK
    asp = sanitize(commercial.average_selling_price)
    gm = sanitize(commercial.gross_margin)
    cac = sanitize(cash.cac)
    heads = sanitize(headcount)

    units = flow * weeks
    revenue = units * asp
    gross_profit = revenue * gm
    per_head = gross_profit / heads if heads > 0 else 0.0

    gp_per_day = gross_profit / days if days > 0 else 0.0
    cash_ratio = (gp_per_day * DAYS_PER_MONTH) / cac if cac > 0 else UNBOUNDED
    cash_constrained = math.isfinite(cash_ratio) and cash_ratio < cash_threshold

    cycle_weeks = sanitize(commercial.sales_cycle_days) / DAYS_PER_WEEK
    velocity = flow * asp / (cycle_weeks or 1.0)

    monthly_margin = asp * gm / MONTHS_PER_YEAR
    payback = cac / monthly_margin if monthly_margin > 0 else UNBOUNDED

    churn = sanitize(commercial.churn_monthly)
    ltv = asp * gm / churn if churn > 0 else UNBOUNDED
    ltv_to_cac = ltv / cac if cac > 0 else UNBOUNDED

    return Economics(
        units_window=units,
        revenue_window=revenue,
        gross_profit_window=gross_profit,
        revenue_per_headcount_ceiling=per_head,
        cash_efficiency_ratio=cash_ratio,
        cash_constrained=cash_constrained,
        sales_velocity_per_week=velocity,
        payback_months=payback,
        ltv_to_cac=ltv_to_cac
    )


def economics_delta(patched: Economics, baseline: Economics) -> EconomicsDelta:
    return EconomicsDelta(
        units_window=patched.units_window - baseline.units_window,
        revenue_window=patched.revenue_window - baseline.revenue_window,
        gross_profit_window=patched.gross_profit_window - baseline.gross_profit_window,
        revenue_per_headcount_ceiling=(
            patched.revenue_per_headcount_ceiling - baseline.revenue_per_headcount_ceiling
        ),
        sales_velocity_per_week=patched.sales_velocity_per_week - baseline.sales_velocity_per_week
    )
