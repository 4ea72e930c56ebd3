"""Recommendation generation for the Bottleneck Mapper."""

import math
from typing import Dict, List

from bottleneck_mapper.config import BACKLOG_ALERT_WEEKS, CASH_EFFICIENCY_THRESHOLD
from bottleneck_mapper.constraints import inbound_gap
from bottleneck_mapper.models import ConstraintKind, PipelineResult
from bottleneck_mapper.report import fmt_number


def _next_limit(result: PipelineResult) -> float:
    """Flow at which the runner-up constraint would bind."""
    constraint = result.constraint
    others = [
        f.flow_per_week for i, f in enumerate(constraint.stage_flows)
        if f.is_demand_stage and i != constraint.constraint_index
    ]
    if constraint.kind == ConstraintKind.STAGE:
        others.append(constraint.delivery_flow)
    return min(others) if others else math.inf


def generate_recommendations(result: PipelineResult,
                             cash_threshold: float = CASH_EFFICIENCY_THRESHOLD) -> List[Dict]:
    """Generate actionable recommendations based on a pipeline result."""
    recommendations = []
    constraint = result.constraint
    economics = result.economics
    window_days = result.scenario.window_days

    # 1. Binding constraint
    if constraint.kind == ConstraintKind.STAGE:
        flow = constraint.stage_flows[constraint.constraint_index]
        headroom = _next_limit(result)
        recommendations.append({
            'type': 'constraint',
            'priority': 'High',
            'title': f"Relieve the {constraint.constraint_label} stage",
            'description': (
                f"**{constraint.constraint_label}** caps throughput at "
                f"{fmt_number(constraint.system_flow, 2)} closed units/wk"
            ),
            'impact': (
                f"Each extra unit/wk of capacity adds {flow.downstream_product:.3f} closed units/wk "
                f"until the next limit ({fmt_number(headroom, 2)}/wk) binds"
            ),
            'effort': 'Medium',
            'details': {
                'capacity_per_week': flow.capacity_per_week,
                'downstream_product': flow.downstream_product,
                'next_limit_per_week': headroom
            }
        })
    elif constraint.kind == ConstraintKind.DELIVERY:
        shortfall = constraint.demand_flow - constraint.delivery_flow
        recommendations.append({
            'type': 'constraint',
            'priority': 'High',
            'title': 'Add delivery capacity',
            'description': (
                f"Demand supports {fmt_number(constraint.demand_flow, 2)}/wk but delivery "
                f"handles only {fmt_number(constraint.delivery_flow, 2)}/wk"
            ),
            'impact': f"Closing the gap unlocks up to {fmt_number(shortfall, 2)} units/wk",
            'effort': 'High (hiring or onboarding redesign required)',
            'details': {
                'demand_flow': constraint.demand_flow,
                'delivery_flow': constraint.delivery_flow
            }
        })

    # 2. Largest benchmark uplift
    top = result.top_impact
    if top is not None:
        recommendations.append({
            'type': 'benchmark',
            'priority': 'High' if top.flow_delta > 0 else 'Medium',
            'title': f"Restore {top.key.label} to benchmark",
            'description': (
                f"Moving from {fmt_number(top.current_value, 4)} to "
                f"{fmt_number(top.patched_value, 4)}"
            ),
            'impact': (
                f"+{fmt_number(top.economics_delta.gross_profit_window)} gross profit over "
                f"{fmt_number(window_days)} days"
            ),
            'effort': 'Medium (process improvement)',
            'details': {
                'flow_delta': top.flow_delta,
                'revenue_delta': top.economics_delta.revenue_window
            }
        })

    # 3. Cash
    if economics.cash_constrained:
        recommendations.append({
            'type': 'cash',
            'priority': 'High',
            'title': 'Treat cash as a constraint',
            'description': (
                f"30-day gross profit covers CAC only {economics.cash_efficiency_ratio:.2f}x "
                f"(≥ {cash_threshold:.1f}x preferred)"
            ),
            'impact': 'Raise prepayment share or lower CAC before adding acquisition spend',
            'effort': 'Medium',
            'details': {'cash_efficiency_ratio': economics.cash_efficiency_ratio}
        })

    # 4. Backlog
    for row in result.backlog:
        if row.weeks_of_backlog > BACKLOG_ALERT_WEEKS:
            recommendations.append({
                'type': 'backlog',
                'priority': 'Medium',
                'title': f"Clear the {row.stage_name} backlog",
                'description': f"{fmt_number(row.weeks_of_backlog, 1)} weeks of queued work at current capacity",
                'impact': 'Queued units convert only after the backlog drains',
                'effort': 'Low',
                'details': {'queued_units': row.queued_units, 'capacity_per_week': row.capacity_per_week}
            })

    # 5. Broken conversion paths
    unreachable = [r.stage_name for r in result.required_volumes if not r.reachable]
    if unreachable:
        recommendations.append({
            'type': 'conversion',
            'priority': 'High',
            'title': 'Repair zero-conversion steps',
            'description': f"No volume at {', '.join(unreachable)} can reach a closed deal",
            'impact': 'Delivery capacity cannot be filled from these stages',
            'effort': 'Medium',
            'details': {'stages': unreachable}
        })

    # 6. Inbound volume gap
    gap = inbound_gap(result.scenario, result.required_volumes)
    if gap is not None and gap > 0:
        recommendations.append({
            'type': 'volume',
            'priority': 'Low',
            'title': 'Grow inbound volume',
            'description': f"{fmt_number(gap)} more inbound units per window would fill delivery capacity",
            'impact': 'Only effective once the binding stage has headroom',
            'effort': 'Medium',
            'details': {'inbound_gap': gap}
        })

    return recommendations
