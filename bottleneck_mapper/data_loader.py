"""Data loading and validation for the Bottleneck Mapper."""

import json
import logging
import math
from typing import Dict, List, Optional, Tuple, Union

from bottleneck_mapper.capacity import total_headcount
from bottleneck_mapper.config import DEFAULT_TERMINAL_STAGE, DEFAULT_UTILIZATION
from bottleneck_mapper.economics import commercial_from_offers
from bottleneck_mapper.funnel import resolve_rates
from bottleneck_mapper.models import (
    AnalysisOptions,
    BacklogItem,
    Benchmark,
    Cash,
    Commercial,
    HeadcountRow,
    Offer,
    Scenario,
    Stage,
)

logger = logging.getLogger(__name__)

JsonInput = Union[str, bytes, dict, list]


def _decode(payload: JsonInput):
    if isinstance(payload, (str, bytes)):
        return json.loads(payload)
    return payload


def _number(value, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Non-numeric value %r replaced with %s", value, default)
        return default


def _optional_number(value) -> Optional[float]:
    return None if value is None else _number(value)


def parse_stage(s: dict) -> Stage:
    return Stage(
        id=str(s['id']),
        name=s['name'],
        unit=s.get('unit', ''),
        owner=s.get('owner', ''),
        fte=_number(s.get('fte')),
        focus_hours_per_week=_number(s.get('focus_hours_per_week')),
        utilization=_number(s.get('utilization'), DEFAULT_UTILIZATION),
        standard_rate_per_hour=_number(s.get('standard_rate_per_hour')),
        yield_rate=_number(s.get('yield_rate'), 1.0)
    )


def parse_scenario(payload: JsonInput, options: AnalysisOptions = AnalysisOptions()) -> Scenario:
    """Parse a scenario JSON document into a Scenario record.

    Commercial terms come from ``commercial`` or, when ``offers`` is present,
    from the share-weighted offer mix. Headcount comes from ``headcount`` or
    the sum of ``headcount_rows``.
    """
    data = _decode(payload)

    stages = tuple(parse_stage(s) for s in data['stages'])
    terms = data.get('commercial', {})

    if data.get('offers'):
        offers = [
            Offer(
                id=str(o['id']),
                name=o.get('name', ''),
                average_selling_price=_number(o.get('average_selling_price')),
                gross_margin=_number(o.get('gross_margin')),
                share=_number(o.get('share'))
            )
            for o in data['offers']
        ]
        commercial = commercial_from_offers(
            offers,
            sales_cycle_days=_number(terms.get('sales_cycle_days')),
            churn_monthly=_number(terms.get('churn_monthly')),
            time_to_value_days=_number(terms.get('time_to_value_days'))
        )
    else:
        commercial = Commercial(
            average_selling_price=_number(terms.get('average_selling_price')),
            gross_margin=_number(terms.get('gross_margin')),
            sales_cycle_days=_number(terms.get('sales_cycle_days')),
            churn_monthly=_number(terms.get('churn_monthly')),
            time_to_value_days=_number(terms.get('time_to_value_days'))
        )

    if data.get('headcount_rows'):
        headcount = total_headcount(
            HeadcountRow(
                id=str(h['id']),
                role=h.get('role', ''),
                fte=_number(h.get('fte')),
                focus_hours_per_week=_number(h.get('focus_hours_per_week')),
                utilization=_number(h.get('utilization')),
                contractors=_number(h.get('contractors'))
            )
            for h in data['headcount_rows']
        )
    else:
        headcount = _number(data.get('headcount'))

    cash = data.get('cash', {})

    return Scenario(
        name=data['name'],
        stages=stages,
        conversion_rates=tuple(_number(r) for r in data.get('conversion_rates', [])),
        funnel_counts=tuple(_number(c) for c in data.get('funnel_counts', [])),
        commercial=commercial,
        cash=Cash(
            cac=_number(cash.get('cac')),
            payback_days=_number(cash.get('payback_days')),
            dso=_number(cash.get('dso')),
            prepay_share=_number(cash.get('prepay_share'))
        ),
        headcount=headcount,
        window_days=_number(data.get('window_days'), options.window_days),
        delivery_capacity_per_week=_optional_number(data.get('delivery_capacity_per_week')),
        inbound_volume=_optional_number(data.get('inbound_volume')),
        terminal_stage=data.get('terminal_stage', DEFAULT_TERMINAL_STAGE)
    )


def parse_benchmark(payload: JsonInput) -> Benchmark:
    data = _decode(payload)
    return Benchmark(
        name=data.get('name', 'Benchmark'),
        inbound_volume=_optional_number(data.get('inbound_volume')),
        rate_targets={k: _number(v) for k, v in data.get('rate_targets', {}).items()},
        average_selling_price=_optional_number(data.get('average_selling_price')),
        sales_cycle_days=_optional_number(data.get('sales_cycle_days')),
        metric_targets={k: _number(v) for k, v in data.get('metric_targets', {}).items()}
    )


def parse_backlog(payload: JsonInput) -> List[BacklogItem]:
    return [
        BacklogItem(stage_id=str(b['stage_id']), queued_units=_number(b.get('queued_units')))
        for b in _decode(payload)
    ]


def load_json_file(path: str) -> Dict:
    with open(path, 'r') as f:
        return json.load(f)


def _out_of_unit_range(value: float) -> bool:
    return not math.isfinite(value) or value < 0 or value > 1


def validate_scenario(scenario: Scenario,
                      backlog: Optional[List[BacklogItem]] = None) -> Tuple[bool, str]:
    """Validate a scenario for domain consistency before analysis."""
    errors = []

    if not scenario.stages:
        errors.append("No stages defined")
    if not math.isfinite(scenario.window_days) or scenario.window_days <= 0:
        errors.append(f"Window must be a positive number of days (got {scenario.window_days})")

    names = [s.name for s in scenario.stages]
    if scenario.stages and scenario.terminal_stage not in names:
        errors.append(f"Terminal stage {scenario.terminal_stage} not found; last stage used instead")

    for stage in scenario.stages:
        for field_name in ('utilization', 'yield_rate'):
            if _out_of_unit_range(getattr(stage, field_name)):
                errors.append(f"Stage {stage.name}: {field_name} must be within [0, 1]")
        for field_name in ('fte', 'focus_hours_per_week', 'standard_rate_per_hour'):
            value = getattr(stage, field_name)
            if not math.isfinite(value) or value < 0:
                errors.append(f"Stage {stage.name}: {field_name} must be non-negative")

    transitions = max(scenario.terminal_index, 0)
    given = len(scenario.conversion_rates) if scenario.conversion_rates else max(len(scenario.funnel_counts) - 1, 0)
    if scenario.stages and given != transitions:
        errors.append(f"Expected {transitions} conversion steps up to {scenario.terminal_stage}, got {given}")

    for i, rate in enumerate(resolve_rates(scenario)):
        if _out_of_unit_range(rate):
            errors.append(f"Conversion rate {i + 1} ({rate:.4f}) must be within [0, 1]")

    for field_name, value in (('gross_margin', scenario.commercial.gross_margin),
                              ('prepay_share', scenario.cash.prepay_share)):
        if _out_of_unit_range(value):
            errors.append(f"{field_name} must be within [0, 1]")

    if backlog:
        known = set(s.id for s in scenario.stages)
        for item in backlog:
            if item.stage_id not in known:
                errors.append(f"Backlog references unknown stage {item.stage_id}")

    if errors:
        for error in errors:
            logger.warning("Scenario %s: %s", scenario.name, error)
        return False, "\n".join(errors)
    return True, f"✅ Loaded {len(scenario.stages)} stages for {scenario.name}"
