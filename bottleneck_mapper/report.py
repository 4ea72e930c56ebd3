"""Tables, formatting and JSON export for Bottleneck Mapper results."""

import json
import math
from dataclasses import asdict
from enum import Enum
from typing import Iterable, Optional, Sequence

import pandas as pd

from bottleneck_mapper.models import (
    BacklogItem,
    BacklogWeeks,
    Benchmark,
    BenchmarkRow,
    ImpactResult,
    PipelineResult,
)

UNBOUNDED_TEXT = "∞"
UNDEFINED_TEXT = "—"


def fmt_number(value: Optional[float], digits: int = 0) -> str:
    """Format a number; sentinels render as ∞ or —, never as 0 or blank."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return UNDEFINED_TEXT
    if math.isinf(value):
        return UNBOUNDED_TEXT if value > 0 else UNDEFINED_TEXT
    return f"{value:,.{digits}f}"


def fmt_ratio(ratio: Optional[float], digits: int = 0) -> str:
    if ratio is None or not math.isfinite(ratio):
        return UNDEFINED_TEXT
    return f"{ratio * 100:.{digits}f}%"


def fmt_delta(delta: Optional[float]) -> Optional[str]:
    """Delta string for st.metric; None hides the delta."""
    if delta is None:
        return None
    return f"{delta * 100:+.1f}%"


def capacity_frame(result: PipelineResult) -> pd.DataFrame:
    constraint = result.constraint
    return pd.DataFrame([
        {
            'Stage': f.stage_name,
            'Capacity/wk': f.capacity_per_week,
            'Downstream product': f.downstream_product,
            'Terminal flow/wk': f.flow_per_week if f.is_demand_stage else None,
            'Constraint': i == constraint.constraint_index,
        }
        for i, f in enumerate(constraint.stage_flows)
    ])


def benchmark_frame(rows: Sequence[BenchmarkRow]) -> pd.DataFrame:
    return pd.DataFrame([
        {
            'Metric': r.label,
            'Current': r.current,
            'Target': r.target,
            'Attainment': fmt_ratio(r.ratio),
            'Status': r.status.value,
            'Lower is better': r.lower_is_better,
        }
        for r in rows
    ])


def impact_frame(impacts: Sequence[ImpactResult]) -> pd.DataFrame:
    return pd.DataFrame([
        {
            'Lever': i.key.label,
            'Current': i.current_value,
            'Restored to': i.patched_value,
            'Flow Δ/wk': i.flow_delta,
            'Revenue Δ': i.economics_delta.revenue_window,
            'Gross profit Δ': i.economics_delta.gross_profit_window,
        }
        for i in impacts
    ])


def backlog_frame(rows: Sequence[BacklogWeeks]) -> pd.DataFrame:
    return pd.DataFrame([
        {
            'Stage': b.stage_name,
            'Queued units': b.queued_units,
            'Capacity/wk': b.capacity_per_week,
            'Weeks of backlog': b.weeks_of_backlog,
        }
        for b in rows
    ])


def _sanitize_for_json(obj):
    """Convert enums, tuples and non-finite floats into JSON-safe values."""
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, float) and not math.isfinite(obj):
        return UNBOUNDED_TEXT if obj > 0 else None
    if isinstance(obj, dict):
        return {str(k): _sanitize_for_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        items = sorted(obj) if isinstance(obj, (set, frozenset)) else obj
        return [_sanitize_for_json(v) for v in items]
    return obj


def to_dict(result: PipelineResult, benchmark: Optional[Benchmark] = None,
            backlog: Iterable[BacklogItem] = ()) -> dict:
    """Input and output record for diagnostics."""
    payload = asdict(result)
    inputs = {
        'scenario': payload.pop('scenario'),
        'benchmark': asdict(benchmark) if benchmark is not None else None,
        'backlog': [asdict(item) for item in backlog],
    }
    return _sanitize_for_json({'inputs': inputs, 'outputs': payload})


def export_json(result: PipelineResult, benchmark: Optional[Benchmark] = None,
                backlog: Iterable[BacklogItem] = (), indent: int = 2) -> str:
    return json.dumps(to_dict(result, benchmark, backlog), indent=indent, ensure_ascii=False)
