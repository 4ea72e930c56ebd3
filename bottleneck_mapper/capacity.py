"""Stage capacity modeling for the Bottleneck Mapper."""

import logging
import math
from typing import Iterable, List, Sequence

import numpy as np

from bottleneck_mapper.models import BacklogItem, BacklogWeeks, HeadcountRow, Stage

logger = logging.getLogger(__name__)


def sanitize(value, default: float = 0.0) -> float:
    """Coerce a numeric input to a finite, non-negative float."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number) or number < 0:
        return default
    return number


def capacity_per_week(stage: Stage) -> float:
    """Units per week = FTE x focus hours x utilization x standard rate x yield."""
    factors = np.array([
        sanitize(stage.fte),
        sanitize(stage.focus_hours_per_week),
        sanitize(stage.utilization),
        sanitize(stage.standard_rate_per_hour),
        sanitize(stage.yield_rate),
    ])
    capacity = float(np.prod(factors))
    return capacity if math.isfinite(capacity) else 0.0


def capacity_table(stages: Sequence[Stage]) -> List[float]:
    return [capacity_per_week(stage) for stage in stages]


def weeks_of_backlog(stages: Sequence[Stage], backlog: Iterable[BacklogItem]) -> List[BacklogWeeks]:
    """Weeks needed to clear each stage's queue at its current capacity."""
    queued = {}
    for item in backlog:
        queued[item.stage_id] = queued.get(item.stage_id, 0.0) + sanitize(item.queued_units)

    known_ids = {stage.id for stage in stages}
    for stage_id in queued:
        if stage_id not in known_ids:
            logger.warning("Backlog references unknown stage %s; ignored", stage_id)

    rows = []
    for stage in stages:
        cap = capacity_per_week(stage)
        units = queued.get(stage.id, 0.0)
        rows.append(BacklogWeeks(
            stage_id=stage.id,
            stage_name=stage.name,
            queued_units=units,
            capacity_per_week=cap,
            weeks_of_backlog=units / cap if cap > 0 else 0.0
        ))
    return rows


def total_headcount(rows: Iterable[HeadcountRow]) -> float:
    """Employees plus contractors, in FTE."""
    return float(sum(sanitize(r.fte) + sanitize(r.contractors) for r in rows))
