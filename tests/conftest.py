"""Shared fixtures for Bottleneck Mapper tests."""

import pytest

from bottleneck_mapper.models import Cash, Commercial, Scenario, Stage
from bottleneck_mapper.presets import velocity_benchmark, velocity_current, velocity_previous


@pytest.fixture
def make_stage():
    """Factory for a stage whose weekly capacity equals ``capacity``."""
    def _make(stage_id: str, name: str, capacity: float) -> Stage:
        return Stage(
            id=stage_id, name=name, fte=1, focus_hours_per_week=capacity,
            utilization=1.0, standard_rate_per_hour=1.0, yield_rate=1.0
        )
    return _make


@pytest.fixture
def delivery_bound_scenario(make_stage):
    """One pre-terminal stage of 40/wk at a 25% rate, delivery fixed at 8/wk."""
    return Scenario(
        name="Delivery bound",
        stages=(make_stage("a", "Prospect", 40), make_stage("b", "Won", 1000)),
        conversion_rates=(0.25,),
        commercial=Commercial(average_selling_price=1000, gross_margin=0.8),
        cash=Cash(cac=0),
        headcount=10,
        window_days=90,
        delivery_capacity_per_week=8,
        terminal_stage="Won"
    )


@pytest.fixture
def current():
    return velocity_current()


@pytest.fixture
def previous():
    return velocity_previous()


@pytest.fixture
def benchmark():
    return velocity_benchmark()
