"""Tests for constraint solving."""

import itertools
import math
from dataclasses import replace

import pytest

from bottleneck_mapper.config import DELIVERY_LABEL
from bottleneck_mapper.constraints import (
    inbound_gap,
    required_rate,
    required_volumes,
    resolve_delivery_capacity,
    solve_constraints,
)
from bottleneck_mapper.models import ConstraintKind, Scenario


class TestSolveConstraints:

    def test_delivery_binds(self, delivery_bound_scenario):
        result = solve_constraints(delivery_bound_scenario)

        assert result.demand_flow == pytest.approx(10.0)
        assert result.delivery_flow == 8
        assert result.system_flow == 8
        assert result.kind == ConstraintKind.DELIVERY
        assert result.constraint_label == DELIVERY_LABEL
        assert result.is_delivery_constrained

    def test_stage_binds_when_delivery_is_ample(self, delivery_bound_scenario):
        result = solve_constraints(replace(delivery_bound_scenario, delivery_capacity_per_week=50))

        assert result.kind == ConstraintKind.STAGE
        assert result.constraint_label == "Prospect"
        assert result.constraint_index == 0
        assert result.system_flow == pytest.approx(10.0)

    def test_equal_delivery_is_not_the_constraint(self, delivery_bound_scenario):
        result = solve_constraints(replace(delivery_bound_scenario, delivery_capacity_per_week=10 - 1e-12))
        assert result.constraint_label == "Prospect"

    def test_ties_report_earliest_stage(self, make_stage):
        scenario = Scenario(
            name="tie",
            stages=(make_stage("a", "A", 10), make_stage("b", "B", 10), make_stage("c", "C", 10)),
            conversion_rates=(1.0, 1.0),
            terminal_stage="C"
        )
        result = solve_constraints(scenario)
        assert result.constraint_label == "A"

    @pytest.mark.parametrize("capacities", sorted(
        set(itertools.permutations([5, 10, 20])) | set(itertools.permutations([10, 10, 20]))
    ))
    def test_label_follows_smallest_flow(self, make_stage, capacities):
        names = ["A", "B", "C"]
        scenario = Scenario(
            name="order",
            stages=tuple(make_stage(n.lower(), n, c) for n, c in zip(names, capacities)),
            conversion_rates=(1.0, 1.0),
            terminal_stage="C"
        )
        result = solve_constraints(scenario)

        expected = capacities.index(min(capacities))
        assert result.constraint_label == names[expected]
        assert result.constraint_index == expected
        assert result.demand_flow == min(capacities)

    def test_system_flow_is_min_of_demand_and_delivery(self, current):
        result = solve_constraints(current)
        demand = [f.flow_per_week for f in result.stage_flows if f.is_demand_stage]

        assert result.demand_flow == min(demand)
        assert result.system_flow == min(result.demand_flow, result.delivery_flow)
        assert result.system_flow <= result.demand_flow

    def test_inbound_volume_caps_first_stage(self, delivery_bound_scenario):
        scenario = replace(delivery_bound_scenario, inbound_volume=90)
        result = solve_constraints(scenario)

        assert result.inbound_per_week == pytest.approx(7.0)
        assert result.stage_flows[0].capacity_per_week == 40
        assert result.stage_flows[0].flow_per_week == pytest.approx(1.75)
        assert result.constraint_label == "Prospect"

    def test_post_sale_stages_are_not_demand(self, current):
        result = solve_constraints(current)
        assert [f.is_demand_stage for f in result.stage_flows][-1] is False

    def test_no_stages(self):
        result = solve_constraints(Scenario(name="empty", stages=()))

        assert result.kind == ConstraintKind.NONE
        assert result.constraint_label is None
        assert result.system_flow == 0.0

    def test_label_is_known(self, current):
        names = {s.name for s in current.stages} | {DELIVERY_LABEL}
        assert solve_constraints(current).constraint_label in names


class TestDeliveryCapacity:

    def test_derived_from_post_sale_stages(self, make_stage):
        scenario = Scenario(
            name="x",
            stages=(make_stage("a", "A", 10), make_stage("b", "Won", 10),
                    make_stage("c", "Onboard", 5), make_stage("d", "Renew", 0)),
            conversion_rates=(1.0,),
            terminal_stage="Won"
        )
        assert resolve_delivery_capacity(scenario, [10, 10, 5, 0]) == 5

    def test_unbounded_without_post_sale_capacity(self, make_stage):
        scenario = Scenario(
            name="x",
            stages=(make_stage("a", "A", 10), make_stage("b", "Won", 10)),
            conversion_rates=(1.0,),
            terminal_stage="Won"
        )
        assert math.isinf(resolve_delivery_capacity(scenario, [10, 10]))
        assert solve_constraints(scenario).kind == ConstraintKind.STAGE


class TestRequiredVolumes:

    def test_required_rate(self, make_stage):
        row = required_rate(make_stage("a", "A", 1), 8, 0.25)
        assert row.reachable
        assert row.volume_per_week == pytest.approx(32.0)

    def test_zero_product_is_unreachable(self, make_stage):
        row = required_rate(make_stage("a", "A", 1), 8, 0.0)
        assert row.reachable is False

    def test_required_volumes_and_gap(self, delivery_bound_scenario):
        scenario = replace(delivery_bound_scenario, inbound_volume=90)
        constraint = solve_constraints(scenario)
        rows = required_volumes(scenario, constraint)

        assert [r.volume_per_week for r in rows] == pytest.approx([32.0, 8.0])
        assert inbound_gap(scenario, rows) == pytest.approx(32 * 90 / 7 - 90)

    def test_no_gap_without_inbound(self, delivery_bound_scenario):
        constraint = solve_constraints(delivery_bound_scenario)
        rows = required_volumes(delivery_bound_scenario, constraint)
        assert inbound_gap(delivery_bound_scenario, rows) is None
