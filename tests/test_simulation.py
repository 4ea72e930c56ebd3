"""Tests for what-if impact simulation."""

from dataclasses import replace

import pytest

from bottleneck_mapper.models import Benchmark, Commercial, Lever, LeverKey, Scenario, Stage
from bottleneck_mapper.presets import velocity_current
from bottleneck_mapper.simulation import (
    current_value,
    evaluate_scenario,
    impact_of_restoring,
    patch_scenario,
    rank_impacts,
    restored_value,
    simulation_keys,
    top_recommendation,
)


class TestSimulationKeys:

    def test_keys_in_funnel_order(self, current):
        keys = simulation_keys(current)

        assert keys[0] == LeverKey(Lever.INBOUND_VOLUME)
        assert [k.stage for k in keys if k.lever == Lever.CONVERSION_RATE] == ["Lead", "MQL", "SQL", "SAL", "Opp"]
        assert keys[-2:] == [LeverKey(Lever.AVERAGE_SELLING_PRICE), LeverKey(Lever.SALES_CYCLE_DAYS)]

    def test_no_volume_lever_without_inbound(self, delivery_bound_scenario):
        keys = simulation_keys(delivery_bound_scenario)
        assert LeverKey(Lever.INBOUND_VOLUME) not in keys

    def test_unknown_stage_raises(self, current):
        with pytest.raises(KeyError):
            current_value(current, LeverKey(Lever.CONVERSION_RATE, "Nope"))


class TestPatching:

    def test_patch_changes_only_one_field(self, current, benchmark):
        patched = patch_scenario(current, LeverKey(Lever.CONVERSION_RATE, "SAL"), benchmark)

        assert patched.conversion_rates == (0.42, 0.55, 0.72, 0.55, 0.28)
        assert patched.commercial == current.commercial
        assert patched.stages == current.stages

    def test_patch_never_worsens(self, current, benchmark):
        # benchmark ASP is below current, so the current value is kept
        assert restored_value(current, LeverKey(Lever.AVERAGE_SELLING_PRICE), benchmark) == 12500
        # benchmark cycle is longer, and shorter is better
        assert restored_value(current, LeverKey(Lever.SALES_CYCLE_DAYS), benchmark) == 42

    def test_zero_lower_is_better_target_is_ignored(self, current):
        key = LeverKey(Lever.SALES_CYCLE_DAYS)
        assert restored_value(current, key, Benchmark(sales_cycle_days=0)) == 42

    def test_missing_target_is_noop(self, current):
        impact = impact_of_restoring(LeverKey(Lever.CONVERSION_RATE, "Lead"), current, Benchmark())
        assert impact.flow_delta == 0
        assert impact.economics_delta.gross_profit_window == 0

    def test_inputs_not_mutated(self, current, benchmark):
        rank_impacts(current, benchmark)
        assert current == velocity_current()


class TestRanking:

    def test_impacts_are_non_negative(self, current, benchmark):
        for impact in rank_impacts(current, benchmark):
            assert impact.flow_delta >= 0
            assert impact.economics_delta.gross_profit_window >= 0

    def test_ranking_order(self, current, benchmark):
        ranked = rank_impacts(current, benchmark)

        assert ranked[0].key == LeverKey(Lever.CONVERSION_RATE, "Opp")
        # zero-uplift levers keep funnel order at the tail
        assert [i.key for i in ranked[-4:]] == [
            LeverKey(Lever.INBOUND_VOLUME),
            LeverKey(Lever.ACTIVATION_RATE),
            LeverKey(Lever.AVERAGE_SELLING_PRICE),
            LeverKey(Lever.SALES_CYCLE_DAYS),
        ]
        deltas = [i.economics_delta.gross_profit_window for i in ranked]
        assert deltas == sorted(deltas, reverse=True)

    def test_top_recommendation(self, current, benchmark):
        top = top_recommendation(rank_impacts(current, benchmark))
        assert top.key == LeverKey(Lever.CONVERSION_RATE, "Opp")

    def test_top_recommendation_tie_keeps_first(self, current, benchmark):
        impact = impact_of_restoring(LeverKey(Lever.CONVERSION_RATE, "Opp"), current, benchmark)
        twin = replace(impact, key=LeverKey(Lever.CONVERSION_RATE, "SAL"))
        assert top_recommendation([impact, twin]) is impact

    def test_no_top_without_uplift(self, current):
        impacts = rank_impacts(current, Benchmark())
        assert top_recommendation(impacts) is None

    def test_rate_lever_matches_manual_patch(self, current, benchmark):
        key = LeverKey(Lever.CONVERSION_RATE, "Opp")
        impact = impact_of_restoring(key, current, benchmark)
        base, _ = evaluate_scenario(current)
        patched, _ = evaluate_scenario(replace(current, conversion_rates=(0.42, 0.55, 0.72, 0.50, 0.36)))

        assert impact.flow_delta == pytest.approx(patched.system_flow - base.system_flow)
        assert impact.patched_value == 0.36


class TestActivationLever:

    @pytest.fixture
    def activation_bound(self, make_stage):
        """Demand of 10/wk against an activation stage that clears 4/wk."""
        return Scenario(
            name="Activation bound",
            stages=(
                make_stage("a", "Prospect", 40),
                make_stage("b", "Won", 1000),
                Stage("c", "Activation", fte=1, focus_hours_per_week=8, utilization=1.0,
                      standard_rate_per_hour=1.0, yield_rate=0.5),
            ),
            conversion_rates=(0.25,),
            commercial=Commercial(average_selling_price=1000, gross_margin=0.8),
            terminal_stage="Won"
        )

    def test_lever_offered_with_post_sale_stage(self, activation_bound, delivery_bound_scenario):
        assert LeverKey(Lever.ACTIVATION_RATE) in simulation_keys(activation_bound)
        assert LeverKey(Lever.ACTIVATION_RATE) not in simulation_keys(delivery_bound_scenario)

    def test_restoring_activation_lifts_delivery_flow(self, activation_bound):
        key = LeverKey(Lever.ACTIVATION_RATE)
        impact = impact_of_restoring(key, activation_bound, Benchmark(metric_targets={"activation_rate": 0.75}))

        assert impact.current_value == 0.5
        assert impact.patched_value == 0.75
        assert impact.flow_delta == pytest.approx(2.0)
        assert impact.economics_delta.gross_profit_window > 0

    def test_patch_touches_only_activation_stage(self, activation_bound):
        patched = patch_scenario(activation_bound, LeverKey(Lever.ACTIVATION_RATE),
                                 Benchmark(metric_targets={"activation_rate": 0.75}))

        assert patched.stages[:2] == activation_bound.stages[:2]
        assert patched.stages[2].yield_rate == 0.75
        assert activation_bound.stages[2].yield_rate == 0.5

    def test_lower_target_keeps_current(self, activation_bound):
        impact = impact_of_restoring(LeverKey(Lever.ACTIVATION_RATE), activation_bound,
                                     Benchmark(metric_targets={"activation_rate": 0.3}))
        assert impact.patched_value == 0.5
        assert impact.flow_delta == 0
