"""Tests for rule-based recommendations."""

from dataclasses import replace

from bottleneck_mapper.analysis import run_pipeline
from bottleneck_mapper.models import BacklogItem, Cash
from bottleneck_mapper.recommendations import generate_recommendations


def _types(recommendations):
    return [r['type'] for r in recommendations]


class TestGenerateRecommendations:

    def test_delivery_constraint_first(self, delivery_bound_scenario):
        recs = generate_recommendations(run_pipeline(delivery_bound_scenario))

        assert recs[0]['title'] == "Add delivery capacity"
        assert recs[0]['priority'] == "High"
        assert recs[0]['details']['demand_flow'] == 10

    def test_stage_constraint_and_top_lever(self, current, benchmark):
        recs = generate_recommendations(run_pipeline(current, benchmark))

        assert recs[0]['title'] == "Relieve the Lead stage"
        assert any(r['title'] == "Restore Opp rate to benchmark" for r in recs)

    def test_required_keys(self, current, benchmark):
        for rec in generate_recommendations(run_pipeline(current, benchmark)):
            assert set(rec) == {'type', 'priority', 'title', 'description', 'impact', 'effort', 'details'}
            assert rec['priority'] in ("High", "Medium", "Low")

    def test_cash_constraint(self, current):
        result = run_pipeline(replace(current, cash=Cash(cac=10_000_000)))
        assert 'cash' in _types(generate_recommendations(result))

    def test_no_cash_recommendation_when_efficient(self, current):
        assert 'cash' not in _types(generate_recommendations(run_pipeline(current)))

    def test_backlog_alert(self, current):
        result = run_pipeline(current, backlog=[BacklogItem("v5", 25.6), BacklogItem("v4", 1)])
        backlog = [r for r in generate_recommendations(result) if r['type'] == 'backlog']

        assert [r['title'] for r in backlog] == ["Clear the Opp backlog"]

    def test_unreachable_stages(self, delivery_bound_scenario):
        result = run_pipeline(replace(delivery_bound_scenario, conversion_rates=(0.0,)))
        recs = generate_recommendations(result)
        conversion = next(r for r in recs if r['type'] == 'conversion')

        assert conversion['details']['stages'] == ["Prospect"]

    def test_inbound_gap(self, delivery_bound_scenario):
        result = run_pipeline(replace(delivery_bound_scenario, inbound_volume=90))
        volume = next(r for r in generate_recommendations(result) if r['type'] == 'volume')

        assert volume['details']['inbound_gap'] > 0
