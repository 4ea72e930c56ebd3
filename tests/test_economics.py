"""Tests for the economics rollup."""

import math

import pytest

from bottleneck_mapper.config import UNBOUNDED
from bottleneck_mapper.economics import commercial_from_offers, economics_delta, rollup
from bottleneck_mapper.models import Cash, Commercial, Offer


@pytest.fixture
def commercial():
    return Commercial(average_selling_price=1000, gross_margin=0.8)


class TestRollup:

    def test_window_revenue_and_profit(self, commercial):
        result = rollup(8, 90, commercial, headcount=10, cash=Cash())

        assert result.units_window == pytest.approx(8 * 90 / 7)
        assert result.revenue_window == pytest.approx(102857.14, rel=1e-6)
        assert result.gross_profit_window == pytest.approx(82285.71, rel=1e-6)
        assert result.revenue_per_headcount_ceiling == pytest.approx(8228.571, rel=1e-6)

    def test_zero_headcount_gives_zero_ceiling(self, commercial):
        assert rollup(8, 90, commercial, 0, Cash()).revenue_per_headcount_ceiling == 0.0

    def test_zero_cac_is_unbounded(self, commercial):
        result = rollup(8, 90, commercial, 10, Cash(cac=0))

        assert result.cash_efficiency_ratio == UNBOUNDED
        assert result.cash_constrained is False
        assert result.ltv_to_cac == UNBOUNDED

    def test_cash_constraint_flag(self, commercial):
        result = rollup(8, 90, commercial, 10, Cash(cac=10000))

        # 82285.71 / 90 * 30 / 10000
        assert result.cash_efficiency_ratio == pytest.approx(2.742857, rel=1e-5)
        assert result.cash_constrained is True
        assert rollup(8, 90, commercial, 10, Cash(cac=10000), cash_threshold=2.5).cash_constrained is False

    def test_sales_velocity(self, commercial):
        assert rollup(8, 90, commercial, 10, Cash()).sales_velocity_per_week == pytest.approx(8000)
        two_weeks = Commercial(average_selling_price=1000, gross_margin=0.8, sales_cycle_days=14)
        assert rollup(8, 90, two_weeks, 10, Cash()).sales_velocity_per_week == pytest.approx(4000)

    def test_ltv_and_payback(self):
        terms = Commercial(average_selling_price=1200, gross_margin=0.5, churn_monthly=0.02)
        result = rollup(1, 90, terms, 1, Cash(cac=1000))

        assert result.ltv_to_cac == pytest.approx(30.0)
        assert result.payback_months == pytest.approx(20.0)

    def test_zero_churn_is_unbounded_ltv(self, commercial):
        assert math.isinf(rollup(1, 90, commercial, 1, Cash(cac=100)).ltv_to_cac)

    def test_invalid_inputs_never_raise(self, commercial):
        result = rollup(float("nan"), 0, commercial, -3, Cash(cac=float("inf")))

        assert result.units_window == 0.0
        assert result.revenue_window == 0.0
        assert result.revenue_per_headcount_ceiling == 0.0


class TestOffers:

    def test_share_weighted_mix(self):
        terms = commercial_from_offers([
            Offer("o1", "Core", 6500, 0.78, 0.7),
            Offer("o2", "Add-on", 18000, 0.72, 0.3),
        ], sales_cycle_days=30)

        assert terms.average_selling_price == pytest.approx(9950)
        assert terms.gross_margin == pytest.approx(0.762)
        assert terms.sales_cycle_days == 30

    def test_no_offers(self):
        terms = commercial_from_offers([])
        assert terms.average_selling_price == 0.0
        assert terms.gross_margin == 0.0


class TestEconomicsDelta:

    def test_delta(self, commercial):
        base = rollup(8, 90, commercial, 10, Cash())
        more = rollup(10, 90, commercial, 10, Cash())
        delta = economics_delta(more, base)

        assert delta.units_window == pytest.approx(2 * 90 / 7)
        assert delta.gross_profit_window == pytest.approx(more.gross_profit_window - base.gross_profit_window)
