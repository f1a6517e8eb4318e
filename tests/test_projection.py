"""Unit tests for multi-year projections and best-plan selection."""

import pytest

from netmeter.models.projection import (
    calculate_irr,
    calculate_payback,
    project_savings,
    select_best_plan,
)
from netmeter.models.results import AnnualSummary, NetMeteringResult


def _result(plan_id, export_credits, valid=True):
    if not valid:
        return NetMeteringResult.withheld(plan_id, plan_id.upper(), 2025, "invalid distribution")
    return NetMeteringResult(plan_id=plan_id, annual=AnnualSummary(export_credits=export_credits))


class TestPayback:
    def test_flat_savings(self):
        """$1,000/yr against $2,500 pays back in 2.5 years."""
        assert calculate_payback([1000.0] * 5, 2500.0) == pytest.approx(2.5)

    def test_exact_year_boundary(self):
        assert calculate_payback([1000.0] * 5, 3000.0) == pytest.approx(3.0)

    def test_never_reached(self):
        assert calculate_payback([100.0] * 5, 10000.0) is None

    def test_no_cost(self):
        assert calculate_payback([100.0] * 5, 0.0) is None


class TestProjectSavings:
    def test_unreachable_when_no_savings(self):
        projection = project_savings(annual_savings=0.0, net_investment_cost=10000.0)
        assert projection.payback_years is None
        assert not projection.payback_reachable
        assert projection.net_profit == pytest.approx(-10000.0)

    def test_unreachable_when_negative_savings(self):
        projection = project_savings(-50.0, 10000.0)
        assert projection.payback_years is None

    def test_no_escalation(self):
        projection = project_savings(1000.0, 2500.0, escalation_rate=0.0)
        assert projection.payback_years == pytest.approx(2.5)
        assert projection.total_savings == pytest.approx(25000.0)
        assert projection.net_profit == pytest.approx(22500.0)

    def test_escalation_applied(self):
        """Year 1 $1,000, year 2 $1,100: $2,100 is recovered at exactly 2 years."""
        projection = project_savings(1000.0, 2100.0, escalation_rate=0.10)
        assert projection.payback_years == pytest.approx(2.0)
        assert projection.yearly_projections[1].annual_savings == pytest.approx(1100.0)
        assert projection.yearly_projections[1].rate_multiplier == pytest.approx(1.1)

    def test_default_horizon(self):
        projection = project_savings(1200.0, 15000.0)
        assert projection.years == 25
        assert projection.escalation_rate == 0.03
        assert len(projection.yearly_projections) == 25
        assert projection.yearly_projections[-1].cumulative_savings == pytest.approx(projection.total_savings)

    def test_free_system_has_no_payback(self):
        projection = project_savings(1000.0, 0.0)
        assert projection.payback_years is None
        assert projection.net_profit == pytest.approx(projection.total_savings)

    def test_irr_positive_for_profitable_system(self):
        projection = project_savings(1000.0, 10000.0, escalation_rate=0.0)
        assert projection.irr is not None
        assert 0.08 < projection.irr < 0.09

    def test_invalid_horizon(self):
        with pytest.raises(ValueError, match="years"):
            project_savings(1000.0, 5000.0, years=0)


class TestIRR:
    def test_irr_basic(self):
        """IRR of [-1000, 1100] is 10%."""
        assert calculate_irr([-1000, 1100]) == pytest.approx(0.10)

    def test_irr_no_solution(self):
        assert calculate_irr([100, 100, 100]) is None


class TestSelectBestPlan:
    def test_highest_credits_wins(self):
        results = {"tou": _result("tou", 300.0), "ulo": _result("ulo", 450.0),
                   "tiered": _result("tiered", 200.0)}
        assert select_best_plan(results) == "ulo"

    def test_tie_goes_to_priority(self):
        results = {"tiered": _result("tiered", 300.0), "ulo": _result("ulo", 300.0),
                   "tou": _result("tou", 300.0)}
        assert select_best_plan(results) == "tou"

    def test_tie_between_ulo_and_tiered(self):
        results = {"tiered": _result("tiered", 300.0), "ulo": _result("ulo", 300.0),
                   "tou": _result("tou", 100.0)}
        assert select_best_plan(results) == "ulo"

    def test_invalid_plans_skipped(self):
        results = {"tou": _result("tou", 0.0, valid=False), "ulo": _result("ulo", 10.0),
                   "tiered": _result("tiered", 50.0)}
        assert select_best_plan(results) == "tiered"

    def test_none_valid(self):
        results = {"tou": _result("tou", 0.0, valid=False)}
        assert select_best_plan(results) is None
