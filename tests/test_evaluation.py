"""
Unit tests for bid utility evaluation.
Run with: pytest tests/test_evaluation.py -v
"""

import pytest

from procurement.evaluation import (
    V_MIN,
    UtilityEvaluator,
    issue_utility,
    qualitative_utility,
    quantitative_utility,
    risk_adjusted_utility,
)
from procurement.models import Issue, IssueKind, IssueParameters, Role


def buyer_score(evaluator, prefs, bid, risk_beta=None):
    beta = prefs.risk_beta if risk_beta is None else risk_beta
    return evaluator.score(Role.BUYER, bid, prefs.weights, prefs.issues, beta)


# ===== WORKED EXAMPLES =====

class TestWorkedBid:

    def test_linear_risk(self, buyer_evaluator, buyer_prefs, worked_bid):
        """Mid-range bid scores 0.22 + 0.225 + 0.045 + 0.075."""
        assert buyer_score(buyer_evaluator, buyer_prefs, worked_bid) == pytest.approx(0.565, abs=1e-6)

    def test_polynomial_risk(self, buyer_evaluator, buyer_prefs, worked_bid):
        assert buyer_score(buyer_evaluator, buyer_prefs, worked_bid, 0.5) == pytest.approx(0.45167, abs=1e-4)

    def test_exponential_risk(self, buyer_evaluator, buyer_prefs, worked_bid):
        assert buyer_score(buyer_evaluator, buyer_prefs, worked_bid, 2.0) == pytest.approx(0.56218, abs=1e-4)

    def test_threshold_decision(self, buyer_evaluator, buyer_prefs, worked_bid):
        utility = buyer_score(buyer_evaluator, buyer_prefs, worked_bid)
        assert not utility >= 0.7
        assert utility >= 0.5

    def test_best_bid_is_bounded(self, buyer_evaluator, buyer_prefs, worked_bid):
        best = worked_bid.with_issues([
            Issue(name="price", value=40),
            Issue(name="quality", value="very good"),
            Issue(name="delivery", value=0),
            Issue(name="service", value="very good"),
        ])
        utility = buyer_score(buyer_evaluator, buyer_prefs, best)
        assert 0.0 <= utility <= 1.0
        assert utility == pytest.approx(0.4 + 0.3 * 23 / 24 + 0.15 + 0.15 * 23 / 24)


# ===== RISK CURVES =====

class TestRiskCurves:

    @pytest.mark.parametrize("beta", [0.3, 0.5, 1.0, 2.0, 5.0])
    def test_endpoints(self, beta):
        assert risk_adjusted_utility(0.0, beta) == pytest.approx(V_MIN)
        assert risk_adjusted_utility(1.0, beta) == pytest.approx(1.0)

    @pytest.mark.parametrize("beta", [0.5, 1.0, 2.0])
    def test_monotonic(self, beta):
        values = [risk_adjusted_utility(r / 10, beta) for r in range(11)]
        assert values == sorted(values)

    def test_invalid_beta_falls_back_to_linear(self, caplog):
        assert risk_adjusted_utility(0.5, 0.0) == pytest.approx(0.55)
        assert risk_adjusted_utility(0.5, -2.0) == pytest.approx(0.55)
        assert "Invalid risk parameter" in caplog.text

    def test_ratio_is_clamped(self):
        assert risk_adjusted_utility(1.5, 1.0) == pytest.approx(1.0)
        assert risk_adjusted_utility(-0.5, 1.0) == pytest.approx(V_MIN)


# ===== ISSUE UTILITIES =====

class TestIssueUtility:

    def test_cost_and_benefit(self):
        cost = IssueParameters(min_value=50, max_value=60, kind=IssueKind.COST)
        benefit = IssueParameters(min_value=50, max_value=60, kind=IssueKind.BENEFIT)
        assert quantitative_utility(50, cost, 1.0) == pytest.approx(1.0)
        assert quantitative_utility(60, cost, 1.0) == pytest.approx(V_MIN)
        assert quantitative_utility(60, benefit, 1.0) == pytest.approx(1.0)
        assert quantitative_utility(50, benefit, 1.0) == pytest.approx(V_MIN)

    def test_out_of_range_values_are_clamped(self):
        cost = IssueParameters(min_value=50, max_value=60, kind=IssueKind.COST)
        assert quantitative_utility(10, cost, 1.0) == pytest.approx(1.0)
        assert quantitative_utility(100, cost, 1.0) == pytest.approx(V_MIN)

    def test_degenerate_range(self):
        cost = IssueParameters(min_value=5, max_value=5, kind=IssueKind.COST)
        benefit = IssueParameters(min_value=5, max_value=5, kind=IssueKind.BENEFIT)
        assert quantitative_utility(4, cost, 1.0) == 1.0
        assert quantitative_utility(6, cost, 1.0) == V_MIN
        assert quantitative_utility(6, benefit, 1.0) == 1.0
        assert quantitative_utility(4, benefit, 1.0) == V_MIN

    def test_swapped_range_is_reordered(self):
        params = IssueParameters(min_value=60, max_value=50, kind=IssueKind.COST)
        assert (params.min_value, params.max_value) == (50, 60)

    def test_fuzzy_terms(self, buyer_prefs):
        table = buyer_prefs.fuzzy_terms
        assert qualitative_utility("good", table) == pytest.approx(0.75)
        assert qualitative_utility("very_good", table) == pytest.approx(23 / 24)
        assert qualitative_utility("VeryPoor", table) == pytest.approx(0.25 / 6)

    def test_unknown_term_scores_zero(self, buyer_prefs, caplog):
        assert qualitative_utility("excellent", buyer_prefs.fuzzy_terms) == 0.0
        assert "Unknown linguistic term" in caplog.text

    def test_type_mismatch_scores_zero(self, buyer_prefs):
        quality = buyer_prefs.issues["quality"]
        price = buyer_prefs.issues["price"]
        table = buyer_prefs.fuzzy_terms
        assert issue_utility(Issue(name="quality", value=3.0), quality, 1.0, table) == 0.0
        assert issue_utility(Issue(name="price", value="cheap"), price, 1.0, table) == 0.0
        assert issue_utility(Issue(name="price", value=None), price, 1.0, table) == 0.0


# ===== BID SCORING =====

class TestScoring:

    def test_zero_weights_skip_issues(self, buyer_prefs, buyer_evaluator, worked_bid):
        weights = {"price": 1.0, "quality": 0.0, "delivery": 0.0, "service": 0.0}
        utility = buyer_evaluator.score(Role.BUYER, worked_bid, weights, buyer_prefs.issues, 1.0)
        assert utility == pytest.approx(0.55)

    def test_issues_without_parameters_are_skipped(self, buyer_prefs, buyer_evaluator, worked_bid):
        issues = {k: v for k, v in buyer_prefs.issues.items() if k != "price"}
        utility = buyer_evaluator.score(Role.BUYER, worked_bid, buyer_prefs.weights, issues, 1.0)
        assert utility == pytest.approx(0.565 - 0.22)

    def test_total_is_clamped(self, buyer_prefs, buyer_evaluator, worked_bid):
        weights = {"price": 5.0}
        utility = buyer_evaluator.score(Role.BUYER, worked_bid, weights, buyer_prefs.issues, 1.0)
        assert utility == 1.0

    def test_missing_role_table(self, buyer_prefs, worked_bid):
        evaluator = UtilityEvaluator({})
        utility = evaluator.score(Role.BUYER, worked_bid, buyer_prefs.weights, buyer_prefs.issues, 1.0)
        assert utility == pytest.approx(0.22 + 0.045)

    def test_issue_names_are_case_insensitive(self, buyer_prefs, buyer_evaluator, worked_bid):
        shouted = worked_bid.with_issues([Issue(name=i.name.upper(), value=i.value) for i in worked_bid.issues])
        assert buyer_score(buyer_evaluator, buyer_prefs, shouted) == pytest.approx(0.565)
