"""
Unit tests for the time-dependent concession tactics.
"""

import logging

import pytest

from procurement.concession import concession_rate, conceded_term, conceded_value, next_offer
from procurement.models import Issue, IssueKind, IssueParameters, LinguisticTerm, Role


PRICE = IssueParameters(min_value=50, max_value=60, kind=IssueKind.COST)
VOLUME = IssueParameters(min_value=100, max_value=200, kind=IssueKind.BENEFIT)


class TestConcessionRate:

    @pytest.mark.parametrize("gamma", [0.2, 0.5, 1.0, 2.0, 4.0])
    def test_boundaries(self, gamma):
        assert concession_rate(1, 10, gamma, 0.1) == pytest.approx(0.1)
        assert concession_rate(10, 10, gamma, 0.1) == pytest.approx(1.0)

    @pytest.mark.parametrize("gamma", [0.5, 1.0, 2.0])
    def test_non_decreasing(self, gamma):
        rates = [concession_rate(t, 10, gamma, 0.1) for t in range(1, 11)]
        assert rates == sorted(rates)
        assert all(0.1 - 1e-9 <= r <= 1.0 + 1e-9 for r in rates)

    def test_round_clamping(self):
        assert concession_rate(15, 10, 0.5, 0.1) == concession_rate(10, 10, 0.5, 0.1)
        assert concession_rate(0, 10, 0.5, 0.1) == concession_rate(1, 10, 0.5, 0.1)
        assert concession_rate(-3, 10, 2.0, 0.1) == concession_rate(1, 10, 2.0, 0.1)

    def test_single_round_concedes_fully(self):
        assert concession_rate(1, 1, 0.5, 0.1) == pytest.approx(1.0)

    def test_discount_factor_is_clamped(self):
        assert concession_rate(1, 10, 0.5, 0.0) == pytest.approx(0.001)
        assert concession_rate(1, 10, 2.0, 1.0) == pytest.approx(0.999)

    def test_boulware_concedes_slower_than_conceder(self):
        assert concession_rate(5, 10, 0.5, 0.1) < concession_rate(5, 10, 2.0, 0.1)


class TestConcededValues:

    def test_buyer_directions(self):
        assert conceded_value(0.1, PRICE, Role.BUYER) == pytest.approx(51.0)
        assert conceded_value(0.1, VOLUME, Role.BUYER) == pytest.approx(190.0)

    def test_seller_directions(self):
        assert conceded_value(0.1, PRICE, Role.SELLER) == pytest.approx(59.0)
        assert conceded_value(0.1, VOLUME, Role.SELLER) == pytest.approx(110.0)

    def test_full_concession_reaches_opposite_end(self):
        assert conceded_value(1.0, PRICE, Role.BUYER) == pytest.approx(60.0)
        assert conceded_value(1.0, PRICE, Role.SELLER) == pytest.approx(50.0)

    def test_empty_range(self):
        flat = IssueParameters(min_value=7, max_value=7, kind=IssueKind.COST)
        assert conceded_value(0.5, flat, Role.BUYER) == 7

    @pytest.mark.parametrize("alpha,role,expected", [
        (0.1, Role.BUYER, LinguisticTerm.VERY_GOOD),
        (0.2, Role.BUYER, LinguisticTerm.GOOD),
        (0.5, Role.BUYER, LinguisticTerm.MEDIUM),
        (0.8, Role.BUYER, LinguisticTerm.POOR),
        (1.0, Role.BUYER, LinguisticTerm.VERY_POOR),
        (0.05, Role.SELLER, LinguisticTerm.VERY_POOR),
        (0.2, Role.SELLER, LinguisticTerm.POOR),
        (0.5, Role.SELLER, LinguisticTerm.MEDIUM),
        (0.8, Role.SELLER, LinguisticTerm.GOOD),
        (0.95, Role.SELLER, LinguisticTerm.VERY_GOOD),
    ])
    def test_term_buckets(self, alpha, role, expected):
        assert conceded_term(alpha, role) == expected


class TestNextOffer:

    def test_buyer_first_counter(self, buyer_prefs, worked_bid):
        bid = next_offer(worked_bid, 1, 10, 0.5, 0.1, buyer_prefs.issues, Role.BUYER)
        assert bid.issue("price").value == pytest.approx(51.0)
        assert bid.issue("delivery").value == pytest.approx(1.9)
        assert bid.issue("quality").value == "very good"
        assert bid.issue("service").value == "very good"
        assert bid.bundle == worked_bid.bundle
        assert bid.quantities == worked_bid.quantities

    def test_offers_move_towards_the_counterparty(self, buyer_prefs, worked_bid):
        prices = [
            next_offer(worked_bid, t, 10, 0.5, 0.1, buyer_prefs.issues, Role.BUYER).issue("price").value
            for t in range(1, 11)
        ]
        assert prices == sorted(prices)
        assert prices[-1] == pytest.approx(60.0)

    def test_unknown_issue_is_kept(self, buyer_prefs, worked_bid, caplog):
        caplog.set_level(logging.INFO)
        bid = worked_bid.with_issues([*worked_bid.issues, Issue(name="warranty", value=2)])
        offer = next_offer(bid, 3, 10, 0.5, 0.1, buyer_prefs.issues, Role.BUYER)
        assert offer.issue("warranty").value == 2
        assert "warranty" in caplog.text
