"""Shared pytest fixtures for procurement negotiation tests."""

import copy
import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


from procurement.config import (
    NegotiationSettings,
    PartyPreferences,
    SellerProfile,
    create_example_config,
    parse_config,
)
from procurement.evaluation import UtilityEvaluator
from procurement.models import Bid, Issue, ProductBundle, Role


@pytest.fixture
def example_data():
    """Raw example scenario mapping; tests may mutate their copy."""
    return copy.deepcopy(create_example_config())


@pytest.fixture
def example_config(example_data):
    return parse_config(example_data)


@pytest.fixture
def buyer_prefs(example_config) -> PartyPreferences:
    return example_config.buyer


@pytest.fixture
def seller_prefs(example_config) -> PartyPreferences:
    return example_config.seller


@pytest.fixture
def fast_settings():
    """Negotiation timing short enough for unit tests."""
    return NegotiationSettings(
        max_rounds=10,
        discount_factor=0.1,
        response_timeout=0.5,
        request_timeout=0.5,
        poll_interval=0.01,
    )


@pytest.fixture
def buyer_evaluator(buyer_prefs):
    return UtilityEvaluator({Role.BUYER: buyer_prefs.fuzzy_terms})


@pytest.fixture
def worked_bid():
    """Mid-range bid used in the worked utility example."""
    return Bid(
        bundle=ProductBundle(products=(1, 1, 0, 0)),
        issues=(
            Issue(name="price", value=55),
            Issue(name="quality", value="good"),
            Issue(name="delivery", value=8),
            Issue(name="service", value="medium"),
        ),
        quantities=(1000, 1000, 0, 0),
    )


@pytest.fixture
def make_profile():
    """Factory for seller profiles with a chosen opening offer."""

    def _make(name="s1", bundle=(1, 1, 0, 0), price=60, quality="very poor",
              delivery=10, service="very poor"):
        return SellerProfile(
            name=name,
            bundle=list(bundle),
            quantities=[1000 if flag else 0 for flag in bundle],
            initial_offer={"price": price, "quality": quality, "delivery": delivery, "service": service},
        )

    return _make
