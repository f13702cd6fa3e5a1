"""
End-to-end tests for the procurement coordinator.
"""

import asyncio

import pytest

from procurement.config import parse_config
from procurement.messaging import MessageBus
from procurement.models import TerminationReason
from procurement.orchestrator import OrchestrationError, ProcurementCoordinator, run_procurement


FAST_TIMING = {
    "max_rounds": 10,
    "discount_factor": 0.1,
    "response_timeout": 0.5,
    "request_timeout": 0.5,
    "poll_interval": 0.01,
}


@pytest.fixture
def fast_data(example_data):
    example_data["negotiation"] = dict(FAST_TIMING)
    example_data["seller"]["acceptance_threshold"] = 0.0
    return example_data


def test_every_supplier_agrees_and_winners_cover_demand(fast_data):
    config = parse_config(fast_data)

    result = run_procurement(config)

    assert len(result.outcomes) == 3
    assert all(o.success for o in result.outcomes)
    assert all(o.reason == TerminationReason.COUNTERPARTY_ACCEPTED for o in result.outcomes)
    assert {o.counterparty for o in result.outcomes} == {"s1", "s2", "s3"}
    assert result.allocation.feasible
    assert {o.counterparty for o in result.allocation.winners} == {"s1", "s2", "s3"}
    assert result.statistics["agreements"] == 3
    assert set(result.seller_outcomes) == {"s1", "s2", "s3"}
    assert all(o.reason == TerminationReason.ACCEPTED for o in result.seller_outcomes.values())


def test_misconfigured_seller_is_recorded_as_failure(fast_data):
    fast_data["sellers"][2]["preferences"] = dict(
        fast_data["seller"], weights={"warranty": 1.0}, issues={},
    )
    config = parse_config(fast_data)

    result = run_procurement(config)

    by_supplier = {o.counterparty: o for o in result.outcomes}
    assert by_supplier["s3"].reason == TerminationReason.CONFIGURATION
    assert not by_supplier["s3"].success
    assert "s3" not in result.seller_outcomes
    assert {o.counterparty for o in result.allocation.winners} == {"s1", "s2"}


def test_no_agreement_means_no_allocation(fast_data):
    fast_data["negotiation"]["max_rounds"] = 2
    fast_data["negotiation"]["response_timeout"] = 0.1
    fast_data["buyer"]["acceptance_threshold"] = 1.0
    fast_data["seller"]["acceptance_threshold"] = 1.0
    config = parse_config(fast_data)

    result = run_procurement(config)

    assert all(o.reason == TerminationReason.DEADLINE for o in result.outcomes)
    assert not result.allocation.feasible
    assert result.allocation.winners == []


def test_mailboxes_are_released(fast_data):
    config = parse_config(fast_data)
    bus = MessageBus()
    coordinator = ProcurementCoordinator(config, bus=bus)

    asyncio.run(coordinator.run())

    for name in ("coordinator", "s1", "buyer_for_s1"):
        assert not bus.is_registered(name)


def test_name_clash_is_fatal(fast_data):
    config = parse_config(fast_data)
    bus = MessageBus()
    bus.register("s2")
    coordinator = ProcurementCoordinator(config, bus=bus)

    with pytest.raises(OrchestrationError):
        asyncio.run(coordinator.run())
