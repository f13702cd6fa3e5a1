"""
Alternating-offer protocol definition for both negotiation roles.

States and events are explicit enums and transitions are plain lookup tables,
so the protocol can be inspected and tested without running a negotiation.
"""

from enum import Enum
from typing import Dict, Tuple


class ProtocolError(RuntimeError):
    """Raised when a state machine receives an event its state does not handle."""


class Event(str, Enum):
    """Outcome of running one state's step logic."""
    DONE = "done"  # Unconditional transition
    PROPOSAL_RECEIVED = "proposal_received"
    ACCEPTANCE_RECEIVED = "acceptance_received"
    REQUEST_RECEIVED = "request_received"
    TIMEOUT = "timeout"
    ACCEPTABLE = "acceptable"
    NOT_ACCEPTABLE = "not_acceptable"
    DEADLINE = "deadline"
    MALFORMED = "malformed"


class BuyerState(str, Enum):
    SEND_REQUEST = "SendRequest"
    WAIT_FOR_PROPOSAL = "WaitForProposal"
    EVALUATE_PROPOSAL = "EvaluateProposal"
    ACCEPT_OFFER = "AcceptOffer"
    MAKE_COUNTER_OFFER = "MakeCounterOffer"
    END_NEGOTIATION = "EndNegotiation"


class SellerState(str, Enum):
    WAIT_FOR_REQUEST = "WaitForRequest"
    SEND_INITIAL_PROPOSAL = "SendInitialProposal"
    WAIT_FOR_RESPONSE = "WaitForResponse"
    EVALUATE_COUNTER_PROPOSAL = "EvaluateCounterProposal"
    ACCEPT_COUNTER_OFFER = "AcceptCounterOffer"
    MAKE_NEW_PROPOSAL = "MakeNewProposal"
    END_NEGOTIATION = "EndNegotiation"


BUYER_TRANSITIONS: Dict[Tuple[BuyerState, Event], BuyerState] = {
    (BuyerState.SEND_REQUEST, Event.DONE): BuyerState.WAIT_FOR_PROPOSAL,
    (BuyerState.WAIT_FOR_PROPOSAL, Event.PROPOSAL_RECEIVED): BuyerState.EVALUATE_PROPOSAL,
    (BuyerState.WAIT_FOR_PROPOSAL, Event.ACCEPTANCE_RECEIVED): BuyerState.END_NEGOTIATION,
    (BuyerState.WAIT_FOR_PROPOSAL, Event.TIMEOUT): BuyerState.END_NEGOTIATION,
    (BuyerState.EVALUATE_PROPOSAL, Event.ACCEPTABLE): BuyerState.ACCEPT_OFFER,
    (BuyerState.EVALUATE_PROPOSAL, Event.NOT_ACCEPTABLE): BuyerState.MAKE_COUNTER_OFFER,
    (BuyerState.EVALUATE_PROPOSAL, Event.DEADLINE): BuyerState.END_NEGOTIATION,
    # Unreadable proposals are ignored; the wait times out if nothing else arrives
    (BuyerState.EVALUATE_PROPOSAL, Event.MALFORMED): BuyerState.WAIT_FOR_PROPOSAL,
    (BuyerState.ACCEPT_OFFER, Event.DONE): BuyerState.END_NEGOTIATION,
    (BuyerState.MAKE_COUNTER_OFFER, Event.DONE): BuyerState.WAIT_FOR_PROPOSAL,
}

SELLER_TRANSITIONS: Dict[Tuple[SellerState, Event], SellerState] = {
    (SellerState.WAIT_FOR_REQUEST, Event.REQUEST_RECEIVED): SellerState.SEND_INITIAL_PROPOSAL,
    (SellerState.WAIT_FOR_REQUEST, Event.TIMEOUT): SellerState.END_NEGOTIATION,
    (SellerState.SEND_INITIAL_PROPOSAL, Event.DONE): SellerState.WAIT_FOR_RESPONSE,
    (SellerState.WAIT_FOR_RESPONSE, Event.PROPOSAL_RECEIVED): SellerState.EVALUATE_COUNTER_PROPOSAL,
    (SellerState.WAIT_FOR_RESPONSE, Event.ACCEPTANCE_RECEIVED): SellerState.END_NEGOTIATION,
    (SellerState.WAIT_FOR_RESPONSE, Event.TIMEOUT): SellerState.END_NEGOTIATION,
    (SellerState.EVALUATE_COUNTER_PROPOSAL, Event.ACCEPTABLE): SellerState.ACCEPT_COUNTER_OFFER,
    (SellerState.EVALUATE_COUNTER_PROPOSAL, Event.NOT_ACCEPTABLE): SellerState.MAKE_NEW_PROPOSAL,
    (SellerState.EVALUATE_COUNTER_PROPOSAL, Event.DEADLINE): SellerState.END_NEGOTIATION,
    (SellerState.EVALUATE_COUNTER_PROPOSAL, Event.MALFORMED): SellerState.WAIT_FOR_RESPONSE,
    (SellerState.ACCEPT_COUNTER_OFFER, Event.DONE): SellerState.END_NEGOTIATION,
    (SellerState.MAKE_NEW_PROPOSAL, Event.DONE): SellerState.WAIT_FOR_RESPONSE,
}


def next_state(table: Dict[Tuple[Enum, Event], Enum], state: Enum, event: Event) -> Enum:
    """Look up the successor of ``state`` under ``event``.

    Raises:
        ProtocolError: If the pair has no registered transition.
    """

    try:
        return table[(state, event)]
    except KeyError:
        raise ProtocolError(f"No transition from {state.value} on '{event.value}'") from None
