"""
Buyer and seller negotiators driving one bilateral alternating-offer negotiation.

Each negotiator is a small state machine: the handler of the current state
runs to completion, returns an :class:`Event`, and the role's transition table
picks the next state. Waiting for the counterparty is a bounded poll on the
message bus, so a silent counterparty ends the negotiation with a timeout.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from .concession import next_offer
from .config import NegotiationSettings, PartyPreferences, SellerProfile
from .evaluation import UtilityEvaluator
from .messaging import Message, MessageBus, MessageKind, new_reference
from .models import Bid, NegotiationOutcome, Proposal, Role, TerminationReason
from .protocol import (
    BUYER_TRANSITIONS,
    SELLER_TRANSITIONS,
    BuyerState,
    Event,
    SellerState,
    next_state,
)

logger = logging.getLogger(__name__)

Handler = Callable[[], Awaitable[Event]]


class Negotiator(ABC):
    """Common machinery for both negotiation roles."""

    role: Role

    def __init__(self, name: str, bus: MessageBus, preferences: PartyPreferences,
                 settings: NegotiationSettings, evaluator: Optional[UtilityEvaluator] = None):
        preferences.check_complete(self.role)
        self.name = name
        self.bus = bus
        self.preferences = preferences
        self.settings = settings
        self.evaluator = evaluator or UtilityEvaluator({self.role: preferences.fuzzy_terms})

        self.counterparty: Optional[str] = None
        self.negotiation_id: Optional[str] = None
        self.current_round = 0
        self.state = self.initial_state()
        self.trail: List = [self.state]
        self.outcome: Optional[NegotiationOutcome] = None

        self._final_bid: Optional[Bid] = None
        self._final_utility = 0.0
        self._end_reason: Optional[TerminationReason] = None

    # ---------- Role hooks ----------
    @abstractmethod
    def initial_state(self):
        ...

    @property
    @abstractmethod
    def transitions(self) -> Dict:
        ...

    @property
    @abstractmethod
    def end_state(self):
        ...

    @abstractmethod
    def handlers(self) -> Dict[object, Handler]:
        ...

    async def on_end(self) -> None:
        """Called once after the outcome has been recorded."""

    # ---------- Core Run ----------
    async def run(self) -> NegotiationOutcome:
        """Drive the state machine to its terminal state.

        Returns:
            NegotiationOutcome: Agreement or failure; never raises.
        """

        handlers = self.handlers()
        try:
            while self.state != self.end_state:
                event = await handlers[self.state]()
                self.state = next_state(self.transitions, self.state, event)
                self.trail.append(self.state)
        except Exception:
            logger.exception(f"{self.name}: negotiation aborted by an unexpected error")
            self._final_bid = None
            self._end_reason = TerminationReason.ERROR
            self.state = self.end_state
            self.trail.append(self.state)

        self._conclude()
        await self.on_end()
        return self.outcome

    def _conclude(self) -> None:
        counterparty = self.counterparty or "unknown"
        if self._final_bid is not None:
            self.outcome = NegotiationOutcome.agreement(
                counterparty, self._final_bid, self._final_utility,
                self._end_reason or TerminationReason.ACCEPTED, self.current_round,
            )
        else:
            self.outcome = NegotiationOutcome.failure(
                counterparty, self._end_reason or TerminationReason.TIMEOUT, self.current_round,
            )
        logger.info(f"{self.name}: Negotiation process finished. {self.outcome.summary()}")

    # ---------- Helpers ----------
    def utility(self, bid: Bid) -> float:
        """Score ``bid`` under this party's own preferences."""
        return self.evaluator.score(
            self.role, bid, self.preferences.weights, self.preferences.issues,
            self.preferences.risk_beta,
        )

    def concede(self, reference: Bid, round_num: int) -> Bid:
        """Bid this party would offer at ``round_num`` using ``reference`` as template."""
        return next_offer(
            reference, round_num, self.settings.max_rounds, self.preferences.gamma,
            self.settings.discount_factor, self.preferences.issues, self.role,
        )

    def _record_agreement(self, bid: Bid, utility: float, reason: TerminationReason) -> None:
        self._final_bid = bid
        self._final_utility = utility
        self._end_reason = reason

    def _deadline_passed(self) -> bool:
        if self.current_round > self.settings.max_rounds:
            logger.warning(f"{self.name}: Deadline reached ({self.current_round}/{self.settings.max_rounds}). "
                           f"Ending negotiation.")
            self._final_bid = None
            self._end_reason = TerminationReason.DEADLINE
            return True
        return False

    def _extract_bid(self, message: Message) -> Optional[Bid]:
        payload = message.payload
        if not isinstance(payload, Proposal):
            logger.error(f"{self.name}: Received unexpected content type: {type(payload).__name__}")
            return None
        if payload.primary_bid is None:
            logger.warning(f"{self.name}: Received empty proposal.")
            return None
        if len(payload.bids) > 1:
            logger.warning(f"{self.name}: Proposal carries {len(payload.bids)} bids; only the first is negotiated.")
        return payload.primary_bid

    def _send(self, kind: MessageKind, payload, *, in_reply_to: Optional[str] = None,
              reply_with: Optional[str] = None) -> None:
        self.bus.send(Message(
            kind=kind,
            sender=self.name,
            receiver=self.counterparty,
            conversation_id=self.negotiation_id,
            reply_with=reply_with,
            in_reply_to=in_reply_to,
            payload=payload,
        ))


class BuyerNegotiator(Negotiator):
    """Buyer side: requests a proposal, then evaluates and counters until agreement.

    Acceptance requires the received bid to reach the acceptance threshold and
    to be worth at least as much as the counter-offer the buyer would send next.
    """

    role = Role.BUYER

    def __init__(self, name: str, seller: str, bus: MessageBus, preferences: PartyPreferences,
                 settings: NegotiationSettings, coordinator: Optional[str] = None,
                 evaluator: Optional[UtilityEvaluator] = None):
        super().__init__(name, bus, preferences, settings, evaluator)
        self.counterparty = seller
        self.coordinator = coordinator
        self.received: Optional[Message] = None
        self.received_bid: Optional[Bid] = None
        self.last_sent_counter_bid: Optional[Bid] = None
        self._last_reply_with: Optional[str] = None

    def initial_state(self):
        return BuyerState.SEND_REQUEST

    @property
    def transitions(self):
        return BUYER_TRANSITIONS

    @property
    def end_state(self):
        return BuyerState.END_NEGOTIATION

    def handlers(self):
        return {
            BuyerState.SEND_REQUEST: self._send_request,
            BuyerState.WAIT_FOR_PROPOSAL: self._wait_for_proposal,
            BuyerState.EVALUATE_PROPOSAL: self._evaluate_proposal,
            BuyerState.ACCEPT_OFFER: self._accept_offer,
            BuyerState.MAKE_COUNTER_OFFER: self._make_counter_offer,
        }

    def evaluate(self, bid: Bid) -> Tuple[bool, float, float]:
        """Apply the acceptance rule to ``bid`` at the current round.

        Returns:
            Tuple[bool, float, float]: Acceptance decision, utility of ``bid``
            and utility of the hypothetical next counter-offer.
        """

        utility = self.utility(bid)
        hypothetical = self.concede(bid, self.current_round + 1)
        next_utility = self.utility(hypothetical)
        accept = utility >= self.preferences.acceptance_threshold and utility >= next_utility
        return accept, utility, next_utility

    # ---------- States ----------
    async def _send_request(self) -> Event:
        self.current_round = 1
        self.negotiation_id = f"neg-{self.counterparty}-{uuid.uuid4().hex[:12]}"
        self._last_reply_with = new_reference("req", self.negotiation_id)
        logger.info(f"{self.name} [R{self.current_round}]: Sending call for proposal to {self.counterparty}")
        self._send(MessageKind.REQUEST, "send-proposal", reply_with=self._last_reply_with)
        return Event.DONE

    async def _wait_for_proposal(self) -> Event:
        message = await self.bus.wait_for(
            self.name,
            timeout=self.settings.response_timeout,
            poll_interval=self.settings.poll_interval,
            sender=self.counterparty,
            conversation_id=self.negotiation_id,
            kinds=(MessageKind.PROPOSE, MessageKind.ACCEPT),
            in_reply_to=self._last_reply_with,
        )
        if message is None:
            logger.warning(f"{self.name}: Timeout waiting for proposal from {self.counterparty}. Ending negotiation.")
            self._end_reason = TerminationReason.TIMEOUT
            return Event.TIMEOUT

        self.received = message
        if message.kind == MessageKind.PROPOSE:
            return Event.PROPOSAL_RECEIVED

        logger.info(f"{self.name}: {self.counterparty} accepted my last counter-offer.")
        if self.last_sent_counter_bid is not None:
            bid = self.last_sent_counter_bid
            self._record_agreement(bid, self.utility(bid), TerminationReason.COUNTERPARTY_ACCEPTED)
        else:
            logger.warning(f"{self.name}: Acceptance received but no counter-offer was sent.")
            self._end_reason = TerminationReason.ERROR
        return Event.ACCEPTANCE_RECEIVED

    async def _evaluate_proposal(self) -> Event:
        self.current_round += 1
        logger.info(f"{self.name} [R{self.current_round}]: Evaluating proposal from {self.counterparty}")
        if self._deadline_passed():
            return Event.DEADLINE

        bid = self._extract_bid(self.received)
        if bid is None:
            return Event.MALFORMED
        self.received_bid = bid

        accept, utility, next_utility = self.evaluate(bid)
        threshold = self.preferences.acceptance_threshold
        if accept:
            logger.info(f"{self.name}: Offer is acceptable (Utility {utility:.4f} >= Threshold {threshold:.4f} "
                        f"AND >= Next Counter {next_utility:.4f}). Accepting.")
            self._record_agreement(bid, utility, TerminationReason.ACCEPTED)
            return Event.ACCEPTABLE
        logger.info(f"{self.name}: Offer not acceptable (Utility {utility:.4f}, Threshold {threshold:.4f}, "
                    f"Next Counter {next_utility:.4f}). Will make counter-offer.")
        return Event.NOT_ACCEPTABLE

    async def _make_counter_offer(self) -> Event:
        counter = self.concede(self.received_bid, self.current_round)
        self.last_sent_counter_bid = counter
        self._last_reply_with = new_reference("prop", self.negotiation_id)
        self._send(MessageKind.PROPOSE, Proposal.of(counter),
                   in_reply_to=self.received.reply_with, reply_with=self._last_reply_with)
        logger.info(f"{self.name}: Sent counter-proposal (Round {self.current_round}) -> {counter.describe()}")
        return Event.DONE

    async def _accept_offer(self) -> Event:
        logger.info(f"{self.name}: Sending acceptance message to {self.counterparty}")
        self._send(MessageKind.ACCEPT, self.received.payload, in_reply_to=self.received.reply_with)
        return Event.DONE

    async def on_end(self) -> None:
        if self.coordinator is None:
            return
        kind = MessageKind.INFORM if self.outcome.success else MessageKind.FAILURE
        self.bus.send(Message(
            kind=kind,
            sender=self.name,
            receiver=self.coordinator,
            conversation_id=self.negotiation_id,
            payload=self.outcome,
        ))
        logger.info(f"{self.name}: Informed coordinator of {'successful' if self.outcome.success else 'failed'} "
                    f"negotiation.")


class SellerNegotiator(Negotiator):
    """Seller side: answers a request with its opening bid, then concedes.

    Counter-offers are accepted on the threshold test alone; unlike the buyer,
    the seller does not compare against its own next offer.
    """

    role = Role.SELLER

    def __init__(self, profile: SellerProfile, bus: MessageBus, preferences: PartyPreferences,
                 settings: NegotiationSettings, evaluator: Optional[UtilityEvaluator] = None):
        super().__init__(profile.name, bus, preferences, settings, evaluator)
        self.profile = profile
        self.request: Optional[Message] = None
        self.received: Optional[Message] = None
        self.received_bid: Optional[Bid] = None
        self.last_sent_bid: Optional[Bid] = None

    def initial_state(self):
        return SellerState.WAIT_FOR_REQUEST

    @property
    def transitions(self):
        return SELLER_TRANSITIONS

    @property
    def end_state(self):
        return SellerState.END_NEGOTIATION

    def handlers(self):
        return {
            SellerState.WAIT_FOR_REQUEST: self._wait_for_request,
            SellerState.SEND_INITIAL_PROPOSAL: self._send_initial_proposal,
            SellerState.WAIT_FOR_RESPONSE: self._wait_for_response,
            SellerState.EVALUATE_COUNTER_PROPOSAL: self._evaluate_counter_proposal,
            SellerState.ACCEPT_COUNTER_OFFER: self._accept_counter_offer,
            SellerState.MAKE_NEW_PROPOSAL: self._make_new_proposal,
        }

    def evaluate(self, bid: Bid) -> Tuple[bool, float]:
        """Threshold test on ``bid`` from the seller's point of view."""
        utility = self.utility(bid)
        return utility >= self.preferences.acceptance_threshold, utility

    # ---------- States ----------
    async def _wait_for_request(self) -> Event:
        logger.info(f"{self.name}: Waiting for negotiation request...")
        message = await self.bus.wait_for(
            self.name,
            timeout=self.settings.request_timeout,
            poll_interval=self.settings.poll_interval,
            kinds=(MessageKind.REQUEST,),
        )
        if message is None:
            logger.error(f"{self.name}: Failed to receive initial request. Terminating.")
            self._end_reason = TerminationReason.NO_REQUEST
            return Event.TIMEOUT

        self.request = message
        self.counterparty = message.sender
        self.negotiation_id = message.conversation_id
        self.current_round = 1
        logger.info(f"{self.name} [R{self.current_round}]: Received request from {self.counterparty}")
        return Event.REQUEST_RECEIVED

    async def _send_initial_proposal(self) -> Event:
        bid = self.profile.initial_bid()
        self.last_sent_bid = bid
        self._send(MessageKind.PROPOSE, Proposal.of(bid), in_reply_to=self.request.reply_with,
                   reply_with=new_reference("prop", self.negotiation_id))
        logger.info(f"{self.name} [R{self.current_round}]: Sent initial proposal -> {bid.describe()}")
        return Event.DONE

    async def _wait_for_response(self) -> Event:
        message = await self.bus.wait_for(
            self.name,
            timeout=self.settings.response_timeout,
            poll_interval=self.settings.poll_interval,
            sender=self.counterparty,
            conversation_id=self.negotiation_id,
            kinds=(MessageKind.PROPOSE, MessageKind.ACCEPT),
        )
        if message is None:
            logger.info(f"{self.name}: Timeout waiting for response from {self.counterparty}. Ending negotiation.")
            self._end_reason = TerminationReason.TIMEOUT
            return Event.TIMEOUT

        if message.kind == MessageKind.ACCEPT:
            logger.info(f"{self.name}: {self.counterparty} accepted my last offer!")
            bid = self.last_sent_bid
            self._record_agreement(bid, self.utility(bid), TerminationReason.COUNTERPARTY_ACCEPTED)
            return Event.ACCEPTANCE_RECEIVED

        self.received = message
        return Event.PROPOSAL_RECEIVED

    async def _evaluate_counter_proposal(self) -> Event:
        self.current_round += 1
        logger.info(f"{self.name} [R{self.current_round}]: Evaluating counter-proposal from {self.counterparty}")
        if self._deadline_passed():
            return Event.DEADLINE

        bid = self._extract_bid(self.received)
        if bid is None:
            return Event.MALFORMED
        self.received_bid = bid

        accept, utility = self.evaluate(bid)
        threshold = self.preferences.acceptance_threshold
        logger.info(f"{self.name}: Received counter utility = {utility:.4f} (Threshold = {threshold:.4f})")
        if accept:
            self._record_agreement(bid, utility, TerminationReason.ACCEPTED)
            return Event.ACCEPTABLE
        return Event.NOT_ACCEPTABLE

    async def _accept_counter_offer(self) -> Event:
        logger.info(f"{self.name}: Sending acceptance for {self.counterparty}'s counter-offer.")
        self._send(MessageKind.ACCEPT, self.received.payload, in_reply_to=self.received.reply_with)
        return Event.DONE

    async def _make_new_proposal(self) -> Event:
        bid = self.concede(self.received_bid, self.current_round)
        self.last_sent_bid = bid
        self._send(MessageKind.PROPOSE, Proposal.of(bid), in_reply_to=self.received.reply_with,
                   reply_with=new_reference("prop", self.negotiation_id))
        logger.info(f"{self.name}: Sent new proposal (Round {self.current_round}) -> {bid.describe()}")
        return Event.DONE
