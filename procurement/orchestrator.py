"""
Procurement coordinator: runs one negotiation per supplier and picks the winners.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .agents import BuyerNegotiator, SellerNegotiator
from .config import ConfigurationError, ProcurementConfig, SellerProfile
from .evaluation import UtilityEvaluator
from .messaging import MessageBus, MessageKind
from .models import Allocation, NegotiationOutcome, Role, TerminationReason
from .winner import WinnerDeterminationSolver, summarize_outcomes

logger = logging.getLogger(__name__)


class OrchestrationError(RuntimeError):
    """A negotiation instance could not be started."""


class ProcurementResult(BaseModel):
    """Everything one procurement round produced."""
    outcomes: List[NegotiationOutcome] = Field(default_factory=list)
    seller_outcomes: Dict[str, NegotiationOutcome] = Field(default_factory=dict)
    allocation: Allocation
    statistics: Dict = Field(default_factory=dict)


class ProcurementCoordinator:
    """Spawns a buyer/seller pair per supplier and solves winner determination.

    Buyers report to the coordinator's mailbox with INFORM (agreement) or
    FAILURE messages; the solver runs once one report per supplier has arrived.
    """

    def __init__(self, config: ProcurementConfig, bus: Optional[MessageBus] = None,
                 name: str = "coordinator", solver: Optional[WinnerDeterminationSolver] = None):
        self.config = config
        self.bus = bus or MessageBus()
        self.name = name
        self.solver = solver or WinnerDeterminationSolver()

        self._outcomes: List[NegotiationOutcome] = []
        self._finished = 0
        self._lock: Optional[asyncio.Lock] = None

    @staticmethod
    def buyer_name(seller: str) -> str:
        return f"buyer_for_{seller}"

    async def run(self) -> ProcurementResult:
        """Run every negotiation concurrently and determine the winners.

        Raises:
            OrchestrationError: If a negotiation instance cannot be spawned.
        """

        self._outcomes = []
        self._finished = 0
        self._lock = asyncio.Lock()
        registered: List[str] = []
        buyer_tasks: List[asyncio.Task] = []
        seller_tasks: Dict[str, asyncio.Task] = {}

        try:
            self._register(self.name, registered)
            logger.info("Preparation complete. Starting negotiation orchestration...")
            for profile in self.config.sellers:
                spawned = await self._spawn(profile, registered)
                if spawned is None:
                    continue
                seller_task, buyer_task = spawned
                seller_tasks[profile.name] = seller_task
                buyer_tasks.append(buyer_task)

            await self._collect(len(self.config.sellers), buyer_tasks)
            await asyncio.gather(*buyer_tasks)
            seller_results = await asyncio.gather(*seller_tasks.values())
        finally:
            for task in [*buyer_tasks, *seller_tasks.values()]:
                if not task.done():
                    task.cancel()
            for name in registered:
                self.bus.unregister(name)

        logger.info("--- All negotiations concluded. Determining winners... ---")
        allocation = self.solver.solve(self._outcomes, self.config.demand)
        self._log_solution(allocation)

        return ProcurementResult(
            outcomes=list(self._outcomes),
            seller_outcomes=dict(zip(seller_tasks.keys(), seller_results)),
            allocation=allocation,
            statistics=summarize_outcomes(self._outcomes),
        )

    # ---------- Spawning ----------
    def _register(self, name: str, registered: List[str]) -> None:
        try:
            self.bus.register(name)
        except ValueError as exc:
            raise OrchestrationError(f"Cannot start negotiation party '{name}': {exc}") from exc
        registered.append(name)

    async def _spawn(self, profile: SellerProfile, registered: List[str]):
        buyer_name = self.buyer_name(profile.name)
        logger.info(f"Creating {buyer_name} to negotiate with {profile.name}")
        settings = self.config.negotiation
        try:
            seller_prefs = self.config.seller_preferences(profile)
            seller = SellerNegotiator(
                profile, self.bus, seller_prefs, settings,
                evaluator=UtilityEvaluator({Role.SELLER: seller_prefs.fuzzy_terms}),
            )
            buyer = BuyerNegotiator(
                buyer_name, profile.name, self.bus, self.config.buyer, settings,
                coordinator=self.name,
                evaluator=UtilityEvaluator({Role.BUYER: self.config.buyer.fuzzy_terms}),
            )
        except ConfigurationError as exc:
            logger.error(f"Negotiation with {profile.name} cannot start: {exc}")
            await self._record(NegotiationOutcome.failure(profile.name, TerminationReason.CONFIGURATION))
            return None

        self._register(profile.name, registered)
        self._register(buyer_name, registered)
        try:
            seller_task = asyncio.create_task(seller.run(), name=f"seller-{profile.name}")
            buyer_task = asyncio.create_task(buyer.run(), name=buyer_name)
        except RuntimeError as exc:
            raise OrchestrationError(f"Failed to start negotiation with {profile.name}: {exc}") from exc
        logger.debug(f"Negotiation pair for {profile.name} started successfully.")
        return seller_task, buyer_task

    # ---------- Collection ----------
    async def _record(self, outcome: NegotiationOutcome) -> None:
        async with self._lock:
            self._outcomes.append(outcome)
            self._finished += 1

    async def _collect(self, expected: int, buyer_tasks: List[asyncio.Task]) -> None:
        poll = self.config.negotiation.poll_interval
        while self._finished < expected:
            message = await self.bus.wait_for(
                self.name, timeout=poll, poll_interval=poll,
                kinds=(MessageKind.INFORM, MessageKind.FAILURE),
            )
            if message is None:
                if all(task.done() for task in buyer_tasks):
                    logger.warning(f"Only {self._finished}/{expected} negotiations reported; "
                                   f"proceeding without the rest.")
                    break
                continue

            outcome = message.payload
            if not isinstance(outcome, NegotiationOutcome):
                logger.warning(f"Received non-outcome notification from {message.sender}")
                continue
            if message.kind == MessageKind.INFORM:
                logger.info(f"Result received from {message.sender} -> {outcome.summary()}")
            else:
                logger.info(f"Notification received from {message.sender} -> {outcome.summary()}")
            await self._record(outcome)

    def _log_solution(self, allocation: Allocation) -> None:
        logger.info("--- OPTIMAL SOLUTION FOUND ---")
        if not allocation.feasible:
            logger.info("No combination of bids could satisfy the demand.")
            return
        for outcome in allocation.winners:
            logger.info(f"-> {outcome.summary()}")
        logger.info(f"Total Maximized Utility: {allocation.total_utility:.3f}")


def run_procurement(config: ProcurementConfig) -> ProcurementResult:
    """Synchronous entry point running a full procurement round."""
    return asyncio.run(ProcurementCoordinator(config).run())
