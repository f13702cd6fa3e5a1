"""
Winner determination over independent negotiation outcomes.

Selects the subset of successful bids that maximizes total utility while
covering every demanded product and using each supplier at most once.
"""

import logging
from collections import Counter
from typing import Dict, List, Sequence, Set

import numpy as np

from .models import Allocation, NegotiationOutcome

logger = logging.getLogger(__name__)


class WinnerDeterminationSolver:
    """Branch-and-bound search over include/exclude decisions.

    Outcomes are sorted by utility (descending) so that the bound, the current
    utility plus every undecided utility, falls off quickly. Ties keep the
    first combination found.

    The incumbent starts at zero and pruning uses ``<=``, so a covering
    combination whose total utility is exactly zero is never selected and the
    allocation is reported infeasible.
    """

    def __init__(self):
        self.nodes_visited = 0
        self._candidates: List[NegotiationOutcome] = []
        self._bundles: np.ndarray = np.zeros((0, 0), dtype=bool)
        self._suffix: np.ndarray = np.zeros(1)
        self._demand: np.ndarray = np.zeros(0, dtype=bool)
        self._best: List[int] = []
        self._best_utility = 0.0

    def solve(self, outcomes: Sequence[NegotiationOutcome], demand: Sequence[int]) -> Allocation:
        """Pick the utility-maximizing feasible subset of ``outcomes``.

        Args:
            outcomes: Negotiation results; failures and bid-less entries are ignored.
            demand: 0/1 flag per product that must be covered.

        Returns:
            Allocation: Winning outcomes, or an infeasible allocation if no
            combination covers the demand.
        """

        demand = tuple(int(flag) for flag in demand)
        candidates = [o for o in outcomes if o.success and o.final_bid is not None]
        skipped = len(outcomes) - len(candidates)
        if skipped:
            logger.debug(f"Ignoring {skipped} unsuccessful outcome(s)")

        usable = []
        for outcome in candidates:
            if len(outcome.final_bid.bundle) != len(demand):
                logger.warning(f"Ignoring bid from {outcome.counterparty}: bundle length "
                               f"{len(outcome.final_bid.bundle)} does not match demand length {len(demand)}")
                continue
            usable.append(outcome)

        self._candidates = sorted(usable, key=lambda o: o.utility, reverse=True)
        self._demand = np.array(demand, dtype=bool)
        if self._candidates:
            self._bundles = np.vstack([o.final_bid.bundle.as_array() for o in self._candidates])
        else:
            self._bundles = np.zeros((0, len(demand)), dtype=bool)
        utilities = np.array([o.utility for o in self._candidates], dtype=float)
        # _suffix[i] is the sum of utilities from index i to the end
        self._suffix = np.concatenate([np.cumsum(utilities[::-1])[::-1], [0.0]])

        self._best = []
        self._best_utility = 0.0
        self.nodes_visited = 0
        self._search(0, [], 0.0, set())

        if self._best:
            winners = [self._candidates[i] for i in self._best]
            return Allocation(winners=winners, demand=demand, feasible=True)
        if not self._demand.any():
            return Allocation(winners=[], demand=demand, feasible=True)
        return Allocation(winners=[], demand=demand, feasible=False)

    def _search(self, index: int, chosen: List[int], utility: float, used: Set[str]) -> None:
        self.nodes_visited += 1

        if utility + self._suffix[index] <= self._best_utility:
            return

        if index == len(self._candidates):
            if self._covers(chosen) and utility > self._best_utility:
                self._best_utility = utility
                self._best = list(chosen)
            return

        outcome = self._candidates[index]
        if outcome.counterparty not in used:
            chosen.append(index)
            used.add(outcome.counterparty)
            self._search(index + 1, chosen, utility + outcome.utility, used)
            used.discard(outcome.counterparty)
            chosen.pop()

        self._search(index + 1, chosen, utility, used)

    def _covers(self, chosen: List[int]) -> bool:
        if not chosen:
            return not self._demand.any()
        covered = np.any(self._bundles[chosen], axis=0)
        return bool(np.all(covered[self._demand]))


def summarize_outcomes(outcomes: Sequence[NegotiationOutcome]) -> Dict:
    """Aggregate statistics over a batch of negotiation outcomes."""
    if not outcomes:
        return {}

    successful = [o for o in outcomes if o.success]
    rounds = [o.rounds_taken for o in outcomes]
    return {
        'total': len(outcomes),
        'agreements': len(successful),
        'success_rate': len(successful) / len(outcomes),
        'avg_utility': float(np.mean([o.utility for o in successful])) if successful else 0.0,
        'avg_rounds': float(np.mean(rounds)),
        'reasons': dict(Counter(o.reason.value for o in outcomes)),
    }
