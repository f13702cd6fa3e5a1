"""
Time-dependent concession tactics used to generate the next offer.
"""

import logging
import math
from typing import List, Mapping

import numpy as np

from .models import Bid, Issue, IssueKind, IssueParameters, LinguisticTerm, Role

logger = logging.getLogger(__name__)

# Upper bounds of the first four buckets on the 0..1 quality scale
_TERM_BREAKPOINTS = (
    (0.1, LinguisticTerm.VERY_POOR),
    (0.3, LinguisticTerm.POOR),
    (0.7, LinguisticTerm.MEDIUM),
    (0.9, LinguisticTerm.GOOD),
)


def concession_rate(round_num: int, max_rounds: int, gamma: float, discount_factor: float) -> float:
    """Fraction ``alpha(t)`` of the range conceded at ``round_num``.

    ``gamma <= 1`` gives a polynomial (Boulware-like) curve, ``gamma > 1`` an
    exponential (Conceder-like) one. ``alpha`` equals the discount factor in
    round 1 and 1.0 at the deadline.
    """

    if round_num > max_rounds:
        round_num = max_rounds
    if round_num <= 0:
        round_num = 1
    time_ratio = 1.0 if max_rounds <= 1 else (round_num - 1) / (max_rounds - 1)
    time_ratio = float(np.clip(time_ratio, 0.0, 1.0))

    b_k = float(np.clip(discount_factor, 0.001, 0.999))
    gamma = max(0.001, gamma)

    if gamma <= 1.0:
        return b_k + (1 - b_k) * math.pow(time_ratio, 1.0 / gamma)
    if time_ratio == 1.0:
        return 1.0
    return math.exp(math.pow(1.0 - time_ratio, gamma) * math.log(b_k))


def conceded_value(alpha: float, params: IssueParameters, role: Role) -> float:
    """New value of a quantitative issue after conceding ``alpha`` of its range.

    Buyers give up benefit (max towards min) and accept more cost (min towards
    max); sellers move the opposite way.
    """

    lo, hi = params.min_value, params.max_value
    span = hi - lo
    if abs(span) < 1e-9:
        return lo

    if role == Role.BUYER:
        if params.kind == IssueKind.BENEFIT:
            value = hi - alpha * span
        else:
            value = lo + alpha * span
    else:
        if params.kind == IssueKind.BENEFIT:
            value = lo + alpha * span
        else:
            value = hi - alpha * span
    return float(np.clip(value, lo, hi))


def conceded_term(alpha: float, role: Role) -> LinguisticTerm:
    """Linguistic value after conceding ``alpha`` on a qualitative issue.

    Buyers start at "very good" and move down; sellers start at "very poor"
    and move up.
    """

    target = 1.0 - alpha if role == Role.BUYER else alpha
    for upper, term in _TERM_BREAKPOINTS:
        if target < upper:
            return term
    return LinguisticTerm.VERY_GOOD


def next_offer(reference_bid: Bid, round_num: int, max_rounds: int, gamma: float,
               discount_factor: float, issue_params: Mapping[str, IssueParameters],
               role: Role) -> Bid:
    """Generate the bid ``role`` would send at ``round_num``.

    Args:
        reference_bid: Bid supplying the bundle, quantities and issue names.
        round_num: One-based current round.
        max_rounds: Negotiation deadline.
        gamma: Concession shape.
        discount_factor: Initial concession ``b_k``.
        issue_params: Issue ranges from the conceding party's point of view.
        role: Conceding party.

    Returns:
        Bid: A new bid; issues without parameters keep their reference values.
    """

    alpha = concession_rate(round_num, max_rounds, gamma, discount_factor)
    issues: List[Issue] = []
    for issue in reference_bid.issues:
        params = issue_params.get(issue.key)
        if params is None:
            logger.info(f"No parameters for issue '{issue.name}' during concession; keeping {issue.value!r}")
            issues.append(issue)
            continue
        if params.kind == IssueKind.QUALITATIVE:
            new_value = conceded_term(alpha, role).value
        else:
            new_value = conceded_value(alpha, params, role)
        issues.append(Issue(name=issue.name, value=new_value))
    return reference_bid.with_issues(issues)
