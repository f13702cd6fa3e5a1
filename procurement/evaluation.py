"""
Utility evaluation of bids against one party's private preferences.

Quantitative issues are normalized against their range and mapped through a
risk curve; qualitative issues are defuzzified from the party's triangular
fuzzy number table. Nothing here raises on bad issue data: problems are
logged and the issue contributes zero utility.
"""

import logging
import math
from typing import Dict, Mapping, Optional

import numpy as np

from .models import Bid, FuzzyTermTable, Issue, IssueKind, IssueParameters, Role

logger = logging.getLogger(__name__)

# Utility assigned to the least preferred end of a quantitative range
V_MIN = 0.1
_EPS = 1e-9


def qualitative_utility(term: str, table: FuzzyTermTable) -> float:
    """Defuzzify a linguistic term with graded mean integration.

    Args:
        term: Linguistic value such as ``"good"`` or ``"very_poor"``.
        table: Fuzzy term table of the evaluating role.

    Returns:
        float: ``(m1 + 4*m2 + m3) / 6`` for the term's fuzzy number, or ``0.0``
        when the term is unknown.
    """

    tfn = table.lookup(term)
    if tfn is None:
        logger.warning(f"Unknown linguistic term '{term}'. Returning utility 0.")
        return 0.0
    return tfn.defuzzify()


def risk_adjusted_utility(ratio: float, risk_beta: float, v_min: float = V_MIN) -> float:
    """Map a satisfaction ratio in ``[0, 1]`` to utility under a risk attitude.

    ``risk_beta == 1`` is linear, ``< 1`` polynomial (risk-seeking) and ``> 1``
    exponential (risk-averse). Every regime yields ``v_min`` at ratio 0 and
    ``1`` at ratio 1.
    """

    if risk_beta <= 0:
        logger.warning(f"Invalid risk parameter ({risk_beta}). Using risk neutral (beta=1.0).")
        risk_beta = 1.0
    ratio = float(np.clip(ratio, 0.0, 1.0))
    v_min = float(np.clip(v_min, 0.001, 0.999))

    if risk_beta == 1.0:
        return v_min + (1 - v_min) * ratio
    if risk_beta < 1.0:
        if ratio == 0.0:
            return v_min
        return v_min + (1 - v_min) * math.pow(ratio, 1.0 / risk_beta)
    if ratio == 1.0:
        return 1.0
    return math.exp(math.pow(1 - ratio, risk_beta) * math.log(v_min))


def quantitative_utility(value: float, params: IssueParameters, risk_beta: float) -> float:
    """Normalize a numeric issue value and apply the risk curve."""

    lo, hi = params.min_value, params.max_value
    if abs(hi - lo) < _EPS:
        if params.kind == IssueKind.COST and value <= lo:
            return 1.0
        if params.kind == IssueKind.BENEFIT and value >= lo:
            return 1.0
        return V_MIN

    value = float(np.clip(value, lo, hi))
    if params.kind == IssueKind.COST:
        ratio = (hi - value) / (hi - lo)
    else:
        ratio = (value - lo) / (hi - lo)
    return risk_adjusted_utility(ratio, risk_beta)


def issue_utility(issue: Issue, params: IssueParameters, risk_beta: float,
                  table: FuzzyTermTable) -> float:
    """Normalized utility of a single issue in ``[0, 1]``."""

    value = issue.value
    if value is None:
        logger.warning(f"Issue '{issue.name}' has no value. Returning utility 0.")
        return 0.0

    if params.kind == IssueKind.QUALITATIVE:
        if not isinstance(value, str):
            logger.error(f"Expected a linguistic term for qualitative issue '{issue.name}', got {type(value).__name__}")
            return 0.0
        return qualitative_utility(value, table)

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        logger.error(f"Expected a number for quantitative issue '{issue.name}', got {type(value).__name__}")
        return 0.0
    return quantitative_utility(float(value), params, risk_beta)


def score_bid(bid: Optional[Bid], weights: Mapping[str, float],
              issue_params: Mapping[str, IssueParameters], risk_beta: float,
              table: FuzzyTermTable) -> float:
    """Weighted utility of ``bid`` clamped to ``[0, 1]``.

    Issues with zero weight or without parameters are skipped.
    """

    if bid is None:
        logger.error("Cannot calculate utility for a missing bid.")
        return 0.0

    total = 0.0
    for issue in bid.issues:
        weight = weights.get(issue.key, 0.0)
        if abs(weight) < _EPS:
            continue
        params = issue_params.get(issue.key)
        if params is None:
            continue
        total += weight * issue_utility(issue, params, risk_beta, table)
    return float(np.clip(total, 0.0, 1.0))


class UtilityEvaluator:
    """Scores bids from the buyer's or the seller's perspective.

    Holds one fuzzy term table per role; everything else is supplied per call
    so the evaluator itself carries no negotiation state.
    """

    def __init__(self, fuzzy_tables: Dict[Role, FuzzyTermTable]):
        self.fuzzy_tables = dict(fuzzy_tables)

    def score(self, role: Role, bid: Bid, weights: Mapping[str, float],
              issue_params: Mapping[str, IssueParameters], risk_beta: float) -> float:
        """Compute the utility of ``bid`` for ``role``.

        Args:
            role: Perspective selecting the fuzzy term table.
            bid: Bid to evaluate.
            weights: Issue name to importance weight.
            issue_params: Issue name to range and kind.
            risk_beta: Risk attitude of the evaluating party.

        Returns:
            float: Utility in ``[0.0, 1.0]``.

        Side Effects:
            Logs warnings for unknown terms and invalid parameters.
        """

        table = self.fuzzy_tables.get(role)
        if table is None:
            logger.warning(f"No fuzzy term table for role '{role.value}'; qualitative issues score 0.")
            table = FuzzyTermTable(terms={})
        return score_bid(bid, weights, issue_params, risk_beta, table)
