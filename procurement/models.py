"""
Core data models for the procurement negotiation system.
Defines bundles, issues, bids, proposals and negotiation outcomes.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


# ===== ENUMS =====

class Role(str, Enum):
    """Side of a bilateral negotiation."""
    BUYER = "buyer"
    SELLER = "seller"


class IssueKind(str, Enum):
    """How values of an issue are ranked."""
    COST = "cost"  # Lower is better
    BENEFIT = "benefit"  # Higher is better
    QUALITATIVE = "qualitative"  # Linguistic term


class LinguisticTerm(str, Enum):
    """Ordered five-term scale used by qualitative issues."""
    VERY_POOR = "very poor"
    POOR = "poor"
    MEDIUM = "medium"
    GOOD = "good"
    VERY_GOOD = "very good"

    @classmethod
    def parse(cls, text: str) -> Optional["LinguisticTerm"]:
        """Resolve ``text`` to a term, tolerating case, underscores and missing spaces."""
        if not isinstance(text, str):
            return None
        compact = text.replace("_", " ").strip().lower().replace(" ", "")
        for term in cls:
            if term.value.replace(" ", "") == compact:
                return term
        return None


class TerminationReason(str, Enum):
    """Why a bilateral negotiation ended."""
    ACCEPTED = "accepted"  # We accepted the counterparty's offer
    COUNTERPARTY_ACCEPTED = "counterparty_accepted"
    TIMEOUT = "timeout"
    DEADLINE = "deadline"
    NO_REQUEST = "no_request"
    CONFIGURATION = "configuration"
    ERROR = "error"


# ===== BIDS =====

class ProductBundle(BaseModel):
    """0/1 inclusion flags, one per product of the catalog."""
    model_config = ConfigDict(frozen=True)

    products: Tuple[int, ...]

    @field_validator("products")
    @classmethod
    def validate_flags(cls, v):
        if any(flag not in (0, 1) for flag in v):
            raise ValueError("bundle flags must be 0 or 1")
        return v

    def __len__(self) -> int:
        return len(self.products)

    def includes(self, index: int) -> bool:
        return 0 <= index < len(self.products) and self.products[index] == 1

    def as_array(self) -> np.ndarray:
        return np.array(self.products, dtype=bool)

    @property
    def label(self) -> str:
        """Compact string form, e.g. ``"1100"``."""
        return "".join(str(flag) for flag in self.products)


class Issue(BaseModel):
    """A negotiable attribute carrying either a number or a linguistic term."""
    model_config = ConfigDict(frozen=True)

    name: str
    value: Union[float, str, None]

    @property
    def key(self) -> str:
        """Case-insensitive lookup key used against weights and parameters."""
        return self.name.strip().lower()


class IssueParameters(BaseModel):
    """Range and ranking of one issue from one party's point of view."""
    model_config = ConfigDict(frozen=True)

    min_value: float = 0.0
    max_value: float = 0.0
    kind: IssueKind

    @model_validator(mode="before")
    @classmethod
    def _order_range(cls, data):
        if not isinstance(data, dict):
            return data
        kind = data.get("kind")
        lo, hi = data.get("min_value"), data.get("max_value")
        if (
            kind not in (IssueKind.QUALITATIVE, IssueKind.QUALITATIVE.value)
            and lo is not None
            and hi is not None
            and float(lo) > float(hi)
        ):
            logger.warning(f"IssueParameters created with min ({lo}) > max ({hi}); swapping them")
            data = {**data, "min_value": hi, "max_value": lo}
        return data

    @property
    def range(self) -> float:
        return self.max_value - self.min_value


class TriangularFuzzyNumber(BaseModel):
    """TFN ``(m1, m2, m3)`` with non-decreasing components."""
    model_config = ConfigDict(frozen=True)

    m1: float
    m2: float
    m3: float

    @model_validator(mode="after")
    def _check_order(self):
        if not (self.m1 <= self.m2 <= self.m3):
            raise ValueError("fuzzy number components must be non-decreasing")
        return self

    def defuzzify(self) -> float:
        """Graded mean integration representation."""
        return (self.m1 + 4 * self.m2 + self.m3) / 6.0


class FuzzyTermTable(BaseModel):
    """Maps each linguistic term to a triangular fuzzy number for one role."""
    model_config = ConfigDict(frozen=True)

    terms: Dict[LinguisticTerm, TriangularFuzzyNumber]

    @field_validator("terms", mode="before")
    @classmethod
    def _coerce_terms(cls, v):
        if not isinstance(v, dict):
            return v
        coerced = {}
        for raw_term, tfn in v.items():
            term = raw_term if isinstance(raw_term, LinguisticTerm) else LinguisticTerm.parse(raw_term)
            if term is None:
                raise ValueError(f"unknown linguistic term '{raw_term}'")
            if isinstance(tfn, (list, tuple)):
                if len(tfn) != 3:
                    raise ValueError(f"fuzzy number for '{raw_term}' needs 3 values, got {len(tfn)}")
                tfn = {"m1": tfn[0], "m2": tfn[1], "m3": tfn[2]}
            coerced[term] = tfn
        return coerced

    def lookup(self, text: str) -> Optional[TriangularFuzzyNumber]:
        term = LinguisticTerm.parse(text)
        if term is None:
            return None
        return self.terms.get(term)

    def is_complete(self) -> bool:
        return all(term in self.terms for term in LinguisticTerm)


class Bid(BaseModel):
    """One concrete offer: a bundle, its quantities and the issue values."""
    model_config = ConfigDict(frozen=True)

    bundle: ProductBundle
    issues: Tuple[Issue, ...]
    quantities: Tuple[int, ...]

    @model_validator(mode="after")
    def _check_alignment(self):
        if len(self.quantities) != len(self.bundle):
            raise ValueError("quantities must be aligned with the product bundle")
        return self

    def issue(self, name: str) -> Optional[Issue]:
        key = name.strip().lower()
        for issue in self.issues:
            if issue.key == key:
                return issue
        return None

    def with_issues(self, issues: List[Issue]) -> "Bid":
        """Return a new bid over the same bundle and quantities."""
        return Bid(bundle=self.bundle, issues=tuple(issues), quantities=self.quantities)

    def describe(self) -> str:
        values = ", ".join(
            f"{i.name}={i.value:.2f}" if isinstance(i.value, (int, float)) else f"{i.name}={i.value}"
            for i in self.issues
        )
        return f"[{self.bundle.label}] {values}"


class Proposal(BaseModel):
    """Payload of a PROPOSE message; currently always carries a single bid."""
    model_config = ConfigDict(frozen=True)

    bids: Tuple[Bid, ...] = Field(default_factory=tuple)

    @classmethod
    def of(cls, bid: Bid) -> "Proposal":
        return cls(bids=(bid,))

    @property
    def primary_bid(self) -> Optional[Bid]:
        return self.bids[0] if self.bids else None


# ===== OUTCOMES =====

class NegotiationOutcome(BaseModel):
    """Result of one bilateral negotiation, created once at its terminal state."""
    model_config = ConfigDict(frozen=True)

    success: bool
    counterparty: str
    final_bid: Optional[Bid] = None
    utility: float = 0.0
    reason: TerminationReason
    rounds_taken: int = 0

    @classmethod
    def agreement(cls, counterparty: str, bid: Bid, utility: float,
                  reason: TerminationReason, rounds_taken: int) -> "NegotiationOutcome":
        return cls(success=True, counterparty=counterparty, final_bid=bid,
                   utility=utility, reason=reason, rounds_taken=rounds_taken)

    @classmethod
    def failure(cls, counterparty: str, reason: TerminationReason,
                rounds_taken: int = 0) -> "NegotiationOutcome":
        return cls(success=False, counterparty=counterparty, reason=reason,
                   rounds_taken=rounds_taken)

    def summary(self) -> str:
        if self.success:
            return f"✅ Agreement with {self.counterparty} in {self.rounds_taken} rounds. " \
                   f"Utility: {self.utility:.3f}"
        return f"❌ No agreement with {self.counterparty} after {self.rounds_taken} rounds. " \
               f"Reason: {self.reason.value}"


class Allocation(BaseModel):
    """Winning subset chosen by the winner determination solver."""
    winners: List[NegotiationOutcome] = Field(default_factory=list)
    demand: Tuple[int, ...]
    feasible: bool = False  # An empty winner list is feasible only for an all-zero demand

    @property
    def total_utility(self) -> float:
        return float(sum(o.utility for o in self.winners))

    def summary(self) -> str:
        if not self.feasible:
            return "❌ No combination of bids could satisfy the demand."
        if not self.winners:
            return "✅ Nothing to procure; demand is empty."
        names = ", ".join(o.counterparty for o in self.winners)
        return f"✅ Winners: {names}. Total utility: {self.total_utility:.3f}"
