"""
Preference and scenario configuration for procurement negotiations.

A scenario is loaded once from YAML into immutable pydantic models and then
passed explicitly to every party; nothing reads configuration globally.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .models import (
    Bid,
    FuzzyTermTable,
    Issue,
    IssueKind,
    IssueParameters,
    LinguisticTerm,
    ProductBundle,
    Role,
)

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Missing or malformed preference configuration; the party cannot negotiate."""


# ===== PARTY PREFERENCES =====

class PartyPreferences(BaseModel):
    """Private negotiation preferences of one party."""
    model_config = ConfigDict(frozen=True)

    acceptance_threshold: float = Field(..., ge=0, le=1)
    risk_beta: float  # <= 0 is tolerated and treated as risk neutral
    gamma: float
    weights: Dict[str, float]
    issues: Dict[str, IssueParameters]
    fuzzy_terms: FuzzyTermTable

    @field_validator("weights")
    @classmethod
    def validate_weights(cls, v):
        normalized = {}
        for name, weight in v.items():
            if weight < 0:
                raise ValueError(f"weight for '{name}' must be non-negative")
            normalized[name.strip().lower()] = float(weight)
        return normalized

    @field_validator("issues", mode="before")
    @classmethod
    def _parse_issues(cls, v):
        if not isinstance(v, dict):
            return v
        parsed = {}
        for name, raw in v.items():
            if isinstance(raw, dict):
                raw = dict(raw)
                if "min" in raw:
                    raw["min_value"] = raw.pop("min")
                if "max" in raw:
                    raw["max_value"] = raw.pop("max")
            parsed[str(name).strip().lower()] = raw
        return parsed

    @field_validator("fuzzy_terms", mode="before")
    @classmethod
    def _parse_fuzzy_terms(cls, v):
        if isinstance(v, dict) and "terms" not in v:
            return {"terms": v}
        return v

    def check_complete(self, role: Role) -> None:
        """Verify every weighted issue can actually be evaluated.

        Raises:
            ConfigurationError: If a weighted issue has no parameters, or
                qualitative issues are weighted but the fuzzy table lacks terms.
        """

        for name, weight in self.weights.items():
            if weight == 0:
                continue
            params = self.issues.get(name)
            if params is None:
                raise ConfigurationError(f"{role.value}: weighted issue '{name}' has no parameters")
            if params.kind == IssueKind.QUALITATIVE and not self.fuzzy_terms.is_complete():
                missing = [t.value for t in LinguisticTerm if t not in self.fuzzy_terms.terms]
                raise ConfigurationError(f"{role.value}: fuzzy terms missing for {', '.join(missing)}")


class NegotiationSettings(BaseModel):
    """Protocol timing shared by both roles."""
    model_config = ConfigDict(frozen=True)

    max_rounds: int = Field(10, ge=1)
    discount_factor: float = Field(0.1, ge=0, le=1)
    response_timeout: float = Field(15.0, gt=0)
    request_timeout: float = Field(30.0, gt=0)
    poll_interval: float = Field(0.5, gt=0)


class SellerProfile(BaseModel):
    """A supplier: its offered bundle, quantities and opening issue values."""
    model_config = ConfigDict(frozen=True)

    name: str
    bundle: ProductBundle
    quantities: Tuple[int, ...]
    initial_offer: Dict[str, Union[float, str]]
    preferences: Optional[PartyPreferences] = None

    @field_validator("bundle", mode="before")
    @classmethod
    def _parse_bundle(cls, v):
        if isinstance(v, (list, tuple)):
            return {"products": tuple(v)}
        if isinstance(v, str):
            return {"products": tuple(int(c) for c in v)}
        return v

    @model_validator(mode="after")
    def _check_quantities(self):
        if len(self.quantities) != len(self.bundle):
            raise ValueError(f"seller '{self.name}': quantities must match bundle length")
        if not self.initial_offer:
            raise ValueError(f"seller '{self.name}': initial_offer is required")
        return self

    def initial_bid(self) -> Bid:
        """Opening bid built from the configured best-for-self issue values."""
        issues = [Issue(name=name, value=value) for name, value in self.initial_offer.items()]
        return Bid(bundle=self.bundle, issues=tuple(issues), quantities=self.quantities)


# ===== SCENARIO =====

class ProcurementConfig(BaseModel):
    """Complete procurement scenario: demand, preferences and suppliers."""
    model_config = ConfigDict(frozen=True)

    catalog: List[str] = Field(default_factory=list)
    demand: Optional[Tuple[int, ...]] = None
    negotiation: NegotiationSettings = Field(default_factory=NegotiationSettings)
    buyer: PartyPreferences
    seller: PartyPreferences
    sellers: List[SellerProfile]

    @field_validator("sellers")
    @classmethod
    def validate_sellers(cls, v):
        if not v:
            raise ValueError("at least one seller is required")
        names = [s.name for s in v]
        if len(set(names)) != len(names):
            raise ValueError("seller names must be unique")
        return v

    @model_validator(mode="before")
    @classmethod
    def _default_demand(cls, data):
        if not isinstance(data, dict) or data.get("demand") is not None:
            return data
        size = len(data.get("catalog") or [])
        if not size:
            sellers = data.get("sellers") or []
            first = sellers[0] if sellers else None
            bundle = first.get("bundle") if isinstance(first, dict) else None
            size = len(bundle) if bundle else 0
        return {**data, "demand": tuple([1] * size)}

    @model_validator(mode="after")
    def _check_dimensions(self):
        if any(flag not in (0, 1) for flag in self.demand):
            raise ValueError("demand flags must be 0 or 1")
        if self.catalog and len(self.catalog) != len(self.demand):
            raise ValueError("demand must have one flag per catalog product")
        for seller in self.sellers:
            if len(seller.bundle) != len(self.demand):
                raise ValueError(f"seller '{seller.name}': bundle length must match demand length")
        return self

    def seller_preferences(self, profile: SellerProfile) -> PartyPreferences:
        return profile.preferences or self.seller


def parse_config(data: dict) -> ProcurementConfig:
    """Validate a raw mapping into a :class:`ProcurementConfig`.

    Raises:
        ConfigurationError: If required keys are missing or malformed.
    """

    if not isinstance(data, dict):
        raise ConfigurationError("configuration must be a mapping")
    try:
        return ProcurementConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid procurement configuration:\n{exc}") from exc


def load_config(config_file: Union[str, Path]) -> ProcurementConfig:
    """Load a procurement scenario from a YAML file."""
    path = Path(config_file)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigurationError(f"Cannot read configuration file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Cannot parse configuration file {path}: {exc}") from exc
    logger.info(f"Loaded procurement configuration from {path}")
    return parse_config(data)


# ===== EXAMPLE SCENARIO =====

DEFAULT_FUZZY_TERMS = {
    "very poor": [0.0, 0.0, 0.25],
    "poor": [0.0, 0.25, 0.5],
    "medium": [0.25, 0.5, 0.75],
    "good": [0.5, 0.75, 1.0],
    "very good": [0.75, 1.0, 1.0],
}


def create_example_config() -> dict:
    """Three suppliers bidding for four products."""
    return {
        "catalog": ["P1", "P2", "P3", "P4"],
        "demand": [1, 1, 1, 1],
        "negotiation": {
            "max_rounds": 10,
            "discount_factor": 0.1,
            "response_timeout": 15.0,
            "request_timeout": 30.0,
            "poll_interval": 0.5,
        },
        "buyer": {
            "acceptance_threshold": 0.7,
            "risk_beta": 1.0,
            "gamma": 0.5,
            "weights": {"price": 0.4, "quality": 0.3, "delivery": 0.15, "service": 0.15},
            "issues": {
                "price": {"min": 50, "max": 60, "kind": "cost"},
                "delivery": {"min": 1, "max": 10, "kind": "cost"},
                "quality": {"kind": "qualitative"},
                "service": {"kind": "qualitative"},
            },
            "fuzzy_terms": DEFAULT_FUZZY_TERMS,
        },
        "seller": {
            "acceptance_threshold": 0.8,
            "risk_beta": 1.0,
            "gamma": 2.0,
            "weights": {"price": 0.5, "quality": 0.2, "delivery": 0.15, "service": 0.15},
            "issues": {
                "price": {"min": 50, "max": 60, "kind": "cost"},
                "delivery": {"min": 1, "max": 10, "kind": "cost"},
                "quality": {"kind": "qualitative"},
                "service": {"kind": "qualitative"},
            },
            "fuzzy_terms": {
                "very poor": [0.75, 1.0, 1.0],
                "poor": [0.5, 0.75, 1.0],
                "medium": [0.25, 0.5, 0.75],
                "good": [0.0, 0.25, 0.5],
                "very good": [0.0, 0.0, 0.25],
            },
        },
        "sellers": [
            {
                "name": "s1",
                "bundle": [1, 1, 0, 0],
                "quantities": [1000, 1000, 0, 0],
                "initial_offer": {"price": 60, "quality": "very poor", "delivery": 10, "service": "very poor"},
            },
            {
                "name": "s2",
                "bundle": [0, 0, 1, 1],
                "quantities": [0, 0, 2000, 2000],
                "initial_offer": {"price": 60, "quality": "very poor", "delivery": 10, "service": "very poor"},
            },
            {
                "name": "s3",
                "bundle": [1, 0, 1, 0],
                "quantities": [1000, 0, 2000, 0],
                "initial_offer": {"price": 60, "quality": "very poor", "delivery": 10, "service": "very poor"},
            },
        ],
    }
