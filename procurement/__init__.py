from .models import Bid, Issue, IssueKind, NegotiationOutcome, ProductBundle, Allocation
from .config import ConfigurationError, ProcurementConfig, load_config
from .agents import BuyerNegotiator, SellerNegotiator
from .winner import WinnerDeterminationSolver
from .orchestrator import ProcurementCoordinator, run_procurement

__all__ = [
    "Bid",
    "Issue",
    "IssueKind",
    "NegotiationOutcome",
    "ProductBundle",
    "Allocation",
    "ConfigurationError",
    "ProcurementConfig",
    "load_config",
    "BuyerNegotiator",
    "SellerNegotiator",
    "WinnerDeterminationSolver",
    "ProcurementCoordinator",
    "run_procurement",
]
