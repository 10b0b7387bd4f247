"""
Stock Reward Ledger

This package provides:
- Fractional-share reward grants recorded as balanced double-entry postings
- At-most-once issuance keyed by a caller-supplied reference identifier
- An append-only price time series with as-of lookup
- Current and day-by-day historical portfolio valuation
"""

from .errors import (
    DuplicateEntryError,
    DuplicateRewardError,
    ImbalanceError,
    PriceNotFoundError,
    StockyError,
    StorageFailureError,
    UpstreamPriceUnavailableError,
)
from .ledger import Ledger
from .models import (
    AccountKind,
    AssetKind,
    CreateRewardRequest,
    Direction,
    RewardEvent,
    RewardResponse,
)
from .prices import PriceStore
from .service import RewardService
from .valuation import ValuationEngine

__all__ = [
    "AccountKind",
    "AssetKind",
    "CreateRewardRequest",
    "Direction",
    "RewardEvent",
    "RewardResponse",
    "Ledger",
    "PriceStore",
    "RewardService",
    "ValuationEngine",
    "StockyError",
    "DuplicateEntryError",
    "DuplicateRewardError",
    "ImbalanceError",
    "PriceNotFoundError",
    "StorageFailureError",
    "UpstreamPriceUnavailableError",
]
