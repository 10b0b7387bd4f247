"""
Price sources consumed by the reward workflow and the price feed.

Classes:
- PriceSource: protocol with a synchronous quote(symbol) -> Decimal
- RandomPriceSource: stand-in feed drawing prices between two bounds
- StaticPriceSource: fixed prices, for tests and demos
- StorePriceSource: the latest price already recorded in the PriceStore

All prices are in INR.
"""

import random
from decimal import Decimal
from typing import Dict, Optional, Protocol, runtime_checkable

from .errors import UpstreamPriceUnavailableError
from .prices import PriceStore
from .templates import quantize_money


@runtime_checkable
class PriceSource(Protocol):
    def quote(self, symbol: str) -> Decimal:
        """Current unit price, or raise on failure."""
        ...


class RandomPriceSource:
    """Uniform random prices in [low, high]. Seedable for reproducible runs."""

    def __init__(self, low: Decimal = Decimal("1000"), high: Decimal = Decimal("3000"), seed: Optional[int] = None):
        if low > high:
            raise ValueError(f"low ({low}) must not exceed high ({high})")
        self.low = Decimal(low)
        self.high = Decimal(high)
        self._rng = random.Random(seed)

    def quote(self, symbol: str) -> Decimal:
        span = float(self.high - self.low)
        return quantize_money(self.low + Decimal(str(self._rng.random() * span)))

    def __repr__(self):
        return f"RandomPriceSource({self.low}..{self.high})"


class StaticPriceSource:
    def __init__(self, prices: Dict[str, Decimal]):
        self.prices = {k: Decimal(v) for k, v in prices.items()}

    def quote(self, symbol: str) -> Decimal:
        if symbol not in self.prices:
            raise UpstreamPriceUnavailableError(symbol, "no static price configured")
        return self.prices[symbol]

    def update_price(self, symbol: str, price: Decimal) -> None:
        self.prices[symbol] = Decimal(price)

    def __repr__(self):
        return f"StaticPriceSource({len(self.prices)} prices)"


class StorePriceSource:
    def __init__(self, store: PriceStore):
        self.store = store

    def quote(self, symbol: str) -> Decimal:
        return self.store.latest_price_as_of(symbol)
