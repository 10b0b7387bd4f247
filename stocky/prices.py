"""Append-only price time series with as-of lookup."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select

from .db.session import Database
from .db.tables import StockPrice
from .errors import PriceNotFoundError
from .models import PricePoint
from .templates import quantize_price
from .timeutil import to_utc_naive, utcnow

logger = logging.getLogger(__name__)


class PriceStore:
    def __init__(self, db: Database):
        self.db = db

    def record_price(self, symbol: str, price: Decimal, timestamp: Optional[datetime] = None) -> PricePoint:
        row = StockPrice(
            stock_symbol=symbol,
            price=quantize_price(price),
            timestamp=to_utc_naive(timestamp) if timestamp else utcnow(),
        )
        with self.db.transaction() as session:
            session.add(row)
        logger.debug(f"Recorded {symbol} @ {row.price}", extra={"symbol": symbol})
        return PricePoint.model_validate(row)

    def latest_price_as_of(self, symbol: str, timestamp: Optional[datetime] = None) -> Decimal:
        """Price of the newest observation at or before ``timestamp``.

        Several observations sharing the newest timestamp resolve to the one
        recorded last. Raises PriceNotFoundError when nothing qualifies.
        """
        as_of = to_utc_naive(timestamp) if timestamp else utcnow()
        with self.db.session() as session:
            price = session.scalar(
                select(StockPrice.price)
                .where(StockPrice.stock_symbol == symbol, StockPrice.timestamp <= as_of)
                .order_by(StockPrice.timestamp.desc(), StockPrice.id.desc())
                .limit(1)
            )
        if price is None:
            raise PriceNotFoundError(symbol, as_of)
        return price

    def latest_prices_as_of(self, symbols: Iterable[str], timestamp: Optional[datetime] = None) -> dict[str, Decimal]:
        prices = {}
        for symbol in symbols:
            try:
                prices[symbol] = self.latest_price_as_of(symbol, timestamp)
            except PriceNotFoundError:
                logger.debug(f"No price for {symbol} as of {timestamp}", extra={"symbol": symbol})
        return prices

    def history(self, symbol: str, limit: int = 100) -> list[PricePoint]:
        with self.db.session() as session:
            rows = session.scalars(
                select(StockPrice)
                .where(StockPrice.stock_symbol == symbol)
                .order_by(StockPrice.timestamp.desc(), StockPrice.id.desc())
                .limit(limit)
            ).all()
        return [PricePoint.model_validate(r) for r in rows]
