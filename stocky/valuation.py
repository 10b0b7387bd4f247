"""Portfolio valuation: holdings from journal postings joined to as-of prices.

Holdings are the signed sum of postings on the user-stock-asset account
(debit adds, credit subtracts) for entries whose reference belongs to one of
the user's rewards. Assets without a known price are left out of a valuation
instead of failing it.

Historical values are recomputed for every day from stored state on each
call, so late or backfilled prices show up in the next read.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy import case, func, select

from .db.session import Database
from .db.tables import Account, JournalEntry, JournalPosting, Reward
from .models import (
    AccountKind,
    AssetKind,
    Direction,
    HistoryPoint,
    PortfolioItem,
    RewardEvent,
    StockStat,
    UserStats,
)
from .prices import PriceStore
from .templates import quantize_money
from .timeutil import end_of_day, start_of_day, to_utc_naive, utcnow

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class ValuationEngine:
    def __init__(self, db: Database, prices: PriceStore, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.prices = prices
        self.clock = clock

    def holdings(self, user_id: int, as_of: Optional[datetime] = None) -> dict[str, Decimal]:
        signed_amount = case(
            (JournalPosting.direction == Direction.DEBIT.value, JournalPosting.amount),
            else_=-JournalPosting.amount,
        )
        stmt = (
            select(JournalPosting.stock_symbol, func.sum(signed_amount))
            .join(JournalEntry, JournalPosting.journal_entry_id == JournalEntry.id)
            .join(Reward, Reward.reference_id == JournalEntry.reference_id)
            .join(Account, Account.id == JournalPosting.account_id)
            .where(
                Reward.user_id == user_id,
                Account.kind == AccountKind.USER_STOCK_ASSET.value,
                JournalPosting.asset_type == AssetKind.STOCK.value,
            )
            .group_by(JournalPosting.stock_symbol)
        )
        if as_of is not None:
            stmt = stmt.where(JournalEntry.posted_at <= to_utc_naive(as_of))

        with self.db.session() as session:
            rows = session.execute(stmt).all()
        return {symbol: Decimal(qty) for symbol, qty in rows if qty}

    def current_portfolio_value(self, user_id: int) -> Decimal:
        return self._value_as_of(user_id, self.clock())

    def portfolio(self, user_id: int) -> list[PortfolioItem]:
        now = self.clock()
        holdings = self.holdings(user_id, now)
        prices = self.prices.latest_prices_as_of(holdings, now)
        return [
            PortfolioItem(
                stock_symbol=symbol,
                total_quantity=qty,
                current_price=prices[symbol],
                value_inr=quantize_money(qty * prices[symbol]),
            )
            for symbol, qty in sorted(holdings.items())
            if symbol in prices
        ]

    def historical_portfolio_value(self, user_id: int, window_days: int) -> list[HistoryPoint]:
        """One point per day in [today - window_days, today], oldest first.

        Days before the first reward are reported with value 0.
        """
        if window_days < 0:
            raise ValueError(f"window_days must be non-negative, got {window_days}")
        today = self.clock().date()
        points = []
        for offset in range(window_days, -1, -1):
            day = today - timedelta(days=offset)
            points.append(HistoryPoint(date=day, value=self._value_as_of(user_id, end_of_day(day))))
        return points

    def holdings_today(self, user_id: int) -> list[StockStat]:
        start, end = self._today_bounds()
        with self.db.session() as session:
            rows = session.execute(
                select(Reward.stock_symbol, func.sum(Reward.quantity))
                .where(Reward.user_id == user_id, Reward.awarded_at >= start, Reward.awarded_at <= end)
                .group_by(Reward.stock_symbol)
                .order_by(Reward.stock_symbol)
            ).all()
        return [StockStat(stock_symbol=symbol, total_quantity=Decimal(qty)) for symbol, qty in rows]

    def today_rewards(self, user_id: int) -> list[RewardEvent]:
        start, end = self._today_bounds()
        with self.db.session() as session:
            rewards = session.scalars(
                select(Reward)
                .where(Reward.user_id == user_id, Reward.awarded_at >= start, Reward.awarded_at <= end)
                .order_by(Reward.awarded_at)
            ).all()
        return [RewardEvent.model_validate(r) for r in rewards]

    def user_stats(self, user_id: int) -> UserStats:
        return UserStats(
            total_shares_today=self.holdings_today(user_id),
            portfolio_value=self.current_portfolio_value(user_id),
        )

    def _value_as_of(self, user_id: int, as_of: datetime) -> Decimal:
        holdings = self.holdings(user_id, as_of)
        if not holdings:
            return quantize_money(ZERO)
        prices = self.prices.latest_prices_as_of(holdings, as_of)
        missing = set(holdings) - set(prices)
        if missing:
            logger.debug(f"Excluding unpriced assets {sorted(missing)} as of {as_of}", extra={"user_id": user_id})
        total = sum((qty * prices[symbol] for symbol, qty in holdings.items() if symbol in prices), ZERO)
        return quantize_money(total)

    def _today_bounds(self) -> tuple[datetime, datetime]:
        today = self.clock().date()
        return start_of_day(today), end_of_day(today)
