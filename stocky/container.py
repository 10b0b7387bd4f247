from dataclasses import dataclass
from typing import Optional

from .config import Settings
from .db.session import Database
from .feed import PriceUpdater
from .prices import PriceStore
from .pricing import PriceSource, RandomPriceSource, StorePriceSource
from .service import RewardService
from .users import UserDirectory
from .valuation import ValuationEngine


@dataclass
class Services:
    db: Database
    prices: PriceStore
    price_source: PriceSource
    rewards: RewardService
    valuation: ValuationEngine
    feed: Optional[PriceUpdater] = None
    issue_timeout_seconds: Optional[float] = None
    history_window_days: int = 30


def build_services(settings: Settings, db: Optional[Database] = None) -> Services:
    db = db or Database(settings.database_url, echo=settings.database_echo)
    db.create_schema()
    prices = PriceStore(db)

    # the feed always needs a live quote, even when rewards price off the store
    feed_source = RandomPriceSource()
    price_source: PriceSource = StorePriceSource(prices) if settings.price_source == "store" else feed_source

    rewards = RewardService(
        db,
        price_source,
        users=UserDirectory(auto_provision=settings.auto_provision_users),
        fee_rate=settings.fee_rate,
    )
    feed = None
    if settings.price_feed_enabled:
        feed = PriceUpdater(prices, feed_source, settings.price_symbols, settings.price_update_interval_seconds)

    return Services(
        db=db,
        prices=prices,
        price_source=price_source,
        rewards=rewards,
        valuation=ValuationEngine(db, prices),
        feed=feed,
        issue_timeout_seconds=settings.issue_timeout_seconds,
        history_window_days=settings.history_window_days,
    )
