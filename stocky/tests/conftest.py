"""Shared fixtures: a fresh in-memory database per test and a frozen clock."""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from stocky.db.session import Database
from stocky.prices import PriceStore
from stocky.pricing import StaticPriceSource
from stocky.service import RewardService
from stocky.valuation import ValuationEngine

FIXED_NOW = datetime(2024, 3, 10, 12, 0, 0)


def frozen_clock(moment: datetime = FIXED_NOW):
    return lambda: moment


@pytest.fixture
def db():
    database = Database("sqlite://")
    database.create_schema()
    yield database
    database.dispose()


@pytest.fixture
def price_store(db):
    return PriceStore(db)


@pytest.fixture
def price_source():
    return StaticPriceSource({"TCS": Decimal("1000"), "INFY": Decimal("1500")})


@pytest.fixture
def service(db, price_source):
    return RewardService(db, price_source, clock=frozen_clock())


@pytest.fixture
def valuation(db, price_store):
    return ValuationEngine(db, price_store, clock=frozen_clock())


@pytest.fixture
def count_rows(db):
    def _count(model, *criteria) -> int:
        stmt = select(func.count()).select_from(model)
        if criteria:
            stmt = stmt.where(*criteria)
        with db.session() as session:
            return session.scalar(stmt)
    return _count
