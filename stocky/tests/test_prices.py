"""
Unit Tests for Prices

Tests cover:
1. As-of lookup in the PriceStore
2. Price sources
3. The periodic PriceUpdater
"""

import threading
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from stocky.errors import PriceNotFoundError, UpstreamPriceUnavailableError
from stocky.feed import PriceUpdater
from stocky.models import PricePoint
from stocky.pricing import PriceSource, RandomPriceSource, StaticPriceSource, StorePriceSource

T0 = datetime(2024, 1, 1, 9, 0, 0)


class TestPriceStore:
    """Tests for PriceStore as-of semantics."""

    def test_latest_at_or_before_timestamp(self, price_store):
        price_store.record_price("X", Decimal("10"), T0 + timedelta(days=1))
        price_store.record_price("X", Decimal("20"), T0 + timedelta(days=5))

        assert price_store.latest_price_as_of("X", T0 + timedelta(days=3)) == Decimal("10")
        assert price_store.latest_price_as_of("X", T0 + timedelta(days=5)) == Decimal("20")
        assert price_store.latest_price_as_of("X", T0 + timedelta(days=9)) == Decimal("20")

    def test_nothing_before_first_observation(self, price_store):
        price_store.record_price("X", Decimal("10"), T0 + timedelta(days=1))

        with pytest.raises(PriceNotFoundError) as exc_info:
            price_store.latest_price_as_of("X", T0)
        assert exc_info.value.symbol == "X"

    def test_same_timestamp_resolves_to_last_recorded(self, price_store):
        price_store.record_price("X", Decimal("10"), T0)
        price_store.record_price("X", Decimal("11"), T0)

        assert price_store.latest_price_as_of("X", T0) == Decimal("11")

    def test_symbols_are_independent(self, price_store):
        price_store.record_price("X", Decimal("10"), T0)

        with pytest.raises(PriceNotFoundError):
            price_store.latest_price_as_of("Y", T0)

    def test_aware_timestamps_are_stored_as_utc(self, price_store):
        ist = timezone(timedelta(hours=5, minutes=30))
        point = price_store.record_price("X", Decimal("10"), datetime(2024, 1, 1, 14, 30, tzinfo=ist))

        assert point.timestamp == T0
        assert price_store.latest_price_as_of("X", T0) == Decimal("10")

    def test_recorded_price_reads_back_unchanged(self, price_store):
        """Prices are kept to four decimal places; the returned point matches later reads."""
        point = price_store.record_price("X", Decimal("10.00005"), T0)

        assert point.price == Decimal("10.0001")
        assert price_store.latest_price_as_of("X", T0) == point.price
        assert price_store.history("X")[0].price == point.price

    def test_latest_prices_omits_unpriced_symbols(self, price_store):
        price_store.record_price("X", Decimal("10"), T0)

        prices = price_store.latest_prices_as_of(["X", "Y"], T0)
        assert prices == {"X": Decimal("10")}

    def test_history_is_newest_first(self, price_store):
        for day, price in enumerate(["10", "12", "11"]):
            price_store.record_price("X", Decimal(price), T0 + timedelta(days=day))

        history = price_store.history("X", limit=2)
        assert [p.price for p in history] == [Decimal("11"), Decimal("12")]


class TestPriceSources:
    def test_random_source_stays_in_bounds(self):
        source = RandomPriceSource(Decimal("100"), Decimal("200"), seed=7)

        quotes = [source.quote("X") for _ in range(50)]
        assert all(Decimal("100") <= q <= Decimal("200") for q in quotes)
        assert all(q == q.quantize(Decimal("0.01")) for q in quotes)

    def test_random_source_is_reproducible_with_seed(self):
        a = RandomPriceSource(seed=3)
        b = RandomPriceSource(seed=3)
        assert [a.quote("X") for _ in range(5)] == [b.quote("X") for _ in range(5)]

    def test_random_source_rejects_inverted_bounds(self):
        with pytest.raises(ValueError):
            RandomPriceSource(Decimal("10"), Decimal("5"))

    def test_static_source_missing_symbol(self):
        source = StaticPriceSource({"TCS": Decimal("1000")})

        with pytest.raises(UpstreamPriceUnavailableError):
            source.quote("INFY")

        source.update_price("INFY", Decimal("1500"))
        assert source.quote("INFY") == Decimal("1500")

    def test_store_source_reads_latest_recorded_price(self, price_store):
        price_store.record_price("TCS", Decimal("990"), T0)
        price_store.record_price("TCS", Decimal("1010"), T0 + timedelta(hours=1))

        assert StorePriceSource(price_store).quote("TCS") == Decimal("1010")

    def test_sources_satisfy_protocol(self, price_store):
        assert isinstance(RandomPriceSource(), PriceSource)
        assert isinstance(StaticPriceSource({}), PriceSource)
        assert isinstance(StorePriceSource(price_store), PriceSource)


class RecordingStore:
    """Stands in for PriceStore; collects record_price calls."""

    def __init__(self):
        self.recorded = []
        self.lock = threading.Lock()

    def record_price(self, symbol, price, timestamp=None):
        with self.lock:
            self.recorded.append((symbol, price))
        return PricePoint(stock_symbol=symbol, price=price, timestamp=timestamp or T0)


class TestPriceUpdater:
    """Tests for the periodic price feed."""

    def test_run_once_records_every_symbol(self, price_store):
        source = StaticPriceSource({"TCS": Decimal("1000"), "INFY": Decimal("1500")})
        updater = PriceUpdater(price_store, source, ["TCS", "INFY"])

        recorded = updater.run_once()

        assert [p.stock_symbol for p in recorded] == ["TCS", "INFY"]
        assert price_store.latest_price_as_of("INFY") == Decimal("1500")

    def test_failing_symbol_is_skipped(self, price_store):
        source = StaticPriceSource({"TCS": Decimal("1000")})
        updater = PriceUpdater(price_store, source, ["WIPRO", "TCS"])

        recorded = updater.run_once()

        assert [p.stock_symbol for p in recorded] == ["TCS"]
        with pytest.raises(PriceNotFoundError):
            price_store.latest_price_as_of("WIPRO")

    def test_start_runs_immediately_and_stop_joins(self):
        store = RecordingStore()
        updater = PriceUpdater(store, StaticPriceSource({"TCS": Decimal("1000")}), ["TCS"], interval_seconds=3600)

        updater.start()
        try:
            deadline = time.monotonic() + 5
            while not store.recorded and time.monotonic() < deadline:
                time.sleep(0.01)
            assert updater.is_running
        finally:
            updater.stop()

        assert store.recorded == [("TCS", Decimal("1000"))]
        assert not updater.is_running

    def test_default_symbols(self):
        updater = PriceUpdater(RecordingStore(), RandomPriceSource(seed=1))
        assert updater.symbols == ["RELIANCE", "TCS", "INFY", "HDFCBANK"]
