"""
Periodic price ingestion.

PriceUpdater quotes a fixed universe of symbols and appends one observation
per symbol to the PriceStore: once on start, then every interval. A failing
symbol is logged and skipped; the rest of the round still runs.

Usage:
    updater = PriceUpdater(store, RandomPriceSource(), ["TCS", "INFY"], 3600)
    updater.start()
    ...
    updater.stop()
"""

import logging
import threading
from typing import Optional

from .errors import StockyError
from .models import PricePoint
from .prices import PriceStore
from .pricing import PriceSource

logger = logging.getLogger(__name__)

DEFAULT_SYMBOLS = ["RELIANCE", "TCS", "INFY", "HDFCBANK"]


class PriceUpdater:
    def __init__(
        self,
        store: PriceStore,
        source: PriceSource,
        symbols: Optional[list[str]] = None,
        interval_seconds: float = 3600,
    ):
        self.store = store
        self.source = source
        self.symbols = symbols or DEFAULT_SYMBOLS
        self.interval_seconds = interval_seconds

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> list[PricePoint]:
        logger.info("Running price update")
        recorded = []
        for symbol in self.symbols:
            try:
                price = self.source.quote(symbol)
                recorded.append(self.store.record_price(symbol, price))
            except StockyError as e:
                logger.error(f"Failed to update price for {symbol}: {e.message}",
                             extra={"symbol": symbol, "error_code": e.code})
            except Exception as e:
                logger.error(f"Failed to update price for {symbol}: {e}", extra={"symbol": symbol})
        logger.info(f"Price update completed: {len(recorded)}/{len(self.symbols)} symbols")
        return recorded

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="price-updater", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(self.interval_seconds)
