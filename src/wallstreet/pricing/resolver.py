"""Price Resolver — final price per ticker for a settlement date.

Resolution order for each ticker:

1. the injected :class:`~wallstreet.pricing.cache.PriceCache`
2. the persisted close-price snapshot for the date
3. the remote quote API, when a client is configured
4. a deterministic synthetic price

The result is total: every requested ticker gets a price.  When any price
had to be synthesized the resolution's data quality drops to
``ESTIMATED_PRICES`` so the game can be flagged.  A remote close from more
than ``stale_after_days`` before the target date is used as is but flags
the game ``STALE_PRICES``.
"""

from __future__ import annotations

import datetime  # noqa: TCH003
import random
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

import structlog

from wallstreet.api.client import QuoteAPIError
from wallstreet.config.models import PriceConfig
from wallstreet.monitoring.metrics import metrics
from wallstreet.pricing.catalog import BASE_PRICE_BY_MARKET, market_for_ticker

if TYPE_CHECKING:
    from wallstreet.api.client import QuoteAPIClient
    from wallstreet.pricing.cache import PriceCache

logger = structlog.get_logger("wallstreet.pricing.resolver")


class PriceSource(StrEnum):
    """Where a resolved price came from."""

    CACHE = "cache"
    SNAPSHOT = "snapshot"
    REMOTE = "remote"
    SYNTHETIC = "synthetic"


class DataQuality(StrEnum):
    """Game-level data quality flag."""

    OK = "OK"
    STALE_PRICES = "STALE_PRICES"
    ESTIMATED_PRICES = "ESTIMATED_PRICES"


class SnapshotStore(Protocol):
    """Read access to persisted daily close prices."""

    def get_close_price(self, ticker: str, date: datetime.date) -> float | None: ...


@dataclass(frozen=True)
class PriceResolution:
    """Resolved prices for one settlement."""

    target_date: datetime.date
    prices: dict[str, float] = field(default_factory=dict)
    sources: dict[str, PriceSource] = field(default_factory=dict)
    stale: frozenset[str] = frozenset()

    @property
    def synthesized(self) -> list[str]:
        return sorted(t for t, s in self.sources.items() if s == PriceSource.SYNTHETIC)

    @property
    def data_quality(self) -> DataQuality:
        if self.synthesized:
            return DataQuality.ESTIMATED_PRICES
        if self.stale:
            return DataQuality.STALE_PRICES
        return DataQuality.OK


class PriceResolver:
    """Resolves end-of-period prices, never failing for lack of data."""

    def __init__(
        self,
        snapshot_store: SnapshotStore,
        cache: PriceCache | None = None,
        quote_client: QuoteAPIClient | None = None,
        config: PriceConfig | None = None,
    ) -> None:
        self._snapshots = snapshot_store
        self._cache = cache
        self._quotes = quote_client
        self._config = config or PriceConfig()

    def resolve(
        self,
        tickers: Iterable[str],
        target_date: datetime.date,
        anchors: Mapping[str, float] | None = None,
    ) -> PriceResolution:
        """Resolve a price for each unique ticker.

        Args:
            tickers: Tickers to price; duplicates are ignored.
            target_date: Settlement date.
            anchors: Optional known reference prices (the game's frozen
                initial prices) used to keep synthetic prices plausible.
        """
        anchors = anchors or {}
        prices: dict[str, float] = {}
        sources: dict[str, PriceSource] = {}
        stale: set[str] = set()

        for ticker in sorted(set(tickers)):
            price, source, is_stale = self._resolve_one(ticker, target_date, anchors.get(ticker))
            prices[ticker] = price
            sources[ticker] = source
            if is_stale:
                stale.add(ticker)

        resolution = PriceResolution(target_date=target_date, prices=prices, sources=sources, stale=frozenset(stale))
        if resolution.stale:
            metrics.increment("prices_stale", len(resolution.stale))
            logger.warning("stale_prices_used", date=target_date.isoformat(), tickers=sorted(resolution.stale))
        if resolution.synthesized:
            metrics.increment("prices_synthesized", len(resolution.synthesized))
            logger.warning(
                "prices_synthesized",
                date=target_date.isoformat(),
                tickers=resolution.synthesized,
            )
        logger.info(
            "prices_resolved",
            date=target_date.isoformat(),
            ticker_count=len(prices),
            data_quality=resolution.data_quality.value,
        )
        return resolution

    def _resolve_one(
        self,
        ticker: str,
        target_date: datetime.date,
        anchor: float | None,
    ) -> tuple[float, PriceSource, bool]:
        if self._cache is not None:
            cached = self._cache.get(ticker, target_date)
            if cached is not None:
                return cached, PriceSource.CACHE, False

        snapshot = self._snapshots.get_close_price(ticker, target_date)
        if snapshot is not None and snapshot > 0:
            self._remember(ticker, target_date, snapshot)
            return snapshot, PriceSource.SNAPSHOT, False

        if self._quotes is not None:
            try:
                remote = self._quotes.fetch_close(ticker, target_date)
            except QuoteAPIError as e:
                logger.warning("remote_price_unavailable", ticker=ticker, error=str(e), status=e.status_code)
                remote = None
            if remote is not None and remote.price > 0:
                age_days = (target_date - remote.date).days
                if age_days > self._config.stale_after_days:
                    logger.warning(
                        "remote_price_stale",
                        ticker=ticker,
                        close_date=remote.date.isoformat(),
                        age_days=age_days,
                    )
                    return remote.price, PriceSource.REMOTE, True
                self._remember(ticker, target_date, remote.price)
                return remote.price, PriceSource.REMOTE, False

        return self.synthesize(ticker, target_date, anchor), PriceSource.SYNTHETIC, False

    def _remember(self, ticker: str, target_date: datetime.date, price: float) -> None:
        # Synthetic and stale prices are never cached so real data can replace them later.
        if self._cache is not None:
            self._cache.put(ticker, target_date, price)

    def synthesize(self, ticker: str, target_date: datetime.date, anchor: float | None = None) -> float:
        """Deterministic fallback price for *ticker* on *target_date*.

        Seeded by market segment, ticker and date, so retries of the same
        settlement produce the same value.
        """
        market = market_for_ticker(ticker)
        base = anchor if anchor is not None and anchor > 0 else BASE_PRICE_BY_MARKET[market]
        rng = random.Random(f"{market.value}:{ticker}:{target_date.isoformat()}")
        variance = rng.uniform(self._config.synthetic_min_variance, self._config.synthetic_max_variance)
        return max(round(base * (1 + variance), 2), 0.01)
