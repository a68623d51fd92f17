"""Chart-API quote client with bounded timeouts and retries.

Only used to look up end-of-period closing prices.  Every call is bounded:
the HTTP client carries an explicit timeout and :class:`RetryPolicy` caps
the number of attempts, so a slow or failing upstream turns into a
:class:`QuoteAPIError` instead of stalling settlement.
"""

from __future__ import annotations

import contextlib
import datetime
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
import structlog

if TYPE_CHECKING:
    from wallstreet.config.models import PriceConfig

logger = structlog.get_logger("wallstreet.api.client")

# Days fetched before the target date to cover weekends and market holidays
LOOKBACK_DAYS = 5


@dataclass(frozen=True)
class DailyClose:
    """A daily closing price and the trading day it belongs to."""

    price: float
    date: datetime.date


class QuoteAPIError(Exception):
    """Raised when the quote API cannot produce an answer."""

    def __init__(self, message: str, status_code: int = 0, ticker: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.ticker = ticker


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff with jitter.

    Delay before retry ``n`` (0-based) is ``min(base * 2**n, max_delay)``
    plus up to ``jitter_ratio`` of that delay.
    """

    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 8.0
    jitter_ratio: float = 0.2

    @classmethod
    def from_config(cls, config: PriceConfig) -> RetryPolicy:
        return cls(
            max_attempts=config.max_attempts,
            base_delay_seconds=config.backoff_base_seconds,
            max_delay_seconds=config.backoff_max_seconds,
            jitter_ratio=config.backoff_jitter_ratio,
        )

    def delay_for(self, attempt: int, rng: random.Random | None = None) -> float:
        delay = min(self.base_delay_seconds * 2**attempt, self.max_delay_seconds)
        jitter = (rng or random).random() * delay * self.jitter_ratio
        return delay + jitter


class QuoteAPIClient:
    """Fetches historical closing prices from a Yahoo-style chart endpoint."""

    RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

    def __init__(
        self,
        config: PriceConfig,
        http_client: httpx.Client | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._config = config
        self._retry = retry_policy or RetryPolicy.from_config(config)
        self._sleep = sleep
        self._rng = rng
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(
            timeout=config.request_timeout_seconds,
            follow_redirects=True,
            headers={"User-Agent": config.user_agent},
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> QuoteAPIClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ── Retry Logic ──────────────────────────────────────────────────────

    def _get_with_retry(self, ticker: str, url: str, params: dict[str, Any]) -> dict[str, Any]:
        """GET a JSON document, retrying transient failures per the retry policy."""
        last_attempt = self._retry.max_attempts - 1
        for attempt in range(self._retry.max_attempts):
            try:
                response = self._client.get(url, params=params)
            except httpx.RequestError as e:
                if attempt < last_attempt:
                    wait = self._retry.delay_for(attempt, self._rng)
                    logger.warning(
                        "quote_request_retrying",
                        ticker=ticker,
                        error=str(e),
                        attempt=attempt + 1,
                        wait_seconds=round(wait, 3),
                    )
                    self._sleep(wait)
                    continue
                raise QuoteAPIError(f"Quote request for {ticker} failed: {e}", ticker=ticker) from e

            if response.status_code in self.RETRYABLE_STATUS_CODES and attempt < last_attempt:
                wait = self._retry.delay_for(attempt, self._rng)
                if response.status_code == 429:
                    retry_after = response.headers.get("Retry-After")
                    if retry_after:
                        with contextlib.suppress(ValueError):
                            wait = min(float(retry_after), self._retry.max_delay_seconds)
                logger.warning(
                    "quote_request_retrying",
                    ticker=ticker,
                    status=response.status_code,
                    attempt=attempt + 1,
                    wait_seconds=round(wait, 3),
                )
                self._sleep(wait)
                continue

            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise QuoteAPIError(
                    f"Quote request for {ticker} returned HTTP {response.status_code}",
                    status_code=response.status_code,
                    ticker=ticker,
                ) from e
            try:
                payload: dict[str, Any] = response.json()
            except ValueError as e:
                raise QuoteAPIError(f"Quote response for {ticker} is not JSON", ticker=ticker) from e
            return payload

        # Should not reach here, but just in case
        raise QuoteAPIError(f"Quote request for {ticker} failed after {self._retry.max_attempts} attempts")

    # ── Prices ───────────────────────────────────────────────────────────

    def fetch_close(self, ticker: str, target_date: datetime.date) -> DailyClose | None:
        """Return the daily close nearest to *target_date*, or None if the API has no data.

        Raises:
            QuoteAPIError: the request failed after all retries.
        """
        start = datetime.datetime.combine(
            target_date - datetime.timedelta(days=LOOKBACK_DAYS), datetime.time(), tzinfo=datetime.UTC
        )
        end = datetime.datetime.combine(
            target_date + datetime.timedelta(days=1), datetime.time(), tzinfo=datetime.UTC
        )
        url = f"{self._config.chart_base_url.rstrip('/')}/{quote(ticker, safe='')}"
        params = {
            "period1": int(start.timestamp()),
            "period2": int(end.timestamp()),
            "interval": "1d",
        }
        payload = self._get_with_retry(ticker, url, params)

        target_ts = datetime.datetime.combine(target_date, datetime.time(21, 0), tzinfo=datetime.UTC).timestamp()
        close = parse_chart_close(payload, target_ts)
        if close is None:
            logger.warning("quote_no_data", ticker=ticker, date=target_date.isoformat())
        else:
            logger.debug(
                "quote_fetched",
                ticker=ticker,
                date=target_date.isoformat(),
                close_date=close.date.isoformat(),
                price=close.price,
            )
        return close


def parse_chart_close(payload: dict[str, Any], target_ts: float) -> DailyClose | None:
    """Pick the close whose timestamp is nearest *target_ts* from a chart payload."""
    results = (payload.get("chart") or {}).get("result") or []
    if not results:
        return None
    result = results[0] or {}
    timestamps = result.get("timestamp") or []
    quotes = (result.get("indicators") or {}).get("quote") or [{}]
    closes = (quotes[0] or {}).get("close") or []

    best: tuple[float, float] | None = None
    best_diff = float("inf")
    for ts, close in zip(timestamps, closes, strict=False):
        if close is None or close <= 0:
            continue
        diff = abs(ts - target_ts)
        if diff < best_diff:
            best_diff = diff
            best = (ts, float(close))
    if best is None:
        return None
    ts, close = best
    return DailyClose(price=round(close, 2), date=datetime.datetime.fromtimestamp(ts, tz=datetime.UTC).date())
