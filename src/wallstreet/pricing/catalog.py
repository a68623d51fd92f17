"""Market segment lookup for tickers in play."""

from __future__ import annotations

from enum import StrEnum


class Market(StrEnum):
    NASDAQ = "NASDAQ"
    NYSE = "NYSE"
    CAC40 = "CAC40"


# Synthetic-price anchor per market, used when no frozen initial price is known
BASE_PRICE_BY_MARKET: dict[Market, float] = {
    Market.CAC40: 150.0,
    Market.NASDAQ: 200.0,
    Market.NYSE: 200.0,
}

# Euronext Paris tickers carry the ``.PA`` suffix; everything else defaults to NASDAQ.
NYSE_TICKERS = frozenset(
    {
        "BA", "BAC", "BRK.B", "C", "CAT", "CVX", "DIS", "GE", "GS", "HD",
        "IBM", "JNJ", "JPM", "KO", "MA", "MCD", "MMM", "MS", "NKE", "PFE",
        "PG", "T", "UNH", "V", "VZ", "WMT", "XOM",
    }
)  # fmt: skip


def market_for_ticker(ticker: str) -> Market:
    """Return the market segment a ticker trades on."""
    symbol = ticker.strip().upper()
    if symbol.endswith(".PA"):
        return Market.CAC40
    if symbol in NYSE_TICKERS:
        return Market.NYSE
    return Market.NASDAQ
