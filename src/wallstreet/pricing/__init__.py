"""Final-price resolution."""

from wallstreet.pricing.cache import PriceCache
from wallstreet.pricing.catalog import Market, market_for_ticker
from wallstreet.pricing.resolver import DataQuality, PriceResolution, PriceResolver, PriceSource

__all__ = [
    "DataQuality",
    "Market",
    "PriceCache",
    "PriceResolution",
    "PriceResolver",
    "PriceSource",
    "market_for_ticker",
]
