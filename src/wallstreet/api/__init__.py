"""External market-data API clients."""

from wallstreet.api.client import DailyClose, QuoteAPIClient, QuoteAPIError, RetryPolicy

__all__ = ["DailyClose", "QuoteAPIClient", "QuoteAPIError", "RetryPolicy"]
