"""Reference-data provider clients."""

from basalt.clients.base import BaseAsyncClient, DataProviderError, RateLimiter
from basalt.clients.fmp import FMPClient

__all__ = ["BaseAsyncClient", "DataProviderError", "FMPClient", "RateLimiter"]
