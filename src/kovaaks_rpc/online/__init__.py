from __future__ import annotations

from .api import BASE_URL, RemoteScoreClient
from .cache import CACHE_TTL_SECONDS, OnlineScoreCache, OnlineSnapshot
from .validation import ScenarioValidationCache

__all__ = [
    "BASE_URL",
    "CACHE_TTL_SECONDS",
    "OnlineScoreCache",
    "OnlineSnapshot",
    "RemoteScoreClient",
    "ScenarioValidationCache",
]
