from __future__ import annotations


class KovaaksRpcError(Exception):
    pass


class OnlineSyncError(KovaaksRpcError):
    """Remote score listing could not be fetched at all."""


class PresenceError(KovaaksRpcError):
    pass


__all__ = [
    "KovaaksRpcError",
    "OnlineSyncError",
    "PresenceError",
]
