from .client import ApiError, SyncApiClient

__all__ = ["ApiError", "SyncApiClient"]
