"""API schemas package."""

from .requests import RetryRequest
from .responses import ItemsResponse, UploadStartResponse

__all__ = [
    # Requests
    "RetryRequest",
    # Responses
    "ItemsResponse",
    "UploadStartResponse",
]
