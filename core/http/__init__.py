"""
HTTP Client Module

requests-based HTTP client with bounded retry and linear backoff.
"""

from .client import HttpClient, HttpError, HttpResponse

__all__ = [
    "HttpClient",
    "HttpError",
    "HttpResponse",
]
