"""Shared utilities and base classes for services layer.

- HTTPClient: Base class for outbound API clients (single attempt, bounded timeout)
- HTTPClientError: Exception for HTTP client failures
"""

from .http_client import HTTPClient, HTTPClientError

__all__ = [
    "HTTPClient",
    "HTTPClientError",
]
