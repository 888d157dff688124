"""
Tradier client errors.
Authentication errors are fatal to startup; stream errors are raised only
for misuse of the connection (sending while not open).
"""

from __future__ import annotations
from typing import Optional


class TradierError(Exception):
    """Base class for all client errors."""


class RequestFailedError(TradierError):
    """Session request returned a non-2xx status or never got a response."""

    def __init__(self, body: str, status: Optional[int] = None):
        self.body = body
        self.status = status
        if status is None:
            super().__init__(f"Session request failed: {body}")
        else:
            super().__init__(f"Session request failed ({status}): {body}")


class MalformedResponseError(TradierError):
    """Session response body is not the expected {"stream": {"sessionid": ...}} shape."""

    def __init__(self, message: str, body: str = ""):
        self.body = body
        super().__init__(message)


class InvalidStateError(TradierError):
    """Operation requires an open stream connection."""
