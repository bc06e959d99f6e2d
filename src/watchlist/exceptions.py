"""Watchlist Exception Hierarchy.

Local validation failures in the store are reported through return
values, not exceptions. These types cover the remaining failure modes:
the share server, cancelled share calls, and the persistence layer.
"""

from typing import Any, Dict, Optional


class WatchlistError(Exception):
    """Base exception for the watchlist package."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ShareApiError(WatchlistError):
    """Uniform error raised for any failed share-server call.

    ``status`` is the HTTP status, or 0 when no response was received.
    """

    def __init__(
        self,
        message: str,
        status: int = 500,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status = status
        self.request_id = request_id
        self.details = details

    @property
    def is_not_found(self) -> bool:
        return self.status == 404

    @property
    def is_network_error(self) -> bool:
        return self.status == 0

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": self.message, "status": self.status}
        if self.request_id:
            body["requestId"] = self.request_id
        if self.details:
            body["details"] = self.details
        return body

    def __repr__(self) -> str:
        return (
            f"ShareApiError(message={self.message!r}, status={self.status}, "
            f"request_id={self.request_id!r})"
        )


class ShareCancelledError(WatchlistError):
    """Raised when a share call was cancelled through its token."""

    def __init__(self, message: str = "Share request cancelled"):
        super().__init__(message)


class PersistenceError(WatchlistError):
    """Raised when stored watchlist state cannot be read or written."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path
