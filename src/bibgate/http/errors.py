# ABOUTME: Exception hierarchy for outbound HTTP fetches.
# ABOUTME: Callers catch FetchError and branch on the concrete subclass.


class FetchError(Exception):
    """Raised when an outbound HTTP request cannot produce a usable response."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(message)
        self.url = url


class StatusError(FetchError):
    """The upstream server answered with a status outside the accepted set."""

    def __init__(self, url: str, status: int, body: str = "") -> None:
        super().__init__(url, f"HTTP request to {url} rejected with status {status}")
        self.status = status
        self.body = body


class FetchTimeoutError(FetchError, TimeoutError):
    """The request exceeded its configured deadline."""

    def __init__(self, url: str, seconds: float) -> None:
        super().__init__(url, f"HTTP request has timed out after {int(seconds * 1000)}ms")
        self.seconds = seconds


class ResponseSizeError(FetchError):
    """The response body grew past the configured maximum size."""

    def __init__(self, url: str) -> None:
        super().__init__(url, f"{url} response exceeds max size")


class UnsupportedFormatError(FetchError):
    """The response had no Content-Type, or one the caller does not accept."""
