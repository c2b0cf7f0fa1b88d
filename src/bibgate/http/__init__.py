# ABOUTME: Outbound HTTP layer for bibgate.
# ABOUTME: Exports the fetcher, its option/result types, and the fetch error hierarchy.

from bibgate.http.document import Document
from bibgate.http.errors import (
    FetchError,
    FetchTimeoutError,
    ResponseSizeError,
    StatusError,
    UnsupportedFormatError,
)
from bibgate.http.fetcher import Fetcher, FetchOptions, FetchResult, HttpFetcher, ResponseType
from bibgate.http.mimetype import MimeType

__all__ = [
    "Document",
    "FetchError",
    "FetchOptions",
    "FetchResult",
    "FetchTimeoutError",
    "Fetcher",
    "HttpFetcher",
    "MimeType",
    "ResponseSizeError",
    "ResponseType",
    "StatusError",
    "UnsupportedFormatError",
]
