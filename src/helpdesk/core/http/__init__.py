from .client import get_http_client, send
from .errors import HelpdeskHTTPError, HelpdeskHTTPNetworkError, HelpdeskHTTPStatusError, HelpdeskHTTPTimeoutError

__all__ = [
    "get_http_client",
    "send",
    "HelpdeskHTTPError",
    "HelpdeskHTTPNetworkError",
    "HelpdeskHTTPStatusError",
    "HelpdeskHTTPTimeoutError",
]
