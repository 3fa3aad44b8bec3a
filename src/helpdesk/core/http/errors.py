from __future__ import annotations


class HelpdeskHTTPError(RuntimeError):
    """Base error for shared HTTP client operations."""


class HelpdeskHTTPStatusError(HelpdeskHTTPError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class HelpdeskHTTPNetworkError(HelpdeskHTTPError):
    """Raised when the transport fails before a response arrives."""


class HelpdeskHTTPTimeoutError(HelpdeskHTTPNetworkError):
    pass
