from __future__ import annotations

import os
import threading

import httpx

from .errors import HelpdeskHTTPNetworkError, HelpdeskHTTPStatusError, HelpdeskHTTPTimeoutError

_DEFAULT_TIMEOUT_S = 15.0
_DEFAULT_CONNECT_TIMEOUT_S = 5.0
_DEFAULT_USER_AGENT = "helpdesk-agent/1.0"

_client: httpx.Client | None = None
_client_lock = threading.Lock()


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def build_timeout(total_s: float | None = None) -> httpx.Timeout:
    connect_s = max(0.1, _get_float_env("HELPDESK_HTTP_CONNECT_TIMEOUT_S", _DEFAULT_CONNECT_TIMEOUT_S))
    read_total = max(0.1, total_s if total_s is not None else _get_float_env("HELPDESK_HTTP_TIMEOUT_S", _DEFAULT_TIMEOUT_S))
    return httpx.Timeout(read_total, connect=min(connect_s, read_total))


def get_http_client() -> httpx.Client:
    global _client
    if _client is not None:
        return _client

    with _client_lock:
        if _client is None:
            user_agent = os.getenv("HELPDESK_HTTP_USER_AGENT", _DEFAULT_USER_AGENT)
            _client = httpx.Client(timeout=build_timeout(), headers={"User-Agent": user_agent})
    return _client


def send(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    json: object | None = None,
    timeout_s: float | None = None,
) -> httpx.Response:
    """Single attempt request. Retrying a failed agent run is the job queue's concern."""
    client = get_http_client()
    try:
        response = client.request(
            method,
            url,
            headers=headers or None,
            json=json,
            timeout=build_timeout(timeout_s) if timeout_s is not None else None,
        )
    except httpx.TimeoutException as exc:
        raise HelpdeskHTTPTimeoutError(f"HTTP request timed out for {url}") from exc
    except httpx.HTTPError as exc:
        raise HelpdeskHTTPNetworkError(f"HTTP request error for {url}: {exc.__class__.__name__}") from exc

    if not 200 <= response.status_code < 300:
        raise HelpdeskHTTPStatusError(
            f"HTTP status {response.status_code} for {url}",
            status_code=response.status_code,
        )
    return response
