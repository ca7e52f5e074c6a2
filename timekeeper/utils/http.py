"""
HTTP client utilities for calls to the BaaS.
"""
from __future__ import annotations
import httpx


def create_http_client(
    base_url: str = "",
    timeout: float = 10.0,
    user_agent: str = "timekeeper/1.0",
    **kwargs
) -> httpx.AsyncClient:
    """
    Create a configured async HTTP client with:
    - Timeout defaults (10s overall, 5s connect)
    - Custom user-agent
    - No transport retries; callers retry at request level
    """
    headers = kwargs.pop("headers", {})
    headers.setdefault("User-Agent", user_agent)

    timeout_config = httpx.Timeout(timeout, connect=5.0)
    transport = kwargs.pop("transport", None) or httpx.AsyncHTTPTransport(retries=0)

    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout_config,
        headers=headers,
        transport=transport,
        **kwargs
    )
