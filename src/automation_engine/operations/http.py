"""HTTP operations backed by `requests`."""

from __future__ import annotations

import logging
from typing import Any

import requests

from automation_engine.registry import operation, param

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


def _decode(response: requests.Response) -> Any:
    content_type = response.headers.get("Content-Type", "")
    if "json" in content_type:
        return response.json()
    return response.text


@operation(
    "utilities.http.get",
    description="Make an HTTP GET request; JSON responses are decoded",
    params=(
        param("url", "string", "Absolute URL"),
        param("headers", "object", "Request headers", required=False),
        param("query", "object", "Query string parameters", required=False),
        param("timeout", "number", "Timeout in seconds", required=False, default=DEFAULT_TIMEOUT_SECONDS),
    ),
    example='get({ url: "https://api.example.com/data", headers: { Authorization: "Bearer ..." } })',
)
def http_get(
    url: str,
    headers: dict[str, Any] | None = None,
    query: dict[str, Any] | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Any:
    logger.debug("HTTP GET", extra={"url": url})
    response = requests.get(url, headers=headers, params=query, timeout=timeout)
    response.raise_for_status()
    return _decode(response)


@operation(
    "utilities.http.post",
    description="Make an HTTP POST request with a JSON body; JSON responses are decoded",
    params=(
        param("url", "string", "Absolute URL"),
        param("body", "any", "JSON body", required=False),
        param("headers", "object", "Request headers", required=False),
        param("timeout", "number", "Timeout in seconds", required=False, default=DEFAULT_TIMEOUT_SECONDS),
    ),
)
def http_post(
    url: str,
    body: Any = None,
    headers: dict[str, Any] | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Any:
    logger.debug("HTTP POST", extra={"url": url})
    response = requests.post(url, json=body, headers=headers, timeout=timeout)
    response.raise_for_status()
    return _decode(response)
