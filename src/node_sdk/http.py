"""
HTTP helper - Timeout-bounded outbound requests for nodes.

Every call carries an explicit timeout. Transport failures and non-2xx
responses surface as NodeApiError so the executor reports them as a
plain node error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests
from requests.exceptions import RequestException, Timeout

from .basenode import NodeApiError


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
BODY_METHODS = ("POST", "PUT", "PATCH")


@dataclass
class HttpResult:
    """Decoded HTTP response."""
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def _decode(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def send_request(
    method: str,
    url: str,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    body: Any = None,
    timeout: float = DEFAULT_TIMEOUT,
    bearer_token: Optional[str] = None,
    raise_for_status: bool = True,
    node_id: Optional[str] = None,
) -> HttpResult:
    """
    Make an HTTP request with timeout enforcement.

    Raises:
        NodeApiError: On timeout, transport failure, or (when
            raise_for_status) a non-2xx status
    """
    method = method.upper()
    request_headers = dict(headers or {})
    if bearer_token:
        request_headers["Authorization"] = f"Bearer {bearer_token}"

    logger.debug(f"{method} {url} (timeout={timeout}s)")
    try:
        response = requests.request(
            method=method,
            url=url,
            headers=request_headers,
            params=params,
            json=body if method in BODY_METHODS else None,
            timeout=timeout,
        )
    except Timeout as e:
        raise NodeApiError(f"Request timed out after {timeout}s", node_id=node_id) from e
    except RequestException as e:
        raise NodeApiError(f"Request failed: {e}", node_id=node_id) from e

    result = HttpResult(
        status_code=response.status_code,
        headers=dict(response.headers),
        body=_decode(response),
    )
    if raise_for_status and not result.ok:
        raise NodeApiError(
            f"HTTP {response.status_code}: {response.reason}",
            node_id=node_id,
            status_code=response.status_code,
            response_body=response.text[:1000] if response.text else None,
        )
    return result


__all__ = ["BODY_METHODS", "DEFAULT_TIMEOUT", "HttpResult", "send_request"]
