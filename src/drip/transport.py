"""
HTTP transport for the Drip SDK.

Sends one request over a pooled ``httpx.Client`` and hands back the raw
status code and body. Failures where no response was received are turned
into :class:`DripTimeoutError` or :class:`DripNetworkError` here; HTTP error
statuses are left for the caller to classify.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .errors import DripNetworkError, DripTimeoutError

logger = logging.getLogger("drip.transport")


@dataclass(frozen=True)
class RawResponse:
    """Status code and body bytes of a completed HTTP exchange."""

    status_code: int
    content: bytes


class Transport:
    """
    Thin wrapper around ``httpx.Client``.

    The underlying connection pool is owned by this object and released by
    :meth:`close`. Responses are fully read before :meth:`send` returns, so
    no connection is held between calls.
    """

    def __init__(
        self,
        headers: dict[str, str],
        timeout: float,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    def send(
        self,
        method: str,
        url: str,
        content: bytes | None = None,
        params: dict[str, Any] | None = None,
    ) -> RawResponse:
        """
        Perform a single HTTP request.

        Raises:
            DripTimeoutError: The request exceeded the configured timeout.
            DripNetworkError: Any other failure to obtain a response.
        """
        try:
            response = self._client.request(
                method=method,
                url=url,
                content=content,
                params=params,
            )
        except httpx.TimeoutException as e:
            logger.debug("drip transport timeout: %s %s", method, url)
            raise DripTimeoutError(f"Request timed out: {url}", original_error=e) from e
        except httpx.RequestError as e:
            logger.debug("drip transport failure: %s %s (%s)", method, url, e)
            raise DripNetworkError(f"Network error: {e}", original_error=e) from e

        return RawResponse(status_code=response.status_code, content=response.content)

    def close(self) -> None:
        self._client.close()
