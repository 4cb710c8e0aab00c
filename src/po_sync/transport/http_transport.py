"""
http_transport.py - Webhook delivery over HTTPS.

One POST per call to the configured workflow endpoint. The endpoint
and API key are read from a provider on every call, so an admin
config save takes effect on the next delivery.
"""

import json
import logging
from typing import Any, Callable

import httpx

from po_sync.config import DEFAULT_TIMEOUT_SECONDS
from po_sync.errors import RemoteError
from po_sync.models import RemoteConfig
from po_sync.transport.base import DeliveryResult, RemoteClient

logger = logging.getLogger(__name__)

# Longest response body quoted in an error message
_MAX_ERROR_BODY = 500


class WebhookClient(RemoteClient):
    """
    Simple webhook client.

    Success is any 2xx. The response body is decoded as JSON when the
    response says so, otherwise returned as text. Non-2xx responses,
    transport errors and timeouts all become failed DeliveryResults.
    """

    def __init__(
        self,
        config_provider: Callable[[], RemoteConfig],
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._config_provider = config_provider
        self._timeout = timeout
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def name(self) -> str:
        return "webhook"

    @property
    def timeout(self) -> float:
        return self._timeout

    @timeout.setter
    def timeout(self, value: float) -> None:
        self._timeout = value
        self._client.timeout = httpx.Timeout(value)

    async def close(self) -> None:
        await self._client.aclose()

    async def post(self, payload: Any) -> DeliveryResult:
        try:
            data, status_code = await self._send(payload)
        except RemoteError as e:
            return DeliveryResult(success=False, error=e.message, status_code=e.status_code)
        return DeliveryResult(success=True, data=data, status_code=status_code)

    async def _send(self, payload: Any) -> tuple[Any, int]:
        config = self._config_provider()
        if not config.endpoint:
            raise RemoteError("No remote endpoint configured")

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if config.api_key:
            headers["x-api-key"] = config.api_key

        body = json.dumps(payload).encode("utf-8")
        logger.debug(f"POST {config.endpoint[:60]} ({len(body)} bytes)")

        try:
            response = await self._client.post(config.endpoint, content=body, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning(f"Request timeout after {self._timeout}s")
            raise RemoteError("Request timeout") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise RemoteError(f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            # Malformed endpoint URL or non-ASCII header value
            raise RemoteError(f"Invalid remote config: {e}") from e

        if not response.is_success:
            text = response.text[:_MAX_ERROR_BODY]
            raise RemoteError(
                f"HTTP {response.status_code}: {response.reason_phrase} - {text}",
                status_code=response.status_code,
            )

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                return response.json(), response.status_code
            except ValueError:
                logger.warning("Response declared JSON but did not parse; using text")
        return response.text, response.status_code
