"""
HTTP relay for the external scoring service.

The relay is a pure proxy: it POSTs a JSON body to an endpoint and hands back
the decoded response wrapped in a ``RelayResponse`` envelope. It also covers
the two peripheral calls made against the same service, the click-through
topic lookup and the health check.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from feed_filter.config.settings import settings
from feed_filter.models.dtos import RelayResponse

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """Raised when a relay call fails at the transport or HTTP level."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ScoringRelay:
    """
    Async HTTP client for the scoring service.

    ``send`` never raises; failures are returned as ``success=False``.
    ``resolve_topic`` raises ``RelayError`` so callers decide how to recover.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = settings.RELAY_TIMEOUT_SECONDS,
        health_timeout: float = settings.HEALTH_CHECK_TIMEOUT_SECONDS,
    ):
        """
        Initialize the relay.

        Args:
            client: Optional shared ``httpx.AsyncClient``; one is created when omitted
            timeout: Timeout for scoring and topic calls (None disables it)
            health_timeout: Timeout for the health check in seconds
        """
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self.health_timeout = health_timeout

    async def _post_json(self, endpoint: str, body: Dict[str, Any]) -> Any:
        try:
            response = await self.client.post(endpoint, json=body)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise RelayError(f"Request to {endpoint} failed: {e}") from e
        if not response.is_success:
            raise RelayError(
                f"HTTP {response.status_code} from {endpoint}: {response.text[:200]}",
                response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise RelayError(f"Response from {endpoint} is not JSON: {e}") from e

    async def send(self, endpoint: str, body: Dict[str, Any]) -> RelayResponse:
        """
        Forward ``body`` to ``endpoint``.

        Args:
            endpoint: Scoring service URL
            body: JSON request body

        Returns:
            RelayResponse with the decoded payload, or the error message
        """
        try:
            data = await self._post_json(endpoint, body)
        except RelayError as e:
            logger.debug(f"Relay call failed: {e.message}")
            return RelayResponse(success=False, error=e.message)
        if not isinstance(data, dict):
            return RelayResponse(success=False, error="Response body is not a JSON object")
        return RelayResponse(success=True, data=data)

    async def resolve_topic(self, endpoint: str, title: str) -> Optional[str]:
        """
        Ask the topic endpoint which topic a clicked title belongs to.

        Returns:
            The topic label, or None when the service reports no topic

        Raises:
            RelayError: If the request fails
        """
        data = await self._post_json(endpoint, {"title": title})
        topic = data.get("topic") if isinstance(data, dict) else None
        if isinstance(topic, str) and topic.strip():
            return topic.strip()
        return None

    async def health_check(self, endpoint: str) -> bool:
        """Return True when ``endpoint`` answers a GET with a 2xx status."""
        try:
            response = await self.client.get(endpoint, timeout=self.health_timeout)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.info(f"Scoring service health check failed: {e}")
            return False
        return response.is_success

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "ScoringRelay":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
