"""HTTP client for the upstream events API."""
import httpx
import structlog
from .base import EventsClient, UpstreamError
from ..event_models import OutboundEvent

log = structlog.get_logger()

EVENTS_PATH = "/v2/events"


class APIEventsClient(EventsClient):
    """
    Creates events through the upstream API's REST interface.

    Events are POSTed as JSON to ``{address}/v2/events`` using a bearer
    token for authentication.
    """

    def __init__(
        self,
        address: str,
        token: str,
        allow_insecure_connections: bool = False,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the API client.

        Args:
            address: Base URL of the upstream API
            token: Bearer token for the upstream API
            allow_insecure_connections: Skip TLS certificate verification
            timeout: Request timeout in seconds
            transport: Optional transport override
        """
        self.address = address
        self._client = httpx.AsyncClient(
            base_url=address,
            headers={"Authorization": f"Bearer {token}"},
            verify=not allow_insecure_connections,
            timeout=timeout,
            transport=transport,
        )

    async def create(self, event: OutboundEvent) -> None:
        """
        POST an event to the upstream API.

        Raises:
            UpstreamError: On transport errors or a non-success response
        """
        try:
            response = await self._client.post(EVENTS_PATH, json=event.to_api())
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"upstream API responded {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"error calling upstream API at {self.address}: {e}") from e

        log.debug("event.created", client="api", status_code=response.status_code)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
