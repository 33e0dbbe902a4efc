"""Base interface for upstream events API clients."""
from abc import ABC, abstractmethod
from ..event_models import OutboundEvent


class UpstreamError(Exception):
    """Raised when the upstream API does not accept an event."""


class EventsClient(ABC):
    """Abstract interface for clients of the upstream events API."""

    @abstractmethod
    async def create(self, event: OutboundEvent) -> None:
        """
        Create an event in the upstream API.

        Args:
            event: The translated event to create

        Raises:
            UpstreamError: If the upstream API rejects the event or cannot
                be reached
        """
        pass

    async def close(self) -> None:
        """Release any resources held by the client."""
        pass
