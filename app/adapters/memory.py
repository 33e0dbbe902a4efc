"""In-memory events client."""
import structlog
from .base import EventsClient
from ..event_models import OutboundEvent

log = structlog.get_logger()


class InMemoryEventsClient(EventsClient):
    """Events client that keeps created events in memory."""

    def __init__(self):
        self.events: list[OutboundEvent] = []

    async def create(self, event: OutboundEvent) -> None:
        """Record the event."""
        self.events.append(event)
        log.info(
            "event.created",
            qualifiers=event.qualifiers,
            client="memory",
        )
