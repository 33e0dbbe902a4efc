"""Translates received CloudEvents and forwards them to the upstream API."""
from ..event_models import InboundEvent, OutboundEvent
from ..adapters.base import EventsClient
from ..config import PayloadMode
from ..metrics import Metrics
import structlog

log = structlog.get_logger()

FORWARD_ERROR_MESSAGE = "error creating event from received event"


class ForwardingError(Exception):
    """Raised when a received event could not be created upstream."""


class EventForwarder:
    """
    Forwards each accepted CloudEvent to the upstream API exactly once.

    The forwarded event carries the gateway's own source and type; the
    CloudEvent's source and type travel as qualifiers so that upstream
    subscribers can route on them without reading the payload.
    """

    def __init__(
        self,
        client: EventsClient,
        payload_mode: PayloadMode = PayloadMode.ENVELOPE,
        metrics: Metrics | None = None,
    ):
        """
        Initialize the forwarder.

        Args:
            client: Upstream events API client
            payload_mode: ENVELOPE forwards the whole CloudEvent as JSON,
                DATA forwards only its data
            metrics: Optional metrics to record failures on
        """
        self._client = client
        self._payload_mode = payload_mode
        self._metrics = metrics

    @property
    def payload_mode(self) -> PayloadMode:
        return self._payload_mode

    def translate(self, event: InboundEvent) -> OutboundEvent:
        """Map a CloudEvent onto the upstream event schema."""
        if self._payload_mode == PayloadMode.DATA:
            payload = event.data_text()
        else:
            payload = event.to_json().decode("utf-8")
        return OutboundEvent(
            qualifiers={
                "source": event.source,
                "type": event.type,
            },
            payload=payload,
        )

    async def forward(self, event: InboundEvent) -> None:
        """
        Create the translated event upstream.

        There is no retry; the event source's own redelivery is the only
        recovery from a failed attempt.

        Raises:
            ForwardingError: If the upstream client fails
        """
        outbound = self.translate(event)
        try:
            await self._client.create(outbound)
        except Exception as e:
            err = ForwardingError(f"{FORWARD_ERROR_MESSAGE}: {e}")
            # Nothing upstream of the route logs this, so it is logged here.
            log.error(
                "event.forward_failed",
                error=str(err),
                error_type=type(e).__name__,
                event_id=event.id,
                event_source=event.source,
                event_type=event.type,
            )
            if self._metrics:
                self._metrics.record_forward_failure()
            raise err from e

        log.info(
            "event.forwarded",
            event_id=event.id,
            event_source=event.source,
            event_type=event.type,
            payload_mode=self._payload_mode.value,
        )
