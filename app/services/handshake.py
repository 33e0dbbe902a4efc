"""
CloudEvents webhook abuse protection handshake.

Event sources that implement the CloudEvents 1.0 webhook protocol send an
OPTIONS request before delivering events. The handshake completes either:
- Synchronously, by answering with the WebHook-Allowed-* headers
- Asynchronously, by calling back the URL in WebHook-Request-Callback
"""
import asyncio
import platform
import httpx
import structlog
from starlette.requests import Request
from starlette.responses import Response
from ..config import SERVICE_NAME, VERSION
from ..metrics import Metrics

log = structlog.get_logger()

# Default allowed rate from the CloudEvents HTTP protocol binding.
DEFAULT_ALLOWED_RATE = 1000
CALLBACK_DELAY_SECONDS = 10.0
CALLBACK_HEADER = "WebHook-Request-Callback"
CALLBACK_METHODS = ("GET", "POST")


def user_agent() -> str:
    return (
        f"Python/{platform.python_version()} "
        f"({platform.machine()}-{platform.system().lower()}) "
        f"{SERVICE_NAME}/{VERSION}"
    )


class HandshakeHandler:
    """
    Answers abuse protection handshakes for the events endpoint.

    Callbacks run as detached tasks that outlive the request. They are never
    awaited, retried or cancelled by the handler; their only effect is a log
    entry.
    """

    def __init__(
        self,
        callback_delay: float = CALLBACK_DELAY_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        metrics: Metrics | None = None,
    ):
        """
        Initialize the handshake handler.

        Args:
            callback_delay: Seconds to wait before executing a callback
            transport: Optional transport override for callback requests
            metrics: Optional metrics to record handshakes on
        """
        self._callback_delay = callback_delay
        self._transport = transport
        self._metrics = metrics
        # Strong references so the event loop does not drop running callbacks.
        self._callbacks: set[asyncio.Task] = set()

    @property
    def pending_callbacks(self) -> frozenset[asyncio.Task]:
        """Callback tasks that have not finished yet."""
        return frozenset(self._callbacks)

    def protocol_headers(self) -> dict[str, str]:
        return {
            "WebHook-Allowed-Origin": "*",
            "WebHook-Allowed-Rate": str(DEFAULT_ALLOWED_RATE),
            "Allow": "POST",
        }

    async def __call__(self, request: Request) -> Response:
        if request.method != "OPTIONS":
            return Response(status_code=405)

        headers = self.protocol_headers()
        callback_url = request.headers.get(CALLBACK_HEADER)
        if not callback_url:
            log.info("handshake.completed", mode="sync")
            self._record_handshake("sync")
            return Response(status_code=200, headers=headers)

        # The webhook protocol allows either GET or POST for the callback without
        # requiring receivers to accept both, so both are sent.
        headers["User-Agent"] = user_agent()
        for method in CALLBACK_METHODS:
            self._spawn_callback(method, callback_url, headers)
        log.info("handshake.deferred", mode="callback", callback_url=callback_url)
        self._record_handshake("callback")
        return Response(status_code=200)

    def _spawn_callback(self, method: str, url: str, headers: dict[str, str]):
        task = asyncio.create_task(self._execute_callback(method, url, dict(headers)))
        self._callbacks.add(task)
        task.add_done_callback(self._callbacks.discard)

    async def _execute_callback(self, method: str, url: str, headers: dict[str, str]):
        try:
            request = httpx.Request(method, url, headers=headers)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            log.warning("handshake.callback_invalid", method=method, callback_url=url, error=str(e))
            self._record_callback(method, "invalid")
            return

        # Azure Event Grid acknowledges an immediate callback without
        # actually completing the handshake.
        await asyncio.sleep(self._callback_delay)

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.send(request)
        except httpx.HTTPError as e:
            log.warning(
                "handshake.callback_failed",
                method=method,
                callback_url=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            self._record_callback(method, "error")
            return

        log.info(
            "handshake.callback_sent",
            method=method,
            callback_url=url,
            status_code=response.status_code,
        )
        self._record_callback(method, "sent")

    def _record_handshake(self, mode: str):
        if self._metrics:
            self._metrics.record_handshake(mode)

    def _record_callback(self, method: str, outcome: str):
        if self._metrics:
            self._metrics.record_handshake_callback(method, outcome)
