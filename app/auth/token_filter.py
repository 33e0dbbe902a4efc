"""Source token authentication for the events endpoint."""
from starlette.requests import Request
from starlette.responses import Response
import structlog
from .tokens import FlatTokenRegistry, SourceTokenRegistry, TokenRegistry
from ..binding import EnvelopeParseError, from_request
from ..interceptors import Endpoint, Interceptor
from ..metrics import Metrics
from ..middleware import error_response
from ..services.crypto import hash_token, hashes_match

log = structlog.get_logger()

BEARER_SCHEME = "Bearer"
ACCESS_TOKEN_PARAM = "access_token"


def extract_token(request: Request) -> str | None:
    """
    Find the token presented by the client.

    The Authorization header is tried first, then the access_token query
    parameter.
    """
    header_value = request.headers.get("Authorization")
    if header_value:
        parts = header_value.split(" ", 1)
        if len(parts) == 2 and parts[0] == BEARER_SCHEME and parts[1]:
            return parts[1]
    return request.query_params.get(ACCESS_TOKEN_PARAM) or None


def access_denied(request: Request) -> Response:
    return error_response(request, 403, "Forbidden", "access denied")


class TokenFilter(Interceptor):
    """Base for interceptors that admit requests carrying a known token."""

    def __init__(self, metrics: Metrics | None = None):
        self._metrics = metrics

    def _deny(self, request: Request, reason: str) -> Response:
        log.warning("auth.denied", reason=reason)
        if self._metrics:
            self._metrics.record_auth_denied(reason)
            self._metrics.record_event("denied")
        return access_denied(request)


class SourceTokenFilter(TokenFilter):
    """
    Admits a CloudEvent only if it carries the token registered for its source.

    The event has to be parsed to learn its source. Unknown sources are
    denied exactly like bad tokens so that responses do not reveal which
    sources are registered.
    """

    def __init__(self, registry: SourceTokenRegistry, metrics: Metrics | None = None):
        super().__init__(metrics)
        self.registry = registry

    async def dispatch(self, request: Request, call_next: Endpoint) -> Response:
        try:
            event = await from_request(request)
        except EnvelopeParseError as e:
            log.warning("auth.envelope_invalid", error=str(e))
            if self._metrics:
                self._metrics.record_event("invalid")
            return error_response(request, 400, "InvalidCloudEvent", str(e))

        expected_hash = self.registry.lookup(event.source)
        if expected_hash is None:
            return self._deny(request, "unknown_source")

        token = extract_token(request)
        if not token:
            return self._deny(request, "missing_token")
        if not hashes_match(hash_token(event.source, token), expected_hash):
            return self._deny(request, "invalid_token")

        log.debug("auth.success", event_source=event.source)
        return await call_next(request)


class FlatTokenFilter(TokenFilter):
    """Admits a request carrying any registered token, whatever its source."""

    def __init__(self, registry: FlatTokenRegistry, metrics: Metrics | None = None):
        super().__init__(metrics)
        self.registry = registry

    async def dispatch(self, request: Request, call_next: Endpoint) -> Response:
        token = extract_token(request)
        if not token:
            return self._deny(request, "missing_token")
        if not self.registry.contains(hash_token("", token)):
            return self._deny(request, "invalid_token")

        log.debug("auth.success")
        return await call_next(request)


def build_token_filter(registry: TokenRegistry, metrics: Metrics | None = None) -> TokenFilter:
    """Create the token filter matching a registry's mode."""
    if isinstance(registry, SourceTokenRegistry):
        return SourceTokenFilter(registry, metrics=metrics)
    if isinstance(registry, FlatTokenRegistry):
        return FlatTokenFilter(registry, metrics=metrics)
    raise TypeError(f"unsupported token registry: {type(registry).__name__}")
