from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
import structlog
from .schemas import AcceptedResponse, ErrorResponse
from ..binding import EnvelopeParseError, from_request
from ..middleware import error_response
from ..services.forwarder import ForwardingError

router = APIRouter()
log = structlog.get_logger()


@router.post(
    "/events",
    response_model=AcceptedResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def receive_event(request: Request) -> Response:
    """
    Receive a CloudEvent.

    Authenticated by a source token in an ``Authorization: Bearer`` header
    or an ``access_token`` query parameter.
    """
    return await request.app.state.interceptors(request, deliver_event)


@router.options("/events")
async def validate_event_source(request: Request) -> Response:
    """Abuse protection handshake for CloudEvents webhook sources."""
    return await request.app.state.handshake(request)


async def deliver_event(request: Request) -> Response:
    """Parse an authenticated request and forward its event upstream."""
    metrics = request.app.state.metrics
    try:
        event = await from_request(request)
    except EnvelopeParseError as e:
        log.warning("event.invalid", error=str(e))
        metrics.record_event("invalid")
        return error_response(request, 400, "InvalidCloudEvent", str(e))

    try:
        await request.app.state.forwarder.forward(event)
    except ForwardingError as e:
        metrics.record_event("failed")
        return error_response(request, 500, "ForwardingError", str(e))

    metrics.record_event("accepted")
    return JSONResponse(content=AcceptedResponse(id=event.id).model_dump())
