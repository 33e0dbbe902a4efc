"""Tests for upstream events API clients."""
import httpx
import orjson
import pytest

from app.adapters.api_client import EVENTS_PATH, APIEventsClient
from app.adapters.base import UpstreamError
from app.adapters.memory import InMemoryEventsClient
from app.event_models import OutboundEvent


@pytest.fixture
def outbound():
    return OutboundEvent(qualifiers={"source": "foo", "type": "bar"}, payload='{"foo":"bar"}')


@pytest.mark.asyncio
async def test_memory_client_records_events(outbound):
    client = InMemoryEventsClient()

    await client.create(outbound)

    assert client.events == [outbound]


@pytest.mark.asyncio
async def test_api_client_posts_event(outbound):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"items": []})

    client = APIEventsClient(
        "https://events.example.com", "upstream-token", transport=httpx.MockTransport(handler)
    )
    await client.create(outbound)
    await client.close()

    assert len(seen) == 1
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == EVENTS_PATH
    assert request.headers["Authorization"] == "Bearer upstream-token"
    body = orjson.loads(request.content)
    assert body["apiVersion"] == "brigade.sh/v2"
    assert body["kind"] == "Event"
    assert body["source"] == "brigade.sh/cloudevents"
    assert body["type"] == "cloudevent"
    assert body["qualifiers"] == {"source": "foo", "type": "bar"}
    assert body["payload"] == '{"foo":"bar"}'


@pytest.mark.asyncio
async def test_api_client_error_status(outbound):
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
    client = APIEventsClient("https://events.example.com", "t", transport=transport)

    with pytest.raises(UpstreamError, match="500"):
        await client.create(outbound)
    await client.close()


@pytest.mark.asyncio
async def test_api_client_transport_error(outbound):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = APIEventsClient("https://events.example.com", "t", transport=httpx.MockTransport(handler))

    with pytest.raises(UpstreamError, match="connection refused") as exc_info:
        await client.create(outbound)
    await client.close()

    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
