"""Shared fixtures for gateway tests."""
import pytest
import orjson
from starlette.requests import Request

from app.adapters.base import EventsClient
from app.adapters.memory import InMemoryEventsClient
from app.auth.tokens import FlatTokenRegistry, SourceTokenRegistry
from app.config import AuthMode, load_settings
from app.main import create_app
from app.metrics import Metrics

TEST_SOURCE = "foo"
TEST_TOKEN = "bar"
STRUCTURED = "application/cloudevents+json"


def cloudevent(source=TEST_SOURCE, type="bar", id="evt-1", data=None, **attrs) -> bytes:
    """Build a structured mode CloudEvent body."""
    doc = {"specversion": "1.0", "id": id, "source": source, "type": type, **attrs}
    if data is not None:
        doc["datacontenttype"] = "application/json"
        doc["data"] = data
    return orjson.dumps(doc)


class FailingEventsClient(EventsClient):
    """Events client whose every create call fails."""

    def __init__(self, error: Exception):
        self.error = error
        self.calls = 0

    async def create(self, event):
        self.calls += 1
        raise self.error


@pytest.fixture
def request_factory():
    """Build Starlette requests without a server."""

    def make_request(method="POST", path="/events", headers=None, query_string="", body=b""):
        raw_headers = [
            (k.lower().encode("latin-1"), v.encode("latin-1"))
            for k, v in (headers or {}).items()
        ]
        scope = {
            "type": "http",
            "http_version": "1.1",
            "method": method,
            "scheme": "http",
            "path": path,
            "raw_path": path.encode(),
            "root_path": "",
            "query_string": query_string.encode(),
            "headers": raw_headers,
            "server": ("testserver", 80),
            "client": ("testclient", 50000),
        }
        sent = False

        async def receive():
            nonlocal sent
            if sent:
                return {"type": "http.disconnect"}
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}

        return Request(scope, receive)

    return make_request


@pytest.fixture
def tokens_file(tmp_path):
    path = tmp_path / "source-tokens.json"
    path.write_bytes(orjson.dumps({TEST_SOURCE: TEST_TOKEN}))
    return path


@pytest.fixture
def settings(tokens_file):
    return load_settings(
        _env_file=None,
        API_ADDRESS="https://events.example.com",
        API_TOKEN="upstream-token",
        SOURCE_TOKENS_PATH=tokens_file,
    )


@pytest.fixture
def source_registry():
    registry = SourceTokenRegistry()
    registry.add_token(TEST_SOURCE, TEST_TOKEN)
    return registry


@pytest.fixture
def flat_registry():
    registry = FlatTokenRegistry()
    registry.add_token(TEST_TOKEN)
    return registry


@pytest.fixture
def events_client():
    return InMemoryEventsClient()


@pytest.fixture
def metrics():
    return Metrics()


@pytest.fixture
def gateway(settings, source_registry, events_client, metrics):
    return create_app(settings, source_registry, events_client, metrics=metrics)


@pytest.fixture
def flat_gateway(settings, flat_registry, events_client, metrics):
    settings = settings.model_copy(update={"AUTH_MODE": AuthMode.FLAT})
    return create_app(settings, flat_registry, events_client, metrics=metrics)
