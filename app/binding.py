"""
CloudEvents HTTP protocol binding.

Turns an HTTP request into an InboundEvent. Supports:
- Structured content mode (application/cloudevents+json body)
- Binary content mode (ce-* headers, body is the event data)

Batched content mode is not supported.
"""
import base64
import binascii
from typing import Any, Mapping
import orjson
from pydantic import ValidationError
from starlette.requests import Request
from .event_models import InboundEvent, is_json_content_type

SUPPORTED_SPEC_VERSIONS = ("1.0", "0.3")
REQUIRED_ATTRIBUTES = ("id", "source", "type", "specversion")
STRUCTURED_CONTENT_TYPE = "application/cloudevents+json"
BATCH_CONTENT_TYPE = "application/cloudevents-batch+json"
HEADER_PREFIX = "ce-"
KNOWN_ATTRIBUTES = ("id", "source", "type", "specversion", "datacontenttype", "dataschema", "subject", "time")


class EnvelopeParseError(Exception):
    """Raised when a request does not carry a valid CloudEvent."""


async def from_request(request: Request) -> InboundEvent:
    """
    Parse the CloudEvent carried by a request.

    The request body is cached by Starlette, so parsing does not prevent
    later stages from reading it again.

    Raises:
        EnvelopeParseError: If the request is not a valid CloudEvent
    """
    body = await request.body()
    return from_http(request.headers, body)


def from_http(headers: Mapping[str, str], body: bytes) -> InboundEvent:
    """Parse a CloudEvent from HTTP headers and body."""
    headers = {k.lower(): v for k, v in headers.items()}
    content_type = headers.get("content-type", "")
    media_type = content_type.split(";", 1)[0].strip().lower()

    if media_type == BATCH_CONTENT_TYPE:
        raise EnvelopeParseError("batched CloudEvents are not supported")
    if media_type == STRUCTURED_CONTENT_TYPE:
        return _from_structured(body)
    if HEADER_PREFIX + "specversion" in headers:
        return _from_binary(headers, body)
    raise EnvelopeParseError("unknown message encoding: request is not a CloudEvent")


def _from_structured(body: bytes) -> InboundEvent:
    try:
        doc = orjson.loads(body)
    except orjson.JSONDecodeError as e:
        raise EnvelopeParseError(f"invalid structured CloudEvent JSON: {e}") from e
    if not isinstance(doc, dict):
        raise EnvelopeParseError("structured CloudEvent must be a JSON object")

    attributes = {k: v for k, v in doc.items() if k not in ("data", "data_base64")}
    data: bytes | None = None
    if "data" in doc and "data_base64" in doc:
        raise EnvelopeParseError("CloudEvent cannot carry both data and data_base64")
    if "data_base64" in doc:
        try:
            data = base64.b64decode(doc["data_base64"], validate=True)
        except (binascii.Error, TypeError, ValueError) as e:
            raise EnvelopeParseError(f"invalid data_base64: {e}") from e
    elif "data" in doc:
        data = _encode_data(doc["data"], attributes.get("datacontenttype"))
    return _build_event(attributes, data)


def _from_binary(headers: dict[str, str], body: bytes) -> InboundEvent:
    attributes: dict[str, Any] = {}
    for name, value in headers.items():
        if name.startswith(HEADER_PREFIX):
            attributes[name[len(HEADER_PREFIX):]] = value
    if "content-type" in headers:
        attributes["datacontenttype"] = headers["content-type"]
    return _build_event(attributes, body or None)


def _encode_data(value: Any, content_type: str | None) -> bytes:
    if isinstance(value, str) and not is_json_content_type(content_type):
        return value.encode("utf-8")
    return orjson.dumps(value)


def _build_event(attributes: dict[str, Any], data: bytes | None) -> InboundEvent:
    for name in REQUIRED_ATTRIBUTES:
        value = attributes.get(name)
        if not isinstance(value, str) or not value:
            raise EnvelopeParseError(f"missing required CloudEvent attribute {name!r}")
    if attributes["specversion"] not in SUPPORTED_SPEC_VERSIONS:
        raise EnvelopeParseError(f"unsupported specversion {attributes['specversion']!r}")

    known = {k: attributes[k] for k in KNOWN_ATTRIBUTES if k in attributes}
    extensions = {k: v for k, v in attributes.items() if k not in KNOWN_ATTRIBUTES}
    try:
        return InboundEvent(**known, extensions=extensions, data=data)
    except ValidationError as e:
        raise EnvelopeParseError(f"invalid CloudEvent attributes: {e}") from e
