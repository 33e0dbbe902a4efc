from pydantic import BaseModel, Field
from typing import Any, Dict
import base64
import orjson

# Source and type stamped on every event forwarded upstream.
GATEWAY_EVENT_SOURCE = "brigade.sh/cloudevents"
GATEWAY_EVENT_TYPE = "cloudevent"
UPSTREAM_API_VERSION = "brigade.sh/v2"


def is_json_content_type(content_type: str | None) -> bool:
    if not content_type:
        return True
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json") or media_type == "text/json"


class InboundEvent(BaseModel):
    """A CloudEvent received from an event source."""
    id: str = Field(..., description="Event identifier, unique per source")
    source: str = Field(..., description="Origin identifier")
    type: str = Field(..., description="Event type discriminator")
    specversion: str = "1.0"
    datacontenttype: str | None = None
    dataschema: str | None = None
    subject: str | None = None
    time: str | None = None
    extensions: Dict[str, Any] = Field(default_factory=dict)
    data: bytes | None = None

    def to_dict(self) -> Dict[str, Any]:
        """Render the event in the CloudEvents JSON format."""
        out: Dict[str, Any] = {
            "specversion": self.specversion,
            "id": self.id,
            "source": self.source,
            "type": self.type,
        }
        for attr in ("datacontenttype", "dataschema", "subject", "time"):
            value = getattr(self, attr)
            if value is not None:
                out[attr] = value
        out.update(self.extensions)
        if self.data is not None:
            out.update(self._data_member())
        return out

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_dict())

    def data_text(self) -> str:
        """Event data as text; base64 when it is not valid UTF-8."""
        if self.data is None:
            return ""
        try:
            return self.data.decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(self.data).decode("ascii")

    def _data_member(self) -> Dict[str, Any]:
        if is_json_content_type(self.datacontenttype):
            try:
                return {"data": orjson.loads(self.data)}
            except orjson.JSONDecodeError:
                pass
        try:
            return {"data": self.data.decode("utf-8")}
        except UnicodeDecodeError:
            return {"data_base64": base64.b64encode(self.data).decode("ascii")}


class OutboundEvent(BaseModel):
    """An event in the upstream API's schema."""
    source: str = GATEWAY_EVENT_SOURCE
    type: str = GATEWAY_EVENT_TYPE
    qualifiers: Dict[str, str] = Field(default_factory=dict)
    payload: str = ""

    def to_api(self) -> Dict[str, Any]:
        return {
            "apiVersion": UPSTREAM_API_VERSION,
            "kind": "Event",
            **self.model_dump(),
        }
