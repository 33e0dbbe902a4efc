from pydantic import BaseModel


class AcceptedResponse(BaseModel):
    id: str
    status: str = "accepted"


class ErrorResponse(BaseModel):
    error: str
    message: str
    correlation_id: str | None = None
    path: str | None = None
