"""
JSON-RPC 2.0 envelopes exchanged with the tool server.

Outbound calls are built as CallEnvelope. Inbound stream messages go through
parse_envelope(), which returns one of the typed variants. Anything that does
not fit a known shape comes back as RawEnvelope instead of raising, so newer
server messages do not break older clients.
"""

import json
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import ProtocolError, RPCError

# JSON-RPC 2.0 version string
JSONRPC_VERSION = "2.0"


class CallEnvelope(BaseModel):
    """Request (or notification, when id is None) sent to the server."""

    model_config = ConfigDict(frozen=True)

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: Optional[int] = None
    method: str
    params: Optional[dict[str, Any]] = None

    @property
    def is_notification(self) -> bool:
        return self.id is None

    def to_wire(self) -> dict[str, Any]:
        message: dict[str, Any] = {"jsonrpc": self.jsonrpc}
        if self.id is not None:
            message["id"] = self.id
        message["method"] = self.method
        if self.params is not None:
            message["params"] = self.params
        return message


class ErrorDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: int = -1
    message: str = "Unknown error"
    data: Any = None


class ResultEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: int
    result: Any = None


class ErrorEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: Optional[int] = None
    error: ErrorDetail

    @field_validator("error", mode="before")
    @classmethod
    def _coerce_error(cls, value: Any) -> Any:
        # Some servers send a bare string instead of an error object
        if isinstance(value, dict):
            return value
        return {"code": -1, "message": str(value)}

    def to_exception(self) -> RPCError:
        return RPCError(self.error.code, self.error.message, self.error.data)


class RawEnvelope(BaseModel):
    """Anything the client does not understand, kept undecoded."""

    model_config = ConfigDict(frozen=True)

    payload: Any = None

    @property
    def id(self) -> Any:
        if isinstance(self.payload, dict):
            return self.payload.get("id")
        return None

    @property
    def method(self) -> Optional[str]:
        if isinstance(self.payload, dict):
            return self.payload.get("method")
        return None


Envelope = Union[CallEnvelope, ResultEnvelope, ErrorEnvelope, RawEnvelope]


def make_call(request_id: Optional[int], method: str, params: Optional[dict] = None) -> CallEnvelope:
    return CallEnvelope(id=request_id, method=method, params=params)


def parse_envelope(data: Union[str, bytes, dict]) -> Envelope:
    """
    Decode one server message.

    Args:
        data: Raw event data (JSON text) or an already-decoded object.

    Returns:
        The matching envelope variant. Responses must carry exactly one of
        'result' or 'error'; messages with a 'method' are server requests or
        notifications and come back as CallEnvelope.

    Raises:
        ProtocolError: If the data is not valid JSON.
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
            raise ProtocolError(f"Invalid JSON in server message: {text[:100]}") from e

    if not isinstance(data, dict) or data.get("jsonrpc") != JSONRPC_VERSION:
        return RawEnvelope(payload=data)

    has_method = "method" in data
    has_result = "result" in data
    has_error = "error" in data

    try:
        if has_method:
            return CallEnvelope.model_validate(data)
        if has_error and not has_result:
            return ErrorEnvelope.model_validate(data)
        if has_result and not has_error and "id" in data:
            return ResultEnvelope.model_validate(data)
    except ValidationError:
        pass
    return RawEnvelope(payload=data)
