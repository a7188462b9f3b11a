from .errors import (
    MCPError,
    TransportError,
    ProtocolError,
    SessionNotEstablishedError,
    RPCError,
    MCPTimeoutError,
    ContentError,
)
from .envelopes import (
    JSONRPC_VERSION,
    CallEnvelope,
    ResultEnvelope,
    ErrorEnvelope,
    RawEnvelope,
    parse_envelope,
)
from .transport import Transport, SSETransport, SSEParser, SSEEvent
from .client import (
    ToolServerClient,
    ToolDescriptor,
    SessionState,
    PendingCall,
    extract_text_content,
    parse_topic_result,
)

__all__ = [
    # Exceptions
    "MCPError",
    "TransportError",
    "ProtocolError",
    "SessionNotEstablishedError",
    "RPCError",
    "MCPTimeoutError",
    "ContentError",
    # Envelopes
    "JSONRPC_VERSION",
    "CallEnvelope",
    "ResultEnvelope",
    "ErrorEnvelope",
    "RawEnvelope",
    "parse_envelope",
    # Transport
    "Transport",
    "SSETransport",
    "SSEParser",
    "SSEEvent",
    # Client
    "ToolServerClient",
    "ToolDescriptor",
    "SessionState",
    "PendingCall",
    "extract_text_content",
    "parse_topic_result",
]
