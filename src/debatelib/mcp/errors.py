from typing import Any


class MCPError(Exception):
    """Base exception for tool server errors."""
    pass


class TransportError(MCPError):
    """Transport-level error (connection, I/O)."""
    pass


class ProtocolError(MCPError):
    """Protocol-level error (invalid messages, handshake failures)."""
    pass


class SessionNotEstablishedError(MCPError):
    """A call was issued before the server announced its session endpoint."""

    def __init__(self, message: str = "Session not established"):
        super().__init__(message)


class RPCError(MCPError):
    """JSON-RPC error returned by the server.

    str(error) is the server's message verbatim so the caller can show it
    to the user as-is.
    """

    def __init__(self, code: int, message: str, data: Any = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(message)


class MCPTimeoutError(MCPError, TimeoutError):
    """Timeout waiting for the server."""
    pass


class ContentError(MCPError):
    """The call succeeded but its result is not what the caller expected."""
    pass
