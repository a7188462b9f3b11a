"""
Tool server client.

One ToolServerClient owns at most one logical session at a time:

    IDLE -> CONNECTING -> HANDSHAKING -> READY -> COMPLETED
                 |             |            |
                 +-------------+------------+----> FAILED

A session opens the event stream, waits for the server's 'endpoint' event,
sends 'initialize', then the 'notifications/initialized' notification, and
only then accepts the caller's calls. Replies arrive on the stream, not in
the POST responses, and are matched to in-flight calls by id; they may come
back in any order.

Usage:
    client = ToolServerClient("http://localhost:8000")
    topic = client.fetch_topic()
    tools = client.list_tools()

Or drive a session directly:
    with client.session():
        result = client.call_tool("get_debate_topic", {})
"""

import json
import logging
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, Optional
from urllib.parse import urljoin

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..topics import TopicDraft
from .envelopes import CallEnvelope, ErrorEnvelope, ResultEnvelope, make_call, parse_envelope
from .errors import (
    ContentError,
    MCPError,
    MCPTimeoutError,
    ProtocolError,
    SessionNotEstablishedError,
    TransportError,
)
from .transport import SSETransport, Transport

logger = logging.getLogger('debatelib')

# Sentinel for unspecified timeout (distinguishes "not passed" from "explicitly None")
_TIMEOUT_NOT_SPECIFIED = object()

TransportFactory = Callable[[str], Transport]


class SessionState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    HANDSHAKING = "handshaking"
    READY = "ready"
    COMPLETED = "completed"
    FAILED = "failed"


_ACTIVE_STATES = (SessionState.CONNECTING, SessionState.HANDSHAKING, SessionState.READY)


@dataclass
class PendingCall:
    """An issued call waiting for its reply. The future is settled exactly once."""
    id: int
    method: str
    future: Future = field(default_factory=Future)


class ToolDescriptor(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    description: Optional[str] = None
    input_schema: dict[str, Any] = Field(default_factory=dict, alias="inputSchema")


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return max(deadline - time.monotonic(), 0.0)


def extract_text_content(result: Any) -> str:
    """Return the text of the first 'text' content block of a tool result."""
    if not isinstance(result, dict):
        raise ContentError(f"Tool result must be an object, got {type(result).__name__}")
    content = result.get("content") or []
    if not isinstance(content, list):
        raise ContentError("Tool result 'content' must be a list")
    for item in content:
        if isinstance(item, dict) and item.get("type") == "text":
            text = item.get("text")
            if isinstance(text, str):
                return text
    raise ContentError("No content in tool response")


def parse_topic_result(result: Any) -> TopicDraft:
    text = extract_text_content(result)
    if isinstance(result, dict) and result.get("isError"):
        raise ContentError(text)
    try:
        return TopicDraft.from_json(text)
    except json.JSONDecodeError as e:
        raise ContentError(f"Tool returned invalid JSON: {e}") from e
    except ValidationError as e:
        raise ContentError(f"Tool returned an invalid topic: {e}") from e


class ToolServerClient:
    """
    Client for the debate tool server.

    Each high-level operation (fetch_topic, list_tools) runs in its own
    session and always closes the stream before returning. Sessions on one
    instance are serialized; a second caller waits for the first to finish.
    """

    # Protocol version sent in the handshake
    PROTOCOL_VERSION = "2024-11-05"

    # Tool that generates a new debate topic
    TOPIC_TOOL = "get_debate_topic"

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        client_name: str = "debate-web-client",
        client_version: str = "1.0",
        call_timeout: Optional[float] = 30.0,
        session_timeout: Optional[float] = 10.0,
        headers: Optional[dict[str, str]] = None,
        transport_factory: Optional[TransportFactory] = None
    ) -> None:
        """
        Args:
            base_url: Tool server address; the stream lives at <base_url>/sse.
            client_name: Client name reported during handshake.
            client_version: Client version reported during handshake.
            call_timeout: Default seconds to wait for each reply. None waits forever.
            session_timeout: Seconds allowed for opening the stream, the endpoint
                    event and the 'initialize' reply. None waits forever.
            headers: Extra HTTP headers for the stream and every POST.
            transport_factory: Builds a transport for a stream URL. Defaults to SSETransport.
        """
        self.base_url = base_url
        self.client_name = client_name
        self.client_version = client_version
        self.call_timeout = call_timeout
        self.session_timeout = session_timeout
        self.headers = headers or {}
        self.transport_factory = transport_factory or self._default_transport

        self._transport: Optional[Transport] = None
        self._session_endpoint: Optional[str] = None
        self._endpoint_ready: Optional[Future] = None
        self._request_id = 0
        self._pending: dict[int, PendingCall] = {}
        self._state = SessionState.IDLE
        self._init_result: Optional[dict[str, Any]] = None
        self._lock = threading.Lock()  # Protects the session fields above
        self._session_lock = threading.Lock()  # One logical session at a time

    def _default_transport(self, url: str) -> Transport:
        return SSETransport(url, self.headers, self.call_timeout or 30.0)

    @property
    def stream_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/sse"

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def session_endpoint(self) -> Optional[str]:
        with self._lock:
            return self._session_endpoint

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def server_info(self) -> Optional[dict[str, Any]]:
        """Server information from the last handshake (name, version)."""
        if self._init_result is None:
            return None
        return self._init_result.get("serverInfo", {})

    # === STREAM CALLBACKS (reader thread) ===

    def _on_endpoint(self, path: str) -> None:
        with self._lock:
            ready = self._endpoint_ready
            if ready is None or ready.done():
                logger.debug(f"Ignoring endpoint event outside of connect: {path}")
                return
            self._session_endpoint = endpoint = urljoin(self.base_url, path)
            ready.set_result(endpoint)
        logger.debug(f"Session endpoint: {endpoint}")

    def _on_message(self, data: str) -> None:
        try:
            envelope = parse_envelope(data)
        except ProtocolError as e:
            logger.warning(f"Dropping server message: {e}")
            return

        if isinstance(envelope, (ResultEnvelope, ErrorEnvelope)) and envelope.id is not None:
            with self._lock:
                pending = self._pending.pop(envelope.id, None)
            if pending is None:
                logger.warning(f"Dropping response for unknown request id={envelope.id}")
                return
            if isinstance(envelope, ErrorEnvelope):
                logger.debug(f"<- {pending.method} id={pending.id} error: {envelope.error.message}")
                pending.future.set_exception(envelope.to_exception())
            else:
                logger.debug(f"<- {pending.method} id={pending.id}")
                pending.future.set_result(envelope.result)
        elif isinstance(envelope, ErrorEnvelope):
            # id null: the server could not tell which request failed
            logger.warning(
                f"Dropping error without request id: {envelope.error.message} (code {envelope.error.code})"
            )
        elif isinstance(envelope, CallEnvelope):
            logger.debug(f"[notification] {envelope.method}")
        else:
            logger.debug(f"Dropping unrecognized server message: {str(envelope.model_dump())[:200]}")

    def _on_error(self, error: MCPError) -> None:
        with self._lock:
            ready = self._endpoint_ready
            if ready is not None and not ready.done():
                # The endpoint future is settled under the lock; cleanup() races for it
                failure = TransportError(
                    f"Connection to tool server failed. Make sure the tool server "
                    f"is running at {self.base_url}."
                )
                failure.__cause__ = error
                ready.set_exception(failure)
                return
            pending = list(self._pending.values())
            self._pending.clear()

        logger.warning(f"Event stream failed with {len(pending)} call(s) in flight: {error}")
        for call in pending:
            failure = TransportError(f"Connection to tool server lost: {error}")
            failure.__cause__ = error
            call.future.set_exception(failure)

    # === SESSION LIFECYCLE ===

    def open_session(self, timeout: Optional[float] = _TIMEOUT_NOT_SPECIFIED) -> dict[str, Any]:
        """
        Open the stream and run the handshake.

        Args:
            timeout: Bound on opening the stream, the endpoint wait and the
                    'initialize' reply.
                    Defaults to self.session_timeout; None waits forever.

        Returns:
            The server's 'initialize' result.

        Raises:
            MCPError: On transport, protocol or timeout failures. The session
                    is torn down before the error propagates.
        """
        if timeout is _TIMEOUT_NOT_SPECIFIED:
            timeout = self.session_timeout
        deadline = None if timeout is None else time.monotonic() + timeout

        with self._lock:
            if self._state in _ACTIVE_STATES:
                raise MCPError("A session is already open on this client")
            self._state = SessionState.CONNECTING
            self._endpoint_ready = ready = Future()

        logger.info(f"Connecting to tool server at {self.stream_url}")
        try:
            try:
                transport = self.transport_factory(self.stream_url)
            except ValueError as e:
                raise TransportError(f"Failed to create event stream: {e}") from e
            with self._lock:
                self._transport = transport
            transport.open(self._on_endpoint, self._on_message, self._on_error, timeout=_remaining(deadline))

            try:
                ready.result(timeout=_remaining(deadline))
            except FutureTimeoutError:
                if ready.done():
                    raise
                raise MCPTimeoutError(
                    f"Tool server at {self.base_url} did not announce a session endpoint"
                ) from None

            with self._lock:
                self._state = SessionState.HANDSHAKING
            result = self.call("initialize", {
                "protocolVersion": self.PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {
                    "name": self.client_name,
                    "version": self.client_version
                }
            }, timeout=_remaining(deadline))
            if not isinstance(result, dict):
                raise ProtocolError(f"Initialize result must be a dict, got {type(result).__name__}")
            server_version = result.get("protocolVersion")
            if server_version != self.PROTOCOL_VERSION:
                logger.warning(
                    f"Protocol version mismatch: client sent {self.PROTOCOL_VERSION}, "
                    f"server returned {server_version}"
                )
            self._init_result = result

            self.notify("notifications/initialized", {})
        except BaseException:
            self.cleanup(SessionState.FAILED)
            raise

        with self._lock:
            self._state = SessionState.READY
        logger.info(f"Session ready: {self.session_endpoint}")
        return result

    def cleanup(self, final_state: SessionState = SessionState.COMPLETED) -> None:
        """
        Close the stream and forget the session.

        In-flight calls are rejected with TransportError. Safe to call more
        than once and from any state.
        """
        with self._lock:
            transport = self._transport
            self._transport = None
            pending = list(self._pending.values())
            self._pending.clear()
            ready = self._endpoint_ready
            self._endpoint_ready = None
            self._session_endpoint = None
            if self._state is not SessionState.IDLE:
                self._state = final_state
            if ready is not None and not ready.done():
                ready.set_exception(TransportError("Session closed before it was established"))

        if transport is not None:
            transport.close()
        for call in pending:
            if not call.future.done():
                call.future.set_exception(TransportError("Session closed before a response arrived"))
        if transport is not None:
            logger.info(f"Session closed ({final_state.value})")

    @contextmanager
    def session(self, timeout: Optional[float] = _TIMEOUT_NOT_SPECIFIED) -> Iterator["ToolServerClient"]:
        """Open a session for the duration of a with-block; always tears down."""
        with self._session_lock:
            try:
                self.open_session(timeout)
                yield self
            except BaseException:
                self.cleanup(SessionState.FAILED)
                raise
            else:
                self.cleanup(SessionState.COMPLETED)

    # === CALLS ===

    def send(self, method: str, params: Optional[dict] = None) -> PendingCall:
        """
        Issue a call without waiting for its reply.

        Raises:
            SessionNotEstablishedError: If no session endpoint is known yet.
                    Nothing is posted in that case.
            TransportError: If the POST fails.
        """
        with self._lock:
            endpoint = self._session_endpoint
            transport = self._transport
            if endpoint is None or transport is None:
                raise SessionNotEstablishedError()
            pending = PendingCall(self._request_id, method)
            self._request_id += 1
            self._pending[pending.id] = pending

        envelope = make_call(pending.id, method, params)
        logger.debug(f"-> {method} id={pending.id}")
        try:
            transport.post(endpoint, envelope.to_wire())
        except BaseException:
            with self._lock:
                self._pending.pop(pending.id, None)
            raise
        return pending

    def wait(self, pending: PendingCall, timeout: Optional[float] = _TIMEOUT_NOT_SPECIFIED) -> Any:
        """
        Block until a sent call settles.

        On timeout the call is rejected with MCPTimeoutError; if nothing else
        is in flight the stream is closed as well.
        """
        if timeout is _TIMEOUT_NOT_SPECIFIED:
            timeout = self.call_timeout
        try:
            return pending.future.result(timeout=timeout)
        except FutureTimeoutError:
            if pending.future.done():
                raise

        with self._lock:
            expired = self._pending.pop(pending.id, None) is not None
            idle = not self._pending
        if not expired:
            # The reply won the race against the deadline
            return pending.future.result()

        error = MCPTimeoutError(f"Timeout waiting for response to {pending.method} (id={pending.id})")
        pending.future.set_exception(error)
        logger.warning(str(error))
        if idle:
            self.cleanup(SessionState.FAILED)
        raise error

    def call(
        self,
        method: str,
        params: Optional[dict] = None,
        timeout: Optional[float] = _TIMEOUT_NOT_SPECIFIED
    ) -> Any:
        """
        Make a JSON-RPC call and return its result.

        Raises:
            SessionNotEstablishedError: If no session is open.
            RPCError: If the server returns an error response.
            MCPTimeoutError: If the reply does not arrive in time.
            TransportError: On transport-level errors.
        """
        return self.wait(self.send(method, params), timeout)

    def notify(self, method: str, params: Optional[dict] = None) -> None:
        """Send a notification. Only the POST is awaited; no reply is expected."""
        with self._lock:
            endpoint = self._session_endpoint
            transport = self._transport
        if endpoint is None or transport is None:
            raise SessionNotEstablishedError()
        logger.debug(f"-> {method} (notification)")
        transport.post(endpoint, CallEnvelope(method=method, params=params).to_wire())

    def call_tool(
        self,
        name: str,
        arguments: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = _TIMEOUT_NOT_SPECIFIED
    ) -> dict[str, Any]:
        """Call a tool inside an open session and return the raw tool result."""
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Tool name must be a non-empty string")
        return self.call("tools/call", {"name": name, "arguments": arguments or {}}, timeout=timeout)

    # === HIGH-LEVEL OPERATIONS ===

    def fetch_topic(self) -> TopicDraft:
        """
        Ask the tool server to generate a debate topic.

        Raises:
            MCPError: If the session cannot be established or the tool fails.
            ContentError: If the tool result has no text block or the text is
                    not a valid topic.
        """
        with self.session():
            result = self.call_tool(self.TOPIC_TOOL, {})
        return parse_topic_result(result)

    def list_tools(self) -> list[ToolDescriptor]:
        """List the tools the server offers (empty if it reports none)."""
        with self.session():
            result = self.call("tools/list", {})
        if result is None:
            return []
        if not isinstance(result, dict):
            raise ProtocolError(f"tools/list result must be a dict, got {type(result).__name__}")
        try:
            return [ToolDescriptor.model_validate(tool) for tool in result.get("tools") or []]
        except ValidationError as e:
            raise ProtocolError(f"Invalid tool descriptor: {e}") from e
