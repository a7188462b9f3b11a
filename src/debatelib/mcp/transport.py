"""
Two-channel transport to the tool server.

Server-to-client traffic arrives on a Server-Sent Events stream opened with
GET <base>/sse. The server first announces a session endpoint ('endpoint'
event); every later event carries one JSON-RPC message. Client-to-server
traffic is one HTTP POST per message to that endpoint. The POST response body
is not part of the protocol and is discarded.

Limitations:
- No automatic SSE reconnection. A transport is single-use: once closed, the
  caller builds a new one.
- No HTTP keep-alive for POST requests (new connection per message).
"""

import http.client
import json
import logging
import socket
import threading
from abc import ABC, abstractmethod
from typing import Callable, NamedTuple, Optional
from urllib.parse import urlparse

from .errors import MCPError, MCPTimeoutError, ProtocolError, TransportError

logger = logging.getLogger('debatelib')

# Longest single SSE line we accept (10 MB)
MAX_LINE_SIZE = 10 * 1024 * 1024

# How much of an error response body to keep in exception messages
MAX_ERROR_BODY = 1000

USER_AGENT = "debatelib/0.1.0"

EndpointCallback = Callable[[str], None]
MessageCallback = Callable[[str], None]
ErrorCallback = Callable[[MCPError], None]


class SSEEvent(NamedTuple):
    event: Optional[str]
    data: str


class SSEParser:
    """
    Line-oriented text/event-stream parser.

    Feed it one line at a time; it returns an SSEEvent when a blank line
    completes an event that carried data. Comment lines (':' prefix) are
    heartbeats and ignored, as are 'id' and 'retry' fields.
    """

    def __init__(self) -> None:
        self._event: Optional[str] = None
        self._data: list[str] = []

    def feed_line(self, line: str) -> Optional[SSEEvent]:
        line = line.rstrip("\r\n")
        if not line:
            event = None
            if self._data:
                event = SSEEvent(self._event, "\n".join(self._data))
            self._event = None
            self._data = []
            return event
        if line.startswith(":"):
            return None

        name, _, value = line.partition(":")
        # Per SSE spec, remove only a single leading space if present
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            self._event = value.strip() or None
        elif name == "data":
            self._data.append(value)
        return None


class Transport(ABC):
    """Abstract base class for tool server transports."""

    @abstractmethod
    def open(
        self,
        on_endpoint: EndpointCallback,
        on_message: MessageCallback,
        on_error: ErrorCallback,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Open the server-push stream.

        timeout bounds connecting and waiting for the response headers;
        None uses the transport's own timeout.

        Callbacks run on the transport's reader thread. on_error fires at most
        once, when the stream fails; it never fires after close().

        Raises:
            TransportError: If the stream cannot be opened.
            MCPTimeoutError: If the server does not answer within timeout.
        """
        pass

    @abstractmethod
    def post(self, url: str, message: dict) -> None:
        """Send one JSON-RPC message to the session endpoint."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the stream. Safe to call more than once."""
        pass


def _connection(parsed, timeout: float) -> http.client.HTTPConnection:
    if parsed.scheme == 'https':
        return http.client.HTTPSConnection(parsed.hostname, parsed.port, timeout=timeout)
    return http.client.HTTPConnection(parsed.hostname, parsed.port, timeout=timeout)


def _request_path(parsed) -> str:
    path = parsed.path or '/'
    if parsed.query:
        path += '?' + parsed.query
    return path


def _validate_url(url: str):
    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https'):
        raise ValueError(
            f"Invalid URL scheme '{parsed.scheme or '(empty)'}': "
            f"expected 'http' or 'https'. Example: http://localhost:8000/sse"
        )
    if not parsed.hostname:
        raise ValueError(f"Invalid URL '{url}': missing hostname. Example: http://localhost:8000/sse")
    return parsed


class SSETransport(Transport):
    """
    SSE stream over http.client with a daemon reader thread.

    The reader blocks on the socket and hands each complete event to the
    callbacks, so nothing polls. close() shuts the socket down, which wakes
    the reader and lets it exit quietly.
    """

    def __init__(
        self,
        url: str,
        headers: Optional[dict[str, str]] = None,
        timeout: float = 30.0
    ) -> None:
        """
        Args:
            url: The stream URL (e.g., "http://localhost:8000/sse").
            headers: Optional HTTP headers sent with the stream request and every POST.
            timeout: Socket timeout in seconds for connecting and for each POST.
        """
        self.url = url
        self.parsed = _validate_url(url)
        self.headers = headers or {}
        self.timeout = timeout

        self._conn: Optional[http.client.HTTPConnection] = None
        self._sock: Optional[socket.socket] = None
        self._reader: Optional[threading.Thread] = None
        self._opened = False
        self._closed = False
        self._lock = threading.Lock()  # Protects _closed, _conn and _sock

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def open(self, on_endpoint, on_message, on_error, timeout=None) -> None:
        with self._lock:
            if self._closed or self._opened:
                raise TransportError("Transport is single-use; create a new one")
            self._opened = True

        connect_timeout = self.timeout if timeout is None else max(min(timeout, self.timeout), 0.001)
        conn = _connection(self.parsed, connect_timeout)
        headers = {
            "Accept": "text/event-stream",
            "Cache-Control": "no-cache",
            "User-Agent": USER_AGENT,
            **self.headers,
        }
        try:
            conn.request("GET", _request_path(self.parsed), headers=headers)
            # getresponse() drops conn.sock when the server will close the connection
            sock = conn.sock
            response = conn.getresponse()
        except socket.timeout as e:
            conn.close()
            raise MCPTimeoutError(
                f"Tool server at {self.url} did not answer within {connect_timeout:g}s"
            ) from e
        except (OSError, http.client.HTTPException) as e:
            conn.close()
            raise TransportError(
                f"Failed to open event stream at {self.url}: {e}. Is the tool server running?"
            ) from e

        if response.status != 200:
            body = response.read(MAX_ERROR_BODY).decode('utf-8', errors='replace').strip()
            response.close()
            conn.close()
            message = f"HTTP error {response.status}: {response.reason}"
            raise TransportError(f"{message}\n{body}" if body else message)

        content_type = (response.getheader('Content-Type') or '').lower()
        if not content_type.startswith('text/event-stream'):
            response.close()
            conn.close()
            raise ProtocolError(f"Expected Content-Type 'text/event-stream', got '{content_type}'")

        # The stream idles between events; only POSTs are bounded by self.timeout
        if sock is not None:
            sock.settimeout(None)

        with self._lock:
            if self._closed:
                conn.close()
                raise TransportError("Transport closed during connect")
            self._conn = conn
            self._sock = sock

        self._reader = threading.Thread(
            target=self._read_loop,
            args=(response, on_endpoint, on_message, on_error),
            name="debatelib-sse",
            daemon=True,
        )
        self._reader.start()
        logger.debug(f"Event stream open: {self.url}")

    def _read_loop(self, response, on_endpoint, on_message, on_error) -> None:
        parser = SSEParser()
        try:
            while True:
                line = response.readline(MAX_LINE_SIZE + 1)
                if not line:
                    raise TransportError("Event stream closed by server")
                if len(line) > MAX_LINE_SIZE:
                    raise ProtocolError(f"Event stream line exceeds {MAX_LINE_SIZE} bytes")
                event = parser.feed_line(line.decode('utf-8', errors='replace'))
                if event is None:
                    continue
                if event.event == 'endpoint':
                    on_endpoint(event.data.strip())
                elif event.event in (None, 'message'):
                    on_message(event.data)
                else:
                    logger.debug(f"Ignoring SSE event '{event.event}'")
        except Exception as e:
            if self.closed:
                return
            if not isinstance(e, MCPError):
                e = TransportError(f"Event stream error: {e}")
            on_error(e)

    def post(self, url: str, message: dict) -> None:
        with self._lock:
            if self._closed:
                raise TransportError("Transport not connected")

        parsed = _validate_url(url)
        try:
            body = json.dumps(message, separators=(',', ':')).encode('utf-8')
        except (TypeError, ValueError) as e:
            raise TransportError(f"Failed to serialize message: {e}") from e

        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
            **self.headers,
        }
        conn = _connection(parsed, self.timeout)
        try:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"POST {url} {body.decode('utf-8')}")
            conn.request("POST", _request_path(parsed), body, headers)
            response = conn.getresponse()
            response_data = response.read()
        except (OSError, http.client.HTTPException) as e:
            raise TransportError(f"Failed to POST message: {e}") from e
        finally:
            conn.close()

        if not 200 <= response.status < 300:
            text = response_data[:MAX_ERROR_BODY].decode('utf-8', errors='replace').strip()
            status_line = f"{response.status} {response.reason}"
            if text:
                raise TransportError(f"POST request failed: {status_line}\n{text}")
            raise TransportError(f"POST request failed: {status_line}")

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            conn, sock = self._conn, self._sock
            self._conn = self._sock = None

        if conn is not None:
            if sock is not None:
                try:
                    sock.shutdown(socket.SHUT_RDWR)
                except OSError:
                    pass
            conn.close()
            logger.debug(f"Event stream closed: {self.url}")
