import json
import threading

import pytest

from debatelib.mcp import ToolServerClient, Transport, TransportError

ENDPOINT_PATH = "/messages/?session_id=abc"

INITIALIZE_RESULT = {
    "protocolVersion": "2024-11-05",
    "capabilities": {"tools": {}},
    "serverInfo": {"name": "fake-debate-server", "version": "0.0.1"},
}


class FakeServer:
    """
    Answers posted calls the way a tool server would, by pushing replies
    onto the stream of the transport that posted them.

    handlers maps a method name to a callable(params) returning the reply
    body ({"result": ...} or {"error": ...}) or None for no reply at all.
    'initialize' is answered unless overridden.
    """

    def __init__(self, handlers=None):
        self.handlers = {"initialize": lambda params: {"result": INITIALIZE_RESULT}}
        self.handlers.update(handlers or {})

    def reply(self, message):
        if "id" not in message:
            return None
        handler = self.handlers.get(message["method"])
        if handler is None:
            return None
        body = handler(message.get("params"))
        if body is None:
            return None
        return {"jsonrpc": "2.0", "id": message["id"], **body}


class FakeTransport(Transport):
    """In-memory transport; events are delivered synchronously on the calling thread."""

    def __init__(self, url, server=None, endpoint=ENDPOINT_PATH, open_error=None, stream_error=None):
        self.url = url
        self.server = server
        self.endpoint = endpoint
        self.open_error = open_error
        self.stream_error = stream_error
        self.posts = []
        self.opened = False
        self.closed = False

    def open(self, on_endpoint, on_message, on_error, timeout=None):
        self.open_timeout = timeout
        if self.open_error is not None:
            raise self.open_error
        self.on_endpoint = on_endpoint
        self.on_message = on_message
        self.on_error = on_error
        self.opened = True
        if self.stream_error is not None:
            on_error(self.stream_error)
        elif self.endpoint is not None:
            on_endpoint(self.endpoint)

    def post(self, url, message):
        if self.closed:
            raise TransportError("Transport not connected")
        self.posts.append((url, message))
        if self.server is not None:
            reply = self.server.reply(message)
            if reply is not None:
                self.push(reply)

    def push(self, message):
        self.on_message(message if isinstance(message, str) else json.dumps(message))

    def fail(self, error):
        self.on_error(error)

    def close(self):
        self.closed = True

    @property
    def methods(self):
        return [message["method"] for _, message in self.posts]


class TransportRecorder:
    """transport_factory that keeps every transport it builds."""

    def __init__(self, server=None, **kwargs):
        self.server = server
        self.kwargs = kwargs
        self.transports = []
        self.lock = threading.Lock()

    def __call__(self, url):
        transport = FakeTransport(url, self.server, **self.kwargs)
        with self.lock:
            self.transports.append(transport)
        return transport

    @property
    def last(self):
        return self.transports[-1]


def topic_result(payload):
    return {"result": {"content": [{"type": "text", "text": json.dumps(payload)}]}}


@pytest.fixture
def make_client():
    def factory(handlers=None, **kwargs):
        transport_kwargs = {
            k: kwargs.pop(k) for k in ("endpoint", "open_error", "stream_error") if k in kwargs
        }
        recorder = TransportRecorder(FakeServer(handlers), **transport_kwargs)
        kwargs.setdefault("call_timeout", 2.0)
        kwargs.setdefault("session_timeout", 2.0)
        client = ToolServerClient("http://localhost:8000", transport_factory=recorder, **kwargs)
        return client, recorder
    return factory
