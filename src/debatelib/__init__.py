from .core import logger, JSON_INDENT
from .config import Settings, load_settings
from .topics import Speaker, Message, TopicDraft, Topic, transcript
from .storage import (
    StorageError,
    TopicRepository,
    SQLiteTopicRepository,
    RemoteTopicRepository,
    create_repository,
)
from .mcp import (
    ToolServerClient,
    ToolDescriptor,
    SessionState,
    MCPError,
    TransportError,
    ProtocolError,
    SessionNotEstablishedError,
    RPCError,
    MCPTimeoutError,
    ContentError,
)

__all__ = [
    "Settings",
    "load_settings",
    # Topics
    "Speaker",
    "Message",
    "TopicDraft",
    "Topic",
    "transcript",
    # Storage
    "StorageError",
    "TopicRepository",
    "SQLiteTopicRepository",
    "RemoteTopicRepository",
    "create_repository",
    # Tool server
    "ToolServerClient",
    "ToolDescriptor",
    "SessionState",
    "MCPError",
    "TransportError",
    "ProtocolError",
    "SessionNotEstablishedError",
    "RPCError",
    "MCPTimeoutError",
    "ContentError",
]

__version__ = "0.1.0"
