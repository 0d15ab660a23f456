from dataclasses import dataclass

from linechat.core.models.conversation import ChatRecord
from linechat.core.models.state import ConnectionState


@dataclass(frozen=True)
class UserListChanged:
    names: tuple[str, ...]


@dataclass(frozen=True)
class ConversationOpened:
    id: str


@dataclass(frozen=True)
class ConversationClosed:
    id: str


@dataclass(frozen=True)
class MessageAppended:
    id: str
    record: ChatRecord


@dataclass(frozen=True)
class UnreadChanged:
    id: str
    unread: bool


@dataclass(frozen=True)
class ConnectionStateChanged:
    state: ConnectionState


@dataclass(frozen=True)
class ConnectionLost:
    """Emitted exactly once when a live session ends without a disconnect()."""
    host: str
    port: int


Event = (
    UserListChanged
    | ConversationOpened
    | ConversationClosed
    | MessageAppended
    | UnreadChanged
    | ConnectionStateChanged
    | ConnectionLost
)
