from dataclasses import dataclass, field
from datetime import datetime

GENERAL_ID = "general"
"""Identifier of the shared conversation every session starts with."""

SYSTEM_AUTHOR = "System"


@dataclass(frozen=True)
class ChatRecord:
    """
    A message as it is stored in a conversation history and handed to the
    renderer. Records are immutable once appended.
    """
    author: str

    avatar_ref: str

    text: str

    is_self: bool = False
    """True when the local user authored the message."""

    is_system: bool = False
    """True for records produced by the server itself (delivery errors)."""

    received_at: datetime = field(default_factory=datetime.now)
    """Local wall-clock time at which the line was received."""

    @property
    def clock(self) -> str:
        return self.received_at.strftime("%H:%M")


@dataclass
class Conversation:
    id: str

    closable: bool

    history: list[ChatRecord] = field(default_factory=list)
    """Records in wire arrival order."""

    unread: bool = False
