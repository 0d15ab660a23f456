import sys
from collections.abc import Callable
from typing import TextIO

from linechat.core.models.event import (
    ConnectionLost,
    ConnectionStateChanged,
    ConversationClosed,
    ConversationOpened,
    Event,
    MessageAppended,
    UnreadChanged,
    UserListChanged,
)
from linechat.core.models.state import ConnectionState
from linechat.core.ports.renderer import Renderer


class TerminalRenderer(Renderer):
    """
    Prints chat events as plain text lines.

    Messages are prefixed with their conversation so interleaved general
    and private traffic stays readable; notices start with '*'.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        on_lost: Callable[[], None] | None = None,
    ) -> None:
        self._stream = stream or sys.stdout
        self._on_lost = on_lost

    def render(self, event: Event) -> None:
        match event:
            case MessageAppended(id=conversation_id, record=record):
                if record.is_system:
                    self._print(f"[{conversation_id}] {record.clock} ! {record.text}")
                else:
                    author = f"{record.author} (you)" if record.is_self else record.author
                    self._print(f"[{conversation_id}] {record.clock} <{author}> {record.text}")
            case UserListChanged(names=names):
                self._print(f"* Online: {', '.join(names) if names else '(nobody)'}")
            case ConversationOpened(id=conversation_id):
                self._print(f"* Private conversation with {conversation_id} opened")
            case ConversationClosed(id=conversation_id):
                self._print(f"* Private conversation with {conversation_id} closed")
            case UnreadChanged(id=conversation_id, unread=True):
                self._print(f"* New messages in {conversation_id}")
            case ConnectionStateChanged(state=ConnectionState.connected):
                self._print("* Connected")
            case ConnectionStateChanged(state=ConnectionState.disconnected):
                self._print("* Disconnected")
            case ConnectionLost(host=host, port=port):
                self._print(f"* Connection to {host}:{port} lost")
                if self._on_lost is not None:
                    self._on_lost()

    def _print(self, text: str) -> None:
        print(text, file=self._stream, flush=True)
