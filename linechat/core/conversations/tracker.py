import logging
from collections.abc import Callable

from linechat.core.conversations.registry import ConversationRegistry
from linechat.core.models.event import Event, UnreadChanged


class NotificationTracker:
    """
    Tracks which conversation the user is looking at and keeps the
    unread markers of all the others.

    A conversation becomes unread when a record not authored by the local
    user is appended while it is not focused, and stops being unread when
    it gets the focus. The focused conversation is therefore never unread.
    UnreadChanged events are emitted only when a flag actually flips.
    """

    def __init__(
        self,
        registry: ConversationRegistry,
        emit: Callable[[Event], None],
    ) -> None:
        self._registry = registry
        self._emit = emit
        self._focused = registry.general_id
        self._logger = logging.getLogger("core.conversations.tracker")

        registry.on_append(self.on_appended)

    @property
    def focused(self) -> str:
        return self._focused

    def focus(self, conversation_id: str) -> None:
        conversation = self._registry.get(conversation_id)
        self._focused = conversation_id
        if conversation.unread:
            conversation.unread = False
            self._emit(UnreadChanged(id=conversation_id, unread=False))

    def on_appended(self, conversation_id: str, from_self: bool) -> None:
        if from_self or conversation_id == self._focused:
            return

        conversation = self._registry.get(conversation_id)
        if not conversation.unread:
            conversation.unread = True
            self._emit(UnreadChanged(id=conversation_id, unread=True))

    def on_closed(self, conversation_id: str) -> None:
        """Move the focus back to general if the closed conversation had it."""
        if conversation_id == self._focused:
            self._logger.debug(
                f"Focused conversation '{conversation_id}' closed, "
                f"focusing '{self._registry.general_id}'"
            )
            self.focus(self._registry.general_id)

    def reset(self) -> None:
        self._focused = self._registry.general_id

    def unread(self) -> list[str]:
        return [
            cid for cid in self._registry.list()
            if self._registry.get(cid).unread
        ]
