import logging
from collections.abc import Callable

from linechat.core.models.conversation import GENERAL_ID, ChatRecord, Conversation
from linechat.core.models.errors import InvalidOperation
from linechat.core.models.event import Event, MessageAppended

AppendHook = Callable[[str, bool], None]
"""
Called after every append with the conversation id and whether the
appended record was authored by the local user.
"""


class ConversationRegistry:
    """
    Owns the set of conversations of a session and their histories.

    The general conversation is created with the registry, is never
    closable and survives every operation except `reset()`, which
    recreates it empty. Private conversations are created lazily by
    `ensure()` and removed only by `close()`.

    Conversations are kept in insertion order, so `list()` always starts
    with the general conversation. The registry is not thread-safe: it
    is owned by the event loop that runs the session.
    """

    def __init__(
        self,
        emit: Callable[[Event], None],
        general_id: str = GENERAL_ID,
    ) -> None:
        self._emit = emit
        self._general_id = general_id
        self._conversations: dict[str, Conversation] = {}
        self._append_hooks: list[AppendHook] = []
        self._logger = logging.getLogger("core.conversations.registry")

        self._create_general()

    @property
    def general_id(self) -> str:
        return self._general_id

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._conversations

    def __len__(self) -> int:
        return len(self._conversations)

    def get(self, conversation_id: str) -> Conversation:
        """
        Return the conversation with the given id.

        Raises InvalidOperation when it does not exist.
        """
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise InvalidOperation(f"Unknown conversation '{conversation_id}'")
        return conversation

    def ensure(self, conversation_id: str) -> tuple[Conversation, bool]:
        """
        Return the conversation with the given id, creating it if needed.

        The second element of the result is True when the conversation was
        created by this call, so the caller can announce it.
        """
        conversation = self._conversations.get(conversation_id)
        if conversation is not None:
            return conversation, False

        conversation = Conversation(
            id=conversation_id,
            closable=conversation_id != self._general_id,
        )
        self._conversations[conversation_id] = conversation
        self._logger.debug(f"Created conversation '{conversation_id}'")
        return conversation, True

    def append(self, conversation_id: str, record: ChatRecord) -> None:
        conversation = self.get(conversation_id)
        conversation.history.append(record)
        self._emit(MessageAppended(id=conversation_id, record=record))

        for hook in self._append_hooks:
            hook(conversation_id, record.is_self)

    def close(self, conversation_id: str) -> None:
        if conversation_id == self._general_id:
            raise InvalidOperation("The general conversation cannot be closed")

        conversation = self.get(conversation_id)
        if not conversation.closable:
            raise InvalidOperation(f"Conversation '{conversation_id}' is not closable")

        del self._conversations[conversation_id]
        self._logger.debug(
            f"Closed conversation '{conversation_id}' "
            f"({len(conversation.history)} records dropped)"
        )

    def on_append(self, hook: AppendHook) -> None:
        self._append_hooks.append(hook)

    def reset(self) -> list[str]:
        """
        Drop every conversation and start again with an empty general one.

        Returns the ids of the private conversations that were removed.
        """
        removed = [cid for cid in self._conversations if cid != self._general_id]
        self._conversations.clear()
        self._create_general()
        return removed

    def _create_general(self) -> None:
        self.ensure(self._general_id)

    # Kept last: defining `list` shadows the builtin for later annotations.
    def list(self) -> list[str]:
        return list(self._conversations)
