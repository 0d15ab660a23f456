import logging
from collections.abc import Callable

from linechat.core.conversations.registry import ConversationRegistry
from linechat.core.conversations.tracker import NotificationTracker
from linechat.core.models.conversation import SYSTEM_AUTHOR, ChatRecord, Conversation
from linechat.core.models.event import (
    ConnectionLost,
    ConversationClosed,
    ConversationOpened,
    Event,
    UserListChanged,
)
from linechat.core.models.message import (
    Message,
    PrivateError,
    PrivateIncoming,
    PrivateOutgoingAck,
    PublicMessage,
    UserListUpdate,
)
from linechat.core.models.state import SessionState


class MessageRouter:
    """
    Session handler that turns decoded server messages into conversation
    updates.

    Public messages go to the general conversation. Every private variant
    goes to the conversation named after the peer, which is opened on
    first reference. Appending a record notifies the tracker through the
    registry hook, so unread markers follow automatically.
    """

    def __init__(
        self,
        registry: ConversationRegistry,
        tracker: NotificationTracker,
        emit: Callable[[Event], None],
        default_avatar: str,
    ) -> None:
        self._registry = registry
        self._tracker = tracker
        self._emit = emit
        self._default_avatar = default_avatar
        self._session: SessionState | None = None
        self._users: tuple[str, ...] = ()
        self._logger = logging.getLogger("core.service.router")

    @property
    def users(self) -> tuple[str, ...]:
        return self._users

    def on_opened(self, session: SessionState) -> None:
        # Conversations opened while offline do not carry into the session.
        self._reset()
        self._session = session

    def on_message(self, message: Message) -> None:
        match message:
            case UserListUpdate(names=names):
                self._users = names
                self._emit(UserListChanged(names=names))
            case PublicMessage():
                record = ChatRecord(
                    author=message.sender,
                    avatar_ref=self._avatar(message.avatar_ref),
                    text=message.text,
                    is_self=message.is_self,
                )
                self.deliver(self._registry.general_id, record)
            case PrivateIncoming():
                record = ChatRecord(
                    author=message.sender,
                    avatar_ref=self._avatar(message.avatar_ref),
                    text=message.text,
                )
                self.deliver(message.sender, record)
            case PrivateOutgoingAck():
                session = self._require_session()
                record = ChatRecord(
                    author=session.local_username,
                    avatar_ref=self._avatar(session.local_avatar_ref),
                    text=message.text,
                    is_self=True,
                )
                self.deliver(message.target, record)
            case PrivateError():
                record = ChatRecord(
                    author=SYSTEM_AUTHOR,
                    avatar_ref=self._default_avatar,
                    text=message.reason_text,
                    is_system=True,
                )
                self.deliver(message.target, record)
            case _:
                self._logger.warning(f"No route for message {message!r}")

    def on_closed(self, session: SessionState, lost: bool) -> None:
        if lost:
            self._emit(ConnectionLost(
                host=session.remote_host,
                port=session.remote_port,
            ))

        self._reset()
        self._session = None

    def open(self, conversation_id: str) -> Conversation:
        conversation, created = self._registry.ensure(conversation_id)
        if created:
            self._emit(ConversationOpened(id=conversation_id))
        return conversation

    def deliver(self, conversation_id: str, record: ChatRecord) -> None:
        self.open(conversation_id)
        self._registry.append(conversation_id, record)

    def _reset(self) -> None:
        for conversation_id in self._registry.reset():
            self._emit(ConversationClosed(id=conversation_id))
        self._tracker.reset()

        if self._users:
            self._users = ()
            self._emit(UserListChanged(names=()))

    def _avatar(self, avatar_ref: str) -> str:
        return avatar_ref or self._default_avatar

    def _require_session(self) -> SessionState:
        if self._session is None:
            raise RuntimeError("Message received outside of a session")
        return self._session
