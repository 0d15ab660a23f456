import asyncio
import logging

from linechat.core.connections.manager import ConnectionManager
from linechat.core.conversations.registry import ConversationRegistry
from linechat.core.conversations.tracker import NotificationTracker
from linechat.core.helpers.spawn import TaskSpawner
from linechat.core.models.config import ClientConfig
from linechat.core.models.conversation import ChatRecord
from linechat.core.models.errors import InvalidOperation
from linechat.core.models.event import ConversationClosed, Event
from linechat.core.models.state import ConnectionState, ProbeResult, SessionState
from linechat.core.ports.renderer import Renderer
from linechat.core.protocol.codec import encode
from linechat.core.service.router import MessageRouter


class ChatClient:
    """
    The chat session object owned by the application.

    It wires the conversation registry, the notification tracker, the
    message router and the connection manager together, forwards every
    event to the renderer, and exposes the commands a renderer may issue.
    All commands must be called from the event loop the client was built
    on; that loop is the single owner of the session state.
    """

    def __init__(
        self,
        config: ClientConfig,
        renderer: Renderer,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if loop is None:
            loop = asyncio.get_running_loop()

        self._config = config
        self._renderer = renderer
        self._loop = loop
        self._spawner = TaskSpawner(loop=loop)
        self._registry = ConversationRegistry(emit=self._emit)
        self._tracker = NotificationTracker(self._registry, emit=self._emit)
        self._router = MessageRouter(
            registry=self._registry,
            tracker=self._tracker,
            emit=self._emit,
            default_avatar=config.default_avatar,
        )
        self._manager = ConnectionManager(
            config=config,
            handler=self._router,
            emit=self._emit,
            spawner=self._spawner,
        )
        self._logger = logging.getLogger("core.facade")

    @property
    def spawner(self) -> TaskSpawner:
        return self._spawner

    @property
    def state(self) -> ConnectionState:
        return self._manager.state

    @property
    def session(self) -> SessionState | None:
        return self._manager.session

    @property
    def users(self) -> tuple[str, ...]:
        return self._router.users

    @property
    def focused(self) -> str:
        return self._tracker.focused

    @property
    def general_id(self) -> str:
        return self._registry.general_id

    def conversations(self) -> list[str]:
        return self._registry.list()

    def history(self, conversation_id: str) -> list[ChatRecord]:
        return list(self._registry.get(conversation_id).history)

    def is_unread(self, conversation_id: str) -> bool:
        return self._registry.get(conversation_id).unread

    async def probe(self, host: str, port: int, timeout_ms: int | None = None) -> ProbeResult:
        return await self._manager.probe(host, port, timeout_ms)

    async def connect(self, host: str, port: int, username: str, avatar_ref: str) -> SessionState:
        return await self._manager.connect(host, port, username, avatar_ref)

    async def disconnect(self) -> None:
        await self._manager.disconnect()

    async def send_text(self, conversation_id: str, text: str) -> None:
        """
        Send `text` to a conversation. Nothing is appended locally; the
        server echo shows up in the history like any other message.
        """
        text = text.strip()
        if not text:
            return

        self._registry.get(conversation_id)
        if not self._manager.connected:
            raise InvalidOperation("Not connected")

        line = encode(text, conversation_id, self._registry.general_id)
        await self._manager.send_line(line)

    def open_conversation(self, peer_name: str) -> None:
        peer_name = peer_name.strip()
        if not peer_name:
            raise InvalidOperation("Peer name must not be empty")

        session = self._manager.session
        if session is not None and peer_name == session.local_username:
            raise InvalidOperation("Cannot open a conversation with yourself")

        self._router.open(peer_name)
        self._tracker.focus(peer_name)

    def close_conversation(self, conversation_id: str) -> None:
        self._registry.close(conversation_id)
        self._tracker.on_closed(conversation_id)
        self._emit(ConversationClosed(id=conversation_id))

    def focus_conversation(self, conversation_id: str) -> None:
        self._tracker.focus(conversation_id)

    async def close(self) -> None:
        await self.disconnect()
        await self._spawner.cancel_all()

    def _emit(self, event: Event) -> None:
        try:
            self._renderer.render(event)
        except Exception as ex:
            self._logger.error(f"Renderer failed on {event!r}: {ex}", exc_info=ex)
