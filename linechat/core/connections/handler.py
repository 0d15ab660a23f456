from typing import Protocol

from linechat.core.models.message import Message
from linechat.core.models.state import SessionState


class SessionHandler(Protocol):
    """
    Consumer of everything a session connection produces.

    The ConnectionManager calls the handler only from the dispatch task of
    the active connection (or from disconnect(), once that task has
    stopped), so implementations own the session state without locking.
    """

    def on_opened(self, session: SessionState) -> None:
        """
        Called once the handshake has been written, before the first
        message of the session is delivered.
        """

    def on_message(self, message: Message) -> None:
        """
        Apply one decoded message. Messages arrive in the order their lines
        were read from the socket. An exception raised here is logged and
        the next message is still delivered.
        """

    def on_closed(self, session: SessionState, lost: bool) -> None:
        """
        Called exactly once when a session that completed its handshake
        ends. `lost` is True when the connection failed on its own and
        False when it was closed by disconnect().
        """
