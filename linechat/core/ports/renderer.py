from typing import Protocol

from linechat.core.models.event import Event


class Renderer(Protocol):
    """
    Passive presentation layer attached to a chat session.

    The core pushes every state change as a typed event, in the order the
    changes happen. Implementations are called on the event loop thread
    and must not block; they issue commands back through the session
    facade only.
    """

    def render(self, event: Event) -> None:
        """Present a single event."""
