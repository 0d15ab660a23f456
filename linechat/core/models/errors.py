class ChatError(Exception):
    """Base class for all errors raised by the chat core."""


class InvalidOperation(ChatError):
    """The command is not allowed in the current state; nothing was changed."""


class ConnectError(ChatError):
    """The session socket could not be opened or the handshake not sent."""


class ProtocolError(ChatError, ValueError):
    """A value cannot be represented on the line protocol."""
