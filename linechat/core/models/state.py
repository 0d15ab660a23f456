from dataclasses import dataclass
from enum import StrEnum


class ConnectionState(StrEnum):
    """
    Lifecycle of the single session connection:

        disconnected -> connecting -> handshaking -> connected
        connected -> closing | failed -> disconnected
    """
    disconnected = "disconnected"
    connecting = "connecting"
    handshaking = "handshaking"
    connected = "connected"
    closing = "closing"
    failed = "failed"


class ProbeResult(StrEnum):
    """Outcome of a short reachability check against a server endpoint."""
    ok = "ok"
    unreachable = "unreachable"
    invalid_host = "invalid_host"
    timeout = "timeout"


@dataclass
class SessionState:
    """
    Identity and endpoint of the live session.

    Created by the ConnectionManager once the handshake line has been
    written and dropped again when the session ends. Only
    `connection_state` changes while the session is alive; the other
    fields are fixed for its whole lifetime.
    """
    local_username: str

    local_avatar_ref: str

    remote_host: str

    remote_port: int

    connection_state: ConnectionState = ConnectionState.handshaking
