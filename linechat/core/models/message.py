from dataclasses import dataclass


@dataclass(frozen=True)
class UserListUpdate:
    """Full list of users currently known to the server."""
    names: tuple[str, ...]


@dataclass(frozen=True)
class PublicMessage:
    sender: str
    avatar_ref: str
    text: str
    is_self: bool


@dataclass(frozen=True)
class PrivateIncoming:
    sender: str
    avatar_ref: str
    text: str


@dataclass(frozen=True)
class PrivateOutgoingAck:
    """
    Server echo of a private message sent by the local user. The avatar
    carried on the wire is ignored; the local avatar is used instead.
    """
    target: str
    text: str


@dataclass(frozen=True)
class PrivateError:
    """Delivery failure for a private message, e.g. the target went offline."""
    target: str
    reason_text: str


Message = (
    UserListUpdate
    | PublicMessage
    | PrivateIncoming
    | PrivateOutgoingAck
    | PrivateError
)
"""
A single decoded server line. Lines that cannot be decoded never become
a Message; the codec discards them.
"""
