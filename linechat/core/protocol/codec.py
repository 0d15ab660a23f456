"""
Line protocol spoken with the chat server.

Client to server::

    <username>|<avatarRef>        handshake, sent once after connecting
    <text>                        message to the general conversation
    @<peer>: <text>               private message

Server to client::

    USERLIST:<name>,<name>,...
    <header>|<avatarRef>|<text>

where the header is either a plain username (public message) or one of
``[Private from <name>]``, ``[Private to <name>]`` and
``[Private Error <name>]``.
"""
import logging
import re

from linechat.core.models.conversation import GENERAL_ID
from linechat.core.models.errors import ProtocolError
from linechat.core.models.message import (
    Message,
    PrivateError,
    PrivateIncoming,
    PrivateOutgoingAck,
    PublicMessage,
    UserListUpdate,
)

USERLIST_PREFIX = "USERLIST:"
FIELD_SEPARATOR = "|"
USER_SEPARATOR = ","
PRIVATE_PREFIX = "@"

_FIELD_COUNT = 3
_LINE_TERMINATORS = ("\n", "\r")

# Ordered from most to least specific.
_PRIVATE_HEADERS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("error", re.compile(r"\[Private Error (?P<name>.+)\]")),
    ("from", re.compile(r"\[Private from (?P<name>.+)\]")),
    ("to", re.compile(r"\[Private to (?P<name>.+)\]")),
)

logger = logging.getLogger("core.protocol.codec")


def decode(line: str, local_username: str) -> Message | None:
    """
    Decode one server line, without its terminator.

    Returns None for lines that match no known shape; those are logged
    and otherwise ignored.
    """
    if line.startswith(USERLIST_PREFIX):
        raw = line[len(USERLIST_PREFIX):]
        names = tuple(name for name in raw.split(USER_SEPARATOR) if name)
        return UserListUpdate(names=names)

    if FIELD_SEPARATOR not in line:
        logger.warning(f"Discarding unrecognized line: {line!r}")
        return None

    # The text is everything after the second separator and may itself
    # contain separators.
    fields = line.split(FIELD_SEPARATOR, _FIELD_COUNT - 1)
    if len(fields) < _FIELD_COUNT:
        logger.warning(
            f"Discarding line with {len(fields)} fields, "
            f"expected {_FIELD_COUNT}: {line!r}"
        )
        return None

    header, avatar_ref, text = fields
    kind, name = _classify(header)
    match kind:
        case "error":
            return PrivateError(target=name, reason_text=text)
        case "from":
            return PrivateIncoming(sender=name, avatar_ref=avatar_ref, text=text)
        case "to":
            return PrivateOutgoingAck(target=name, text=text)
        case _:
            return PublicMessage(
                sender=header,
                avatar_ref=avatar_ref,
                text=text,
                is_self=header == local_username,
            )


def encode(text: str, target_id: str, general_id: str = GENERAL_ID) -> str:
    """Build the outbound line for `text` addressed to a conversation."""
    _reject_terminators(text, "message text")
    if target_id == general_id:
        return text
    return f"{PRIVATE_PREFIX}{target_id}: {text}"


def encode_handshake(username: str, avatar_ref: str) -> str:
    if not username:
        raise ProtocolError("Username must not be empty")
    if FIELD_SEPARATOR in username:
        raise ProtocolError(
            f"Username must not contain {FIELD_SEPARATOR!r}: {username!r}"
        )
    _reject_terminators(username, "username")
    _reject_terminators(avatar_ref, "avatar reference")
    return f"{username}{FIELD_SEPARATOR}{avatar_ref}"


def _classify(header: str) -> tuple[str | None, str]:
    for kind, pattern in _PRIVATE_HEADERS:
        if match := pattern.fullmatch(header):
            return kind, match.group("name")
    return None, header


def _reject_terminators(value: str, what: str) -> None:
    if any(term in value for term in _LINE_TERMINATORS):
        raise ProtocolError(f"The {what} must not contain a line terminator")
