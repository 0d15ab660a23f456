import pytest

from linechat.core.models.event import (
    ConnectionLost,
    ConversationClosed,
    ConversationOpened,
    MessageAppended,
    UnreadChanged,
    UserListChanged,
)
from linechat.core.models.message import (
    PrivateError,
    PrivateIncoming,
    PrivateOutgoingAck,
    PublicMessage,
    UserListUpdate,
)
from linechat.core.models.state import SessionState
from linechat.core.service.router import MessageRouter

DEFAULT_AVATAR = "/images/profile0.jpeg"


@pytest.fixture
def session():
    return SessionState(
        local_username="alice",
        local_avatar_ref="/images/alice.png",
        remote_host="127.0.0.1",
        remote_port=5000,
    )


@pytest.fixture
def router(registry, tracker, renderer, session):
    router = MessageRouter(
        registry=registry,
        tracker=tracker,
        emit=renderer.render,
        default_avatar=DEFAULT_AVATAR,
    )
    router.on_opened(session)
    return router


@pytest.mark.ut
def test_public_message_goes_to_general(router, registry, renderer):
    router.on_message(PublicMessage(sender="bob", avatar_ref="/b.png", text="hello", is_self=False))

    [record] = registry.get("general").history
    assert record.author == "bob"
    assert record.avatar_ref == "/b.png"
    assert record.text == "hello"
    assert record.is_self is False
    assert renderer.of_type(UnreadChanged) == []
    assert renderer.of_type(ConversationOpened) == []


@pytest.mark.ut
def test_incoming_private_opens_conversation_and_marks_unread(router, registry, tracker, renderer):
    router.on_message(PrivateIncoming(sender="bob", avatar_ref="/b.png", text="psst"))

    assert registry.list() == ["general", "bob"]
    [record] = registry.get("bob").history
    assert record.author == "bob"
    assert record.text == "psst"
    assert registry.get("bob").unread is True
    assert tracker.focused == "general"
    assert renderer.events == [
        ConversationOpened(id="bob"),
        MessageAppended(id="bob", record=record),
        UnreadChanged(id="bob", unread=True),
    ]


@pytest.mark.ut
def test_outgoing_ack_uses_local_identity(router, registry, renderer):
    router.on_message(PrivateOutgoingAck(target="bob", text="hi bob"))

    [record] = registry.get("bob").history
    assert record.author == "alice"
    assert record.avatar_ref == "/images/alice.png"
    assert record.is_self is True
    assert registry.get("bob").unread is False
    assert renderer.of_type(UnreadChanged) == []


@pytest.mark.ut
def test_private_error_is_system_record(router, registry):
    router.on_message(PrivateError(target="carol", reason_text="User offline"))

    [record] = registry.get("carol").history
    assert record.author == "System"
    assert record.is_system is True
    assert record.avatar_ref == DEFAULT_AVATAR
    assert record.text == "User offline"


@pytest.mark.ut
def test_empty_avatar_falls_back_to_default(router, registry):
    router.on_message(PublicMessage(sender="bob", avatar_ref="", text="x", is_self=False))
    assert registry.get("general").history[0].avatar_ref == DEFAULT_AVATAR


@pytest.mark.ut
def test_user_list_replaces_previous(router, renderer):
    router.on_message(UserListUpdate(names=("alice", "bob")))
    router.on_message(UserListUpdate(names=("alice",)))

    assert router.users == ("alice",)
    assert renderer.of_type(UserListChanged) == [
        UserListChanged(names=("alice", "bob")),
        UserListChanged(names=("alice",)),
    ]


@pytest.mark.ut
def test_user_list_does_not_touch_conversations(router, registry):
    router.on_message(UserListUpdate(names=("alice", "bob", "carol")))
    assert registry.list() == ["general"]


@pytest.mark.ut
def test_focused_private_stays_read(router, registry, tracker):
    router.open("bob")
    tracker.focus("bob")

    router.on_message(PrivateIncoming(sender="bob", avatar_ref="/b.png", text="1"))
    router.on_message(PublicMessage(sender="carol", avatar_ref="/c.png", text="2", is_self=False))

    assert registry.get("bob").unread is False
    assert registry.get("general").unread is True


@pytest.mark.ut
def test_ack_after_incoming_shares_conversation(router, registry):
    router.on_message(PrivateIncoming(sender="bob", avatar_ref="/b.png", text="ping"))
    router.on_message(PrivateOutgoingAck(target="bob", text="pong"))

    history = registry.get("bob").history
    assert [r.text for r in history] == ["ping", "pong"]
    assert [r.is_self for r in history] == [False, True]


@pytest.mark.ut
def test_open_is_idempotent(router, renderer):
    router.open("bob")
    router.open("bob")
    assert renderer.of_type(ConversationOpened) == [ConversationOpened(id="bob")]


@pytest.mark.ut
def test_closed_lost_resets_everything(router, registry, tracker, renderer, session):
    router.on_message(UserListUpdate(names=("alice", "bob")))
    router.on_message(PrivateIncoming(sender="bob", avatar_ref="/b.png", text="psst"))
    router.on_message(PublicMessage(sender="bob", avatar_ref="/b.png", text="hey", is_self=False))
    tracker.focus("bob")
    renderer.clear()

    router.on_closed(session, lost=True)

    assert renderer.events == [
        ConnectionLost(host="127.0.0.1", port=5000),
        ConversationClosed(id="bob"),
        UserListChanged(names=()),
    ]
    assert registry.list() == ["general"]
    assert registry.get("general").history == []
    assert tracker.focused == "general"
    assert router.users == ()


@pytest.mark.ut
def test_closed_by_disconnect_does_not_report_loss(router, renderer, session):
    router.on_closed(session, lost=False)
    assert renderer.of_type(ConnectionLost) == []
    assert renderer.of_type(UserListChanged) == []


@pytest.mark.ut
def test_opened_session_starts_from_clean_slate(router, registry, tracker, renderer, session):
    router.open("bob")
    tracker.focus("bob")
    router.on_message(UserListUpdate(names=("alice", "bob")))
    renderer.clear()

    router.on_opened(session)

    assert registry.list() == ["general"]
    assert tracker.focused == "general"
    assert router.users == ()
    assert renderer.events == [
        ConversationClosed(id="bob"),
        UserListChanged(names=()),
    ]
