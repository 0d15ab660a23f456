import asyncio
import io
from unittest.mock import patch

import pytest
import pytest_asyncio
from tests.fake.fake_stream import stream_pair

from linechat.bootstrap.console import ChatConsole, start_stdin_reader
from linechat.core.facade import ChatClient


@pytest_asyncio.fixture
async def client(client_config, renderer):
    client = ChatClient(client_config, renderer, loop=asyncio.get_running_loop())
    try:
        yield client
    finally:
        await client.close()


async def run_console(client, *lines, stop_event=None):
    out = io.StringIO()
    queue: asyncio.Queue = asyncio.Queue()
    for line in lines:
        queue.put_nowait(line)
    queue.put_nowait(None)

    await ChatConsole(client, stdout=out).run(queue, stop_event or asyncio.Event())
    return out.getvalue().splitlines()[2:]


async def connect(client):
    reader, writer = stream_pair()
    with patch("asyncio.open_connection", return_value=(reader, writer)):
        await client.connect("127.0.0.1", 5000, "alice", "/a.png")
    return writer


@pytest.mark.ut
@pytest.mark.asyncio
async def test_plain_lines_go_to_focused_conversation(client):
    writer = await connect(client)

    await run_console(client, "hello all", "/open bob", "hey bob", "/focus general", "back")

    assert writer.lines == ["alice|/a.png", "hello all", "@bob: hey bob", "back"]


@pytest.mark.ut
@pytest.mark.asyncio
async def test_open_and_list(client):
    output = await run_console(client, "/open bob", "/open carol", "/focus bob", "/list")

    assert output[-3:] == ["   general", ">  bob", "   carol"]


@pytest.mark.ut
@pytest.mark.asyncio
async def test_close_defaults_to_focused(client):
    await run_console(client, "/open bob", "/close")

    assert client.conversations() == ["general"]
    assert client.focused == "general"


@pytest.mark.ut
@pytest.mark.asyncio
async def test_errors_are_printed_not_raised(client):
    output = await run_console(
        client,
        "/close general",
        "/focus nobody",
        "/bogus",
        "hello",
    )

    assert output[0].startswith("! ")
    assert "nobody" in output[1]
    assert output[2].startswith("! Unknown command: /bogus")
    assert output[3] == "! Not connected"


@pytest.mark.ut
@pytest.mark.asyncio
async def test_users_command(client):
    output = await run_console(client, "/users")
    assert output == ["* Online: (nobody)"]


@pytest.mark.ut
@pytest.mark.asyncio
async def test_quit_stops_before_remaining_lines(client):
    writer = await connect(client)

    await run_console(client, "first", "/quit", "never sent")

    assert writer.lines == ["alice|/a.png", "first"]


@pytest.mark.ut
@pytest.mark.asyncio
async def test_blank_lines_are_ignored(client):
    writer = await connect(client)

    output = await run_console(client, "", "   ")

    assert output == []
    assert writer.lines == ["alice|/a.png"]


@pytest.mark.ut
@pytest.mark.asyncio
async def test_stop_event_ends_run(client):
    stop_event = asyncio.Event()
    queue: asyncio.Queue = asyncio.Queue()
    console = ChatConsole(client, stdout=io.StringIO())

    task = asyncio.ensure_future(console.run(queue, stop_event))
    await asyncio.sleep(0)
    stop_event.set()

    await asyncio.wait_for(task, timeout=1)


@pytest.mark.ut
@pytest.mark.asyncio
async def test_stdin_reader_forwards_lines_then_eof():
    queue: asyncio.Queue = asyncio.Queue()
    thread = start_stdin_reader(
        asyncio.get_running_loop(), queue, stream=io.StringIO("one\r\ntwo\n")
    )

    received = [await asyncio.wait_for(queue.get(), timeout=1) for _ in range(3)]
    thread.join(timeout=1)

    assert received == ["one", "two", None]
