import os
from typing import Generator

import pytest
import pytest_asyncio
import yaml
from tests.fake.fake_renderer import RecordingHandler, RecordingRenderer
from tests.helpers import FakeLineChatConfig, LineChatServer

from linechat.core.conversations.registry import ConversationRegistry
from linechat.core.conversations.tracker import NotificationTracker
from linechat.core.models.config import ClientConfig


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def client_config() -> ClientConfig:
    return ClientConfig(probe_timeout_ms=200, close_timeout=0.5)


@pytest.fixture
def registry(renderer) -> ConversationRegistry:
    return ConversationRegistry(emit=renderer.render)


@pytest.fixture
def tracker(registry, renderer) -> NotificationTracker:
    return NotificationTracker(registry, emit=renderer.render)


@pytest_asyncio.fixture
async def line_server() -> LineChatServer:
    server = LineChatServer()
    await server.start()
    try:
        yield server
    finally:
        await server.stop()


@pytest.fixture
def config_file(tmp_path):
    file = tmp_path / "linechat.yaml"

    data = {
        "server": {
            "host": "chat.example.org",
            "port": 5555,
        },
        "identity": {
            "username": "alice",
            "avatar": "/images/profile3.jpeg",
        },
        "connection": {
            "probe_timeout_ms": 800,
            "max_line_length": 4096,
        },
    }

    file.write_text(yaml.dump(data))
    return file


@pytest.fixture
def env_config(config_file, monkeypatch) -> Generator[type[FakeLineChatConfig], None, None]:
    for key in list(os.environ):
        if key.startswith("LINECHAT"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("TEST_LINECHATCONFIG", str(config_file))
    yield FakeLineChatConfig
