import asyncio
import os
from collections.abc import Callable

from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, YamlConfigSettingsSource

from linechat.bootstrap.config.settings import LineChatConfig


class FakeLineChatConfig(LineChatConfig):
    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=os.environ["TEST_LINECHATCONFIG"]),
        )


async def settle(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the event loop until `predicate` holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.001)


class LineChatServer:
    """
    Small line chat server used by integration tests.

    Speaks the same protocol as the real server: the first line of a
    client is `<name>|<avatar>`, `@<peer>: <text>` is a private message
    and anything else is broadcast to everybody, sender included.
    """

    def __init__(self) -> None:
        self._server: asyncio.Server | None = None
        self.port = 0
        self._clients: dict[str, tuple[str, asyncio.StreamWriter]] = {}
        self.received: list[tuple[str, str]] = []

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._serve, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        for _, writer in list(self._clients.values()):
            writer.close()
        self._clients.clear()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    async def kick(self, name: str) -> None:
        _, writer = self._clients.pop(name)
        writer.close()
        await writer.wait_closed()
        await self._send_userlist()

    async def _serve(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        handshake = (await reader.readline()).decode().rstrip("\n")
        if "|" not in handshake:
            writer.close()
            return
        name, avatar = handshake.split("|", 1)
        self._clients[name] = (avatar, writer)
        await self._send_userlist()

        try:
            while raw := await reader.readline():
                line = raw.decode().rstrip("\n")
                self.received.append((name, line))
                await self._route(name, avatar, line)
        except ConnectionError:
            pass
        finally:
            writer.close()
            if self._clients.get(name, (None, None))[1] is writer:
                del self._clients[name]
                await self._send_userlist()

    async def _route(self, name: str, avatar: str, line: str) -> None:
        if line.startswith("@") and ": " in line:
            peer, text = line[1:].split(": ", 1)
            if peer not in self._clients:
                await self._send(name, f"[Private Error {peer}]|/none|User offline")
                return
            await self._send(peer, f"[Private from {name}]|{avatar}|{text}")
            await self._send(name, f"[Private to {peer}]|{avatar}|{text}")
            return

        for peer in list(self._clients):
            await self._send(peer, f"{name}|{avatar}|{line}")

    async def _send_userlist(self) -> None:
        names = "".join(f"{peer}," for peer in self._clients)
        for peer in list(self._clients):
            await self._send(peer, f"USERLIST:{names}")

    async def _send(self, name: str, line: str) -> None:
        entry = self._clients.get(name)
        if entry is None:
            return
        writer = entry[1]
        try:
            writer.write(f"{line}\n".encode())
            await writer.drain()
        except ConnectionError:
            # peer went away, its own session loop cleans up
            return
