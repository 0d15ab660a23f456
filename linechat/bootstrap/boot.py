import asyncio

from linechat.bootstrap.config.loader import get_cli_args
from linechat.bootstrap.config.settings import LineChatConfig
from linechat.bootstrap.console import ChatConsole, start_stdin_reader
from linechat.bootstrap.deps import get_config
from linechat.core.facade import ChatClient
from linechat.core.helpers.utils import setup_logging, setup_signal_handler
from linechat.core.models.errors import ChatError
from linechat.core.models.state import ProbeResult
from linechat.infra.terminal_renderer import TerminalRenderer

PROBE_ERRORS = {
    ProbeResult.invalid_host: "Invalid IP address format",
    ProbeResult.unreachable: "Check IP address and port number",
    ProbeResult.timeout: "Check IP address and port number",
}


async def run(config: LineChatConfig, stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    renderer = TerminalRenderer(on_lost=stop_event.set)
    client = ChatClient(config.get_client_config(), renderer, loop=loop)

    server = config.server
    identity = config.identity

    result = await client.probe(server.host, server.port)
    if result is not ProbeResult.ok:
        raise SystemExit(f"{PROBE_ERRORS[result]} ({server.host}:{server.port})")

    try:
        await client.connect(server.host, server.port, identity.username, identity.avatar)
    except ChatError as ex:
        raise SystemExit(f"Connection failed: {ex}")

    lines: asyncio.Queue[str | None] = asyncio.Queue()
    start_stdin_reader(loop, lines)
    try:
        await ChatConsole(client).run(lines, stop_event)
    finally:
        await client.close()


def main():
    cli = get_cli_args()
    setup_logging(cli.log_level)
    config = get_config()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        with setup_signal_handler(loop) as stop_event:
            loop.run_until_complete(run(config, stop_event))
    except KeyboardInterrupt:
        pass
    finally:
        try:
            loop.run_until_complete(loop.shutdown_asyncgens())
        finally:
            loop.close()


if __name__ == "__main__":
    main()
