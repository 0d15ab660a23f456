import asyncio
import cmd
import sys
import threading
from typing import Any, Coroutine, TextIO

from linechat.core.facade import ChatClient
from linechat.core.models.errors import ChatError


class ChatConsole(cmd.Cmd):
    intro = (
        "Type a message and press Enter to send it to the focused conversation.\n"
        "Commands start with '/'; type /help for the list."
    )

    def __init__(self, client: ChatClient, stdout: TextIO | None = None) -> None:
        super().__init__(stdout=stdout)
        self._client = client
        self._pending: Coroutine[Any, Any, None] | None = None

    async def run(self, lines: asyncio.Queue[str | None], stop_event: asyncio.Event) -> None:
        """
        Execute input lines until /quit, end of input or `stop_event`.
        """
        self._print(self.intro)

        while not stop_event.is_set():
            get = asyncio.ensure_future(lines.get())
            stop = asyncio.ensure_future(stop_event.wait())
            done, pending = await asyncio.wait(
                {get, stop}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()

            if get not in done:
                break

            line = get.result()
            if line is None:
                break

            if self.onecmd(self.precmd(line)):
                break

            if self._pending is not None:
                coro, self._pending = self._pending, None
                await self._guard(coro)

    def precmd(self, line: str) -> str:
        if line.startswith("/"):
            return line[1:]
        if not line.strip():
            return ""
        return f"say {line}"

    def onecmd(self, line: str) -> bool:
        try:
            return bool(super().onecmd(line))
        except ChatError as ex:
            self._print(f"! {ex}")
            return False

    def emptyline(self) -> bool:
        return False

    def default(self, line: str) -> None:
        self._print(f"! Unknown command: /{line}. Type /help for a list of commands.")

    def do_say(self, arg: str) -> None:
        """say <text>: send text to the focused conversation"""
        self._pending = self._client.send_text(self._client.focused, arg)

    def do_open(self, arg: str) -> None:
        """open <peer>: open a private conversation and focus it"""
        self._client.open_conversation(arg)
        self._print(f"* Now talking in {self._client.focused}")

    def do_close(self, arg: str) -> None:
        """close [id]: close a private conversation (default: the focused one)"""
        self._client.close_conversation(arg.strip() or self._client.focused)

    def do_focus(self, arg: str) -> None:
        """focus <id>: switch to a conversation"""
        self._client.focus_conversation(arg.strip())
        self._print(f"* Now talking in {self._client.focused}")

    def do_list(self, arg: str) -> None:
        """list: show open conversations ('>' focused, '!' unread)"""
        for conversation_id in self._client.conversations():
            focus = ">" if conversation_id == self._client.focused else " "
            unread = "!" if self._client.is_unread(conversation_id) else " "
            self._print(f"{focus}{unread} {conversation_id}")

    def do_users(self, arg: str) -> None:
        """users: show who is online"""
        users = self._client.users
        self._print(f"* Online: {', '.join(users) if users else '(nobody)'}")

    def do_quit(self, arg: str) -> bool:
        """quit: disconnect and leave"""
        return True

    def do_exit(self, arg: str) -> bool:
        return True

    def do_EOF(self, arg: str) -> bool:
        return True

    async def _guard(self, coro: Coroutine[Any, Any, None]) -> None:
        try:
            await coro
        except (ChatError, OSError) as ex:
            self._print(f"! {ex}")

    def _print(self, text: str) -> None:
        print(text, file=self.stdout, flush=True)


def start_stdin_reader(
    loop: asyncio.AbstractEventLoop,
    lines: asyncio.Queue[str | None],
    stream: TextIO | None = None,
) -> threading.Thread:
    """
    Feed lines typed on stdin into `lines` from a daemon thread; None marks
    end of input.
    """
    stream = stream or sys.stdin

    def forward(line: str | None) -> bool:
        try:
            loop.call_soon_threadsafe(lines.put_nowait, line)
        except RuntimeError:
            # event loop already closed
            return False
        return True

    def read() -> None:
        for line in stream:
            if not forward(line.rstrip("\r\n")):
                return
        forward(None)

    thread = threading.Thread(target=read, name="stdin-reader", daemon=True)
    thread.start()
    return thread
