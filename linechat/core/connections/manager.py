import asyncio
import logging
import socket
from collections.abc import Callable

from linechat.core.connections.handler import SessionHandler
from linechat.core.helpers.spawn import TaskSpawner
from linechat.core.models.config import ClientConfig
from linechat.core.models.errors import ConnectError, InvalidOperation
from linechat.core.models.event import ConnectionStateChanged, Event
from linechat.core.models.message import Message
from linechat.core.models.state import ConnectionState, ProbeResult, SessionState
from linechat.core.protocol.codec import decode, encode_handshake

_LOST = object()
"""Queue marker pushed by the receive loop when the server goes away."""


class ConnectionManager:
    """
    Owns the single session connection to the chat server and its
    lifecycle:

        disconnected -> connecting -> handshaking -> connected
        connected -> closing (disconnect) -> disconnected
        connected -> failed (connection lost) -> disconnected

    A live connection is served by exactly two tasks. The receive task
    blocks on reading lines, decodes them and only pushes the decoded
    messages onto a per-connection queue. The dispatch task drains that
    queue in FIFO order and hands each message to the SessionHandler, so
    every state change caused by the server happens on one consumer and
    in wire arrival order.

    Teardown is owned by whoever sets the stop flag first. disconnect()
    sets it before closing the socket, so the end-of-stream the pending
    read then observes is not reported as a failure. When the server
    closes the connection or a read fails while the flag is still clear,
    the receive task queues a "lost" marker behind the messages already
    received; the dispatch task sets the flag, closes the socket and
    tells the handler the session was lost. Either way the handler hears
    about the end of a session exactly once.

    probe() is independent of all of this: it uses its own short-lived
    socket and never changes the connection state.
    """

    def __init__(
        self,
        config: ClientConfig,
        handler: SessionHandler,
        emit: Callable[[Event], None],
        spawner: TaskSpawner,
    ) -> None:
        self._config = config
        self._handler = handler
        self._emit = emit
        self._spawner = spawner

        self._state = ConnectionState.disconnected
        self._session: SessionState | None = None
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._queue: asyncio.Queue[Message | object | None] | None = None
        self._receive_task: asyncio.Task | None = None
        self._dispatch_task: asyncio.Task | None = None

        self._stopped = True
        self._attempt = 0
        self._idle = asyncio.Event()
        self._idle.set()

        self._logger = logging.getLogger("core.connections.manager")

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def session(self) -> SessionState | None:
        return self._session

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.connected

    async def probe(
        self,
        host: str,
        port: int,
        timeout_ms: int | None = None,
    ) -> ProbeResult:
        """
        Check that a server accepts connections at host:port.

        A throwaway connection is opened within the timeout and closed
        right away. The outcome is returned, never raised.
        """
        if timeout_ms is None:
            timeout_ms = self._config.probe_timeout_ms

        if not host or not 0 < port < 65536:
            return ProbeResult.invalid_host

        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            self._logger.info(f"Probe of {host}:{port} timed out after {timeout_ms}ms")
            return ProbeResult.timeout
        except (socket.gaierror, UnicodeError) as ex:
            self._logger.info(f"Probe of {host}:{port}: invalid host ({ex})")
            return ProbeResult.invalid_host
        except OSError as ex:
            self._logger.info(f"Probe of {host}:{port}: unreachable ({ex})")
            return ProbeResult.unreachable

        writer.close()
        await self._wait_closed(writer)
        return ProbeResult.ok

    async def connect(
        self,
        host: str,
        port: int,
        username: str,
        avatar_ref: str,
    ) -> SessionState:
        """
        Open the session connection, send the handshake and start the
        receive and dispatch tasks.

        There is no timeout here; callers are expected to probe() first.
        Raises InvalidOperation if a connection is already active or being
        established, ProtocolError if the identity cannot be sent, and
        ConnectError if the socket cannot be opened or the handshake
        cannot be written.
        """
        if self._state is not ConnectionState.disconnected:
            raise InvalidOperation(f"Cannot connect while {self._state}")

        handshake = encode_handshake(username, avatar_ref)
        endpoint = f"{host}:{port}"

        self._attempt += 1
        attempt = self._attempt
        self._stopped = False
        self._set_state(ConnectionState.connecting)

        try:
            reader, writer = await asyncio.open_connection(
                host, port, limit=self._config.max_line_length
            )
        except (OSError, UnicodeError) as ex:
            self._abort_connect(attempt)
            raise ConnectError(f"Unable to connect to {endpoint}: {ex}") from ex

        if attempt != self._attempt or self._stopped:
            writer.close()
            await self._wait_closed(writer)
            raise ConnectError(f"Connection to {endpoint} aborted by disconnect")

        self._reader, self._writer = reader, writer
        self._set_state(ConnectionState.handshaking)

        try:
            await self._write_line(writer, handshake)
        except OSError as ex:
            if attempt == self._attempt and not self._stopped:
                await self._close_stream()
                self._abort_connect(attempt)
            raise ConnectError(f"Handshake with {endpoint} failed: {ex}") from ex

        if attempt != self._attempt or self._stopped:
            raise ConnectError(f"Connection to {endpoint} aborted by disconnect")

        session = SessionState(
            local_username=username,
            local_avatar_ref=avatar_ref,
            remote_host=host,
            remote_port=port,
            connection_state=self._state,
        )
        self._session = session
        self._handler.on_opened(session)

        queue: asyncio.Queue[Message | object | None] = asyncio.Queue()
        self._queue = queue
        self._receive_task = self._spawner.spawn(
            self._receive(reader, queue, username), name=f"receive-{endpoint}"
        )
        self._dispatch_task = self._spawner.spawn(
            self._dispatch(queue), name=f"dispatch-{endpoint}"
        )

        self._set_state(ConnectionState.connected)
        self._logger.info(f"Connected to {endpoint} as {username}")
        return session

    async def disconnect(self) -> None:
        """
        Close the session connection and wait until it is fully torn down.

        Safe to call at any time and any number of times, including while
        the server is failing the connection concurrently.
        """
        if self._stopped:
            await self._idle.wait()
            return

        self._stopped = True
        self._attempt += 1
        self._set_state(ConnectionState.closing)

        await self._close_stream()
        await self._join_receive()

        if self._queue is not None:
            self._queue.put_nowait(None)
        if self._dispatch_task is not None:
            await asyncio.wait({self._dispatch_task})

        self._finish(lost=False)
        self._logger.info("Disconnected")

    async def send_line(self, line: str) -> None:
        if self._state is not ConnectionState.connected or self._writer is None:
            raise InvalidOperation(f"Cannot send while {self._state}")

        try:
            await self._write_line(self._writer, line)
        except OSError as ex:
            self._logger.error(f"Failed to send line: {ex}")
            raise

    async def _receive(
        self,
        reader: asyncio.StreamReader,
        queue: asyncio.Queue,
        local_username: str,
    ) -> None:
        try:
            while not self._stopped:
                raw = await reader.readline()
                if not raw:
                    if not self._stopped:
                        self._logger.info("Server closed the connection")
                    break

                line = raw.decode(self._config.encoding, errors="replace")
                message = decode(line.rstrip("\r\n"), local_username)
                if message is not None:
                    queue.put_nowait(message)
        except (OSError, ValueError) as ex:
            # ValueError: line longer than the reader limit
            if not self._stopped:
                self._logger.error(f"Error reading from server: {ex}", exc_info=ex)
        finally:
            if not self._stopped:
                queue.put_nowait(_LOST)

    async def _dispatch(self, queue: asyncio.Queue) -> None:
        while True:
            item = await queue.get()
            if item is None:
                break

            if item is _LOST:
                await self._connection_lost()
                break

            try:
                self._handler.on_message(item)
            except Exception as ex:
                self._logger.error(f"Failed to handle {item}: {ex}", exc_info=ex)

    async def _connection_lost(self) -> None:
        if self._stopped:
            # disconnect() got there first and owns the teardown
            return

        self._stopped = True
        self._attempt += 1
        self._logger.warning("Connection to server lost")
        self._set_state(ConnectionState.failed)
        await self._close_stream()
        self._finish(lost=True)

    def _finish(self, lost: bool) -> None:
        session = self._session
        self._session = None
        self._queue = None
        self._receive_task = None
        self._dispatch_task = None

        if session is not None:
            try:
                self._handler.on_closed(session, lost)
            except Exception as ex:
                self._logger.error(f"Failed to close session: {ex}", exc_info=ex)

        self._set_state(ConnectionState.disconnected)

    def _abort_connect(self, attempt: int) -> None:
        if attempt != self._attempt:
            return
        self._stopped = True
        self._set_state(ConnectionState.failed)
        self._set_state(ConnectionState.disconnected)

    async def _close_stream(self) -> None:
        writer = self._writer
        self._writer = None
        self._reader = None
        if writer is None:
            return

        writer.close()
        await self._wait_closed(writer)

    async def _join_receive(self) -> None:
        task = self._receive_task
        if task is None:
            return

        _, pending = await asyncio.wait({task}, timeout=self._config.close_timeout)
        if pending:
            self._logger.warning("Receive task did not stop in time, cancelling it")
            task.cancel()
            await asyncio.wait({task})

    async def _write_line(self, writer: asyncio.StreamWriter, line: str) -> None:
        writer.write(f"{line}\n".encode(self._config.encoding))
        await writer.drain()

    async def _wait_closed(self, writer: asyncio.StreamWriter) -> None:
        try:
            await writer.wait_closed()
        except OSError as ex:
            self._logger.debug(f"Error while closing connection: {ex}")

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return

        self._logger.debug(f"Connection state {self._state} -> {state}")
        self._state = state
        if self._session is not None:
            self._session.connection_state = state

        if state is ConnectionState.disconnected:
            self._idle.set()
        else:
            self._idle.clear()

        self._emit(ConnectionStateChanged(state=state))
