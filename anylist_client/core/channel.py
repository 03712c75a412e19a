"""
Live update channel: a persistent websocket through which AnyList notifies
the client that its data changed remotely.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum, auto
from logging import Logger

import aiohttp

from .exceptions import TransportError

__all__ = [
    "ChannelState",
    "ChannelConfig",
    "BaseSocket",
    "BaseConnector",
    "AiohttpConnector",
    "LiveUpdateChannel",
]

API_VERSION = "3"

KEEPALIVE_MESSAGE = "--heartbeat--"
"""
Sent periodically while the channel is open.
"""

REFRESH_MESSAGE = "refresh-shopping-lists"
"""
Received when shopping lists were changed by another client.
"""

KEEPALIVE_INTERVAL = 5.0
MAX_RECONNECT_ATTEMPTS = 2
RECONNECT_DELAY = 1.0


class ChannelState(Enum):
    """
    State of live update channel.
    """

    DISCONNECTED = auto()
    """Not connected and not attempting to connect"""

    CONNECTING = auto()
    """Initial connection in progress"""

    OPEN = auto()
    """Connected and receiving updates"""

    DEGRADED = auto()
    """Connection failed, recovering credentials before reconnecting"""

    RECONNECTING = auto()
    """Reconnection in progress"""


@dataclass(frozen=True)
class ChannelConfig:
    """
    Parameters of a single connection attempt, obtained from the session
    before each attempt so the latest access token is used.
    """

    url: str
    access_token: str
    client_id: str
    api_version: str = API_VERSION

    @property
    def headers(self) -> dict[str, str]:
        return {
            "authorization": f"Bearer {self.access_token}",
            "x-anyleaf-client-identifier": self.client_id,
            "X-AnyLeaf-API-Version": self.api_version,
        }


class BaseSocket(ABC):
    """
    Connected message socket. Implementations raise {obj}`TransportError`
    upon failure.
    """

    @abstractmethod
    async def send(self, message: str):
        ...

    @abstractmethod
    async def receive(self) -> str | None:
        """
        Wait for the next message, or return `None` once the socket is
        closed.
        """
        ...

    @abstractmethod
    async def close(self):
        ...


class BaseConnector(ABC):
    """
    Opens sockets.
    """

    @abstractmethod
    async def connect(self, url: str, headers: Mapping[str, str]) -> BaseSocket:
        """
        :raises TransportError: If the connection couldn't be established
        """
        ...

    async def close(self):
        """
        Release any resources held by this connector.
        """
        ...


class AiohttpSocket(BaseSocket):
    _ws: aiohttp.ClientWebSocketResponse

    def __init__(self, ws: aiohttp.ClientWebSocketResponse):
        self._ws = ws

    async def send(self, message: str):
        try:
            await self._ws.send_str(message)
        except (aiohttp.ClientError, ConnectionError) as e:
            raise TransportError(f"Failed to send message: {e!r}") from e

    async def receive(self) -> str | None:
        while True:
            msg = await self._ws.receive()

            match msg.type:
                case aiohttp.WSMsgType.TEXT:
                    return msg.data
                case aiohttp.WSMsgType.BINARY:
                    return msg.data.decode("utf-8", errors="replace")
                case (
                    aiohttp.WSMsgType.CLOSE
                    | aiohttp.WSMsgType.CLOSING
                    | aiohttp.WSMsgType.CLOSED
                ):
                    return None
                case aiohttp.WSMsgType.ERROR:
                    raise TransportError(
                        f"Websocket error: {self._ws.exception()!r}"
                    )

    async def close(self):
        await self._ws.close()


class AiohttpConnector(BaseConnector):
    """
    Connector using an `aiohttp` client session.
    """

    _session: aiohttp.ClientSession | None
    _owns_session: bool

    def __init__(self, session: aiohttp.ClientSession | None = None):
        self._session = session
        self._owns_session = session is None

    async def connect(self, url: str, headers: Mapping[str, str]) -> BaseSocket:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

        try:
            ws = await self._session.ws_connect(url, headers=dict(headers))
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(
                f"Failed to connect to {url}: {e!r}", url=url
            ) from e

        return AiohttpSocket(ws)

    async def close(self):
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None


class LiveUpdateChannel:
    """
    Maintains the websocket connection to AnyList: sends keepalives while
    open, invokes `on_refresh` when notified of remote changes, and upon a
    transport error invokes `on_error` (a token refresh) before
    reconnecting.

    After `max_reconnect_attempts` consecutive failed reconnections, the
    channel gives up and settles in {obj}`ChannelState.DISCONNECTED`.
    """

    _connector: BaseConnector
    _config_provider: Callable[[], ChannelConfig]
    _on_refresh: Callable[[], Awaitable[None]]
    _on_error: Callable[[], Awaitable[None]]
    _keepalive_interval: float
    _max_reconnect_attempts: int
    _reconnect_delay: float
    _logger: Logger

    _state: ChannelState = ChannelState.DISCONNECTED
    _task: asyncio.Task | None = None
    _keepalive_task: asyncio.Task | None = None
    _socket: BaseSocket | None = None
    _closing: bool = False

    def __init__(
        self,
        connector: BaseConnector,
        config_provider: Callable[[], ChannelConfig],
        *,
        on_refresh: Callable[[], Awaitable[None]],
        on_error: Callable[[], Awaitable[None]],
        keepalive_interval: float = KEEPALIVE_INTERVAL,
        max_reconnect_attempts: int = MAX_RECONNECT_ATTEMPTS,
        reconnect_delay: float = RECONNECT_DELAY,
        logger: Logger | None = None,
    ):
        """
        :param connector: Opens the websocket
        :param config_provider: Invoked before each connection attempt
        :param on_refresh: Invoked when AnyList reports changed shopping lists
        :param on_error: Invoked after a transport error, before reconnecting
        :param keepalive_interval: Seconds between keepalive messages
        :param max_reconnect_attempts: Consecutive failed reconnections before giving up
        :param reconnect_delay: Seconds to wait before reconnecting
        :param logger: Logger to use
        """
        self._connector = connector
        self._config_provider = config_provider
        self._on_refresh = on_refresh
        self._on_error = on_error
        self._keepalive_interval = keepalive_interval
        self._max_reconnect_attempts = max_reconnect_attempts
        self._reconnect_delay = reconnect_delay
        self._logger = logger or logging.getLogger("anylist_client")

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """
        Start connecting in the background. No-op if already running.
        """
        if self.is_running:
            return

        self._closing = False
        self._state = ChannelState.CONNECTING
        self._task = asyncio.create_task(self._run())

    async def close(self):
        """
        Stop keepalives, then stop the connection loop and close the socket.
        No-op if already closed.
        """
        self._closing = True

        await self._stop_keepalive()

        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

        await self._close_socket()
        self._state = ChannelState.DISCONNECTED

    async def _run(self):
        # consecutive failed attempts since the channel was last open
        attempts = 0

        try:
            while not self._closing:
                try:
                    await self._connect()
                    attempts = 0
                    await self._listen()
                except TransportError as e:
                    self._logger.error(f"Disconnected from websocket: {e}")
                finally:
                    await self._stop_keepalive()
                    await self._close_socket()

                if self._closing:
                    break

                self._state = ChannelState.DEGRADED

                if attempts >= self._max_reconnect_attempts:
                    self._logger.error(
                        f"Giving up on websocket after {attempts} reconnect attempts"
                    )
                    break

                attempts += 1

                try:
                    await self._on_error()
                except Exception as e:
                    self._logger.error(
                        f"Failed to recover credentials for websocket: {type(e).__name__}: {e}"
                    )

                self._state = ChannelState.RECONNECTING
                await asyncio.sleep(self._reconnect_delay)
        finally:
            self._state = ChannelState.DISCONNECTED

    async def _connect(self):
        config = self._config_provider()
        self._socket = await self._connector.connect(config.url, config.headers)

        self._state = ChannelState.OPEN
        self._logger.info("Connected to websocket")

        self._keepalive_task = asyncio.create_task(
            self._keepalive(self._socket)
        )

    async def _listen(self):
        assert self._socket is not None

        while True:
            message = await self._socket.receive()

            if message is None:
                raise TransportError("Websocket closed by server")

            if message == REFRESH_MESSAGE:
                self._logger.debug("Received shopping list refresh")
                try:
                    await self._on_refresh()
                except Exception:
                    self._logger.exception("Failed to refresh shopping lists")
            else:
                self._logger.debug(f"Ignoring websocket message: {message}")

    async def _keepalive(self, socket: BaseSocket):
        while True:
            await asyncio.sleep(self._keepalive_interval)

            try:
                await socket.send(KEEPALIVE_MESSAGE)
            except TransportError as e:
                self._logger.warning(f"Failed to send keepalive: {e}")
                return

            self._logger.debug("Sent keepalive")

    async def _stop_keepalive(self):
        task, self._keepalive_task = self._keepalive_task, None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

    async def _close_socket(self):
        socket, self._socket = self._socket, None
        if socket is not None:
            try:
                await socket.close()
            except TransportError as e:
                self._logger.warning(f"Failed to close websocket: {e}")
