"""Duplex channel abstraction and its websocket implementation."""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional
from urllib.parse import quote, urlencode

import structlog
import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..core.errors import ChannelNotOpenError

logger = structlog.get_logger(__name__)


async def _noop(*_args) -> None:
    return None


@dataclass
class ChannelHandlers:
    """Async callbacks a channel fires as its state changes."""
    on_open: Callable[[], Awaitable[None]] = field(default=_noop)
    on_message: Callable[[str], Awaitable[None]] = field(default=_noop)
    on_close: Callable[[], Awaitable[None]] = field(default=_noop)
    on_error: Callable[[Exception], Awaitable[None]] = field(default=_noop)


class DuplexChannel(ABC):
    """
    One persistent bidirectional text channel.

    `send` on a channel that is not open raises ChannelNotOpenError and
    never buffers the frame for later delivery.
    """

    @abstractmethod
    async def connect(self, handlers: ChannelHandlers) -> None:
        """Open the channel and start delivering events to `handlers`"""
        pass

    @abstractmethod
    async def send(self, text: str) -> None:
        pass

    @abstractmethod
    async def close(self, reason: str = "") -> None:
        pass

    @property
    @abstractmethod
    def is_open(self) -> bool:
        pass


ChannelFactory = Callable[[str], DuplexChannel]


class WebSocketChannel(DuplexChannel):
    """DuplexChannel over a `websockets` client connection with a reader task."""

    def __init__(self, url: str):
        self.url = url
        self._ws = None
        self._reader: Optional[asyncio.Task] = None
        self._handlers = ChannelHandlers()
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    async def connect(self, handlers: ChannelHandlers) -> None:
        self._handlers = handlers
        try:
            self._ws = await websockets.connect(self.url)
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            logger.warning("channel_connect_failed", url=self.url, error=str(e))
            await handlers.on_error(e)
            await handlers.on_close()
            return

        self._open = True
        logger.info("channel_open", url=self.url)
        await handlers.on_open()
        self._reader = asyncio.create_task(self._read_loop())

    async def _read_loop(self) -> None:
        try:
            async for message in self._ws:
                if isinstance(message, bytes):
                    message = message.decode("utf-8", errors="replace")
                try:
                    await self._handlers.on_message(message)
                except Exception:
                    # A faulty handler must not take the channel down
                    logger.exception("channel_handler_failed", url=self.url)
        except ConnectionClosed:
            pass
        except (OSError, WebSocketException) as e:
            logger.warning("channel_error", url=self.url, error=str(e))
            await self._handlers.on_error(e)
        finally:
            self._open = False
            logger.info("channel_closed", url=self.url)
            await self._handlers.on_close()

    async def send(self, text: str) -> None:
        if not self._open or self._ws is None:
            raise ChannelNotOpenError()
        try:
            await self._ws.send(text)
        except ConnectionClosed as e:
            self._open = False
            raise ChannelNotOpenError() from e

    async def close(self, reason: str = "") -> None:
        self._open = False
        if self._ws is not None:
            await self._ws.close(reason=reason)
        if self._reader is not None and self._reader is not asyncio.current_task():
            try:
                await asyncio.wait_for(self._reader, timeout=5)
            except asyncio.TimeoutError:
                self._reader.cancel()
        self._reader = None


def kernel_channel_factory(ws_base_url: str) -> ChannelFactory:
    """Channels bound to `/ws/sessions/{sessionId}` on the API host."""
    def factory(session_id: str) -> DuplexChannel:
        return WebSocketChannel(f"{ws_base_url}/ws/sessions/{quote(session_id, safe='')}")
    return factory


def collab_channel_factory(ws_base_url: str, actor_id: str) -> ChannelFactory:
    """Channels bound to `/ws/notebooks/{id}/collab`, identifying the local actor."""
    def factory(notebook_id: str) -> DuplexChannel:
        query = urlencode({"actorId": actor_id})
        return WebSocketChannel(
            f"{ws_base_url}/ws/notebooks/{quote(notebook_id, safe='')}/collab?{query}"
        )
    return factory
