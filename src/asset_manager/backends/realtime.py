"""Supabase realtime channels on a background event loop."""

import asyncio
import threading
from collections.abc import Callable, Coroutine
from typing import Any

import structlog
from realtime import AsyncRealtimeChannel, AsyncRealtimeClient

from asset_manager.backend import BackendError

logger = structlog.get_logger()


def realtime_url(url: str) -> str:
    """Websocket endpoint of a Supabase project URL."""
    base = url.rstrip("/")
    for scheme, ws_scheme in (("https://", "wss://"), ("http://", "ws://")):
        if base.startswith(scheme):
            base = ws_scheme + base[len(scheme) :]
            break
    return f"{base}/realtime/v1"


class RealtimeListener:
    """Joins ``postgres_changes`` channels over one websocket connection.

    The realtime client is asyncio-only, so it runs on an event loop owned by
    a daemon thread. ``subscribe`` and ``unsubscribe`` block until the join or
    leave has completed on that loop. Callbacks run on the loop thread.
    """

    def __init__(self, url: str, key: str, access_token: str | None = None, timeout: float = 10.0) -> None:
        self.url = realtime_url(url)
        self.key = key
        self.access_token = access_token
        self.timeout = timeout
        self.loop: asyncio.AbstractEventLoop | None = None
        self.thread: threading.Thread | None = None
        self.client: AsyncRealtimeClient | None = None
        self.channels: list[AsyncRealtimeChannel] = []

    @property
    def running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self.loop = asyncio.new_event_loop()
        self.thread = threading.Thread(target=self.loop.run_forever, name="supabase-realtime", daemon=True)
        self.thread.start()
        try:
            self._run(self._connect(), "connect")
        except BackendError:
            self.stop()
            raise
        logger.info("Realtime listener started", url=self.url)

    def stop(self) -> None:
        if not self.running:
            return
        if self.client is not None:
            try:
                self._run(self.client.close(), "close")
            except BackendError as e:
                logger.warning("Failed to close realtime connection", error=str(e))
            self.client = None
        self.channels = []
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.thread.join(timeout=self.timeout)
        if not self.thread.is_alive():
            self.loop.close()
        self.thread = None
        logger.info("Realtime listener stopped", url=self.url)

    def subscribe(self, table: str, callback: Callable[[dict[str, Any]], None]) -> AsyncRealtimeChannel:
        """Join a channel that forwards every row change on ``table``."""
        self.start()

        async def join() -> AsyncRealtimeChannel:
            channel = self.client.channel(table)
            channel.on_postgres_changes("*", callback=callback, table=table, schema="public")
            await channel.subscribe()
            return channel

        channel = self._run(join(), "subscribe")
        self.channels.append(channel)
        logger.info("Joined realtime channel", table=table)
        return channel

    def unsubscribe(self, channel: AsyncRealtimeChannel) -> None:
        """Leave a channel; the connection closes with the last one."""
        if channel not in self.channels:
            return
        self.channels.remove(channel)
        self._run(self.client.remove_channel(channel), "unsubscribe")
        logger.info("Left realtime channel")
        if not self.channels:
            self.stop()

    async def _connect(self) -> None:
        self.client = AsyncRealtimeClient(self.url, token=self.access_token or self.key, params={"apikey": self.key})
        await self.client.connect()

    def _run(self, coro: Coroutine[Any, Any, Any], operation: str) -> Any:
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        try:
            return future.result(timeout=self.timeout)
        except Exception as e:
            future.cancel()
            reason = str(e) or type(e).__name__
            logger.error("Realtime operation failed", operation=operation, error=reason)
            raise BackendError(f"Realtime {operation} failed: {reason}", operation=operation) from e
