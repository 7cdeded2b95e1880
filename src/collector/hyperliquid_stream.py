# src/collector/hyperliquid_stream.py
import asyncio
import json
import logging
from collections.abc import Callable, Coroutine
from enum import Enum
from typing import Any

import websockets

logger = logging.getLogger(__name__)

HYPERLIQUID_WS = "wss://api.hyperliquid.xyz/ws"


class StreamState(Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    RECONNECTING = "reconnecting"
    FAILED = "failed"
    CLOSED = "closed"


class HyperliquidStream:
    """Hyperliquid trades 订阅, 带心跳与指数退避重连"""

    def __init__(
        self,
        assets: list[str],
        on_message: Callable[[dict[str, Any]], Coroutine[Any, Any, None]],
        url: str = HYPERLIQUID_WS,
        heartbeat_seconds: float = 30,
        reconnect_base_delay: float = 5.0,
        reconnect_backoff_factor: float = 1.5,
        max_reconnect_attempts: int = 10,
    ):
        self.name = ",".join(assets)
        self.assets = assets
        self.on_message = on_message
        self.url = url
        self.heartbeat_seconds = heartbeat_seconds
        self.reconnect_base_delay = reconnect_base_delay
        self.reconnect_backoff_factor = reconnect_backoff_factor
        self.max_reconnect_attempts = max_reconnect_attempts
        self.state = StreamState.CONNECTING
        self.reconnect_attempts = 0
        self.ws: Any = None
        self.running = False
        self._task: asyncio.Task[None] | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self.running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Hyperliquid stream started for {self.name}")

    async def stop(self) -> None:
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        await self.disconnect()
        logger.info(f"Hyperliquid stream stopped, state={self.state.value}")

    def reconnect_delay(self, attempt: int) -> float:
        return self.reconnect_base_delay * self.reconnect_backoff_factor**attempt

    async def connect(self) -> None:
        self.ws = await websockets.connect(self.url)
        for asset in self.assets:
            await self.ws.send(
                json.dumps({"method": "subscribe", "subscription": {"type": "trades", "coin": asset}})
            )
        self.state = StreamState.OPEN
        self.reconnect_attempts = 0
        self._heartbeat_task = asyncio.create_task(self._heartbeat())
        logger.info(f"Connected to {self.url}, subscribed to trades for {self.name}")

    async def disconnect(self) -> None:
        self._cancel_heartbeat()
        await self._close_socket()
        if self.state is not StreamState.FAILED:
            self.state = StreamState.CLOSED

    async def _close_socket(self) -> None:
        ws, self.ws = self.ws, None
        if ws is None:
            return
        try:
            await ws.close()
        except Exception as e:
            logger.debug(f"Error closing Hyperliquid WS: {e}")

    def _cancel_heartbeat(self) -> None:
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None

    async def _heartbeat(self) -> None:
        while self.state is StreamState.OPEN:
            await asyncio.sleep(self.heartbeat_seconds)
            try:
                await self.ws.send(json.dumps({"method": "ping"}))
            except websockets.ConnectionClosed:
                return

    async def _process_message(self, message: str | bytes) -> None:
        try:
            data = json.loads(message)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning(f"Failed to parse stream message: {message!r}")
            return

        if not isinstance(data, dict):
            logger.warning(f"Unexpected stream message: {message!r}")
            return

        if data.get("channel") == "pong":
            return

        try:
            await self.on_message(data)
        except Exception as e:
            logger.error(f"Stream handler error: {e}")

    async def _run(self) -> None:
        while self.running:
            try:
                await self.connect()
                async for message in self.ws:
                    await self._process_message(message)
                logger.warning("Hyperliquid WS closed by server")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Hyperliquid WS error: {e}")
            finally:
                self._cancel_heartbeat()
                # 握手失败时 socket 已打开, 重连前必须关闭
                await self._close_socket()

            if not self.running:
                break

            if self.reconnect_attempts >= self.max_reconnect_attempts:
                self.state = StreamState.FAILED
                logger.error(
                    f"Hyperliquid WS reconnect failed after {self.reconnect_attempts} attempts, "
                    "stream stopped until restart"
                )
                break

            delay = self.reconnect_delay(self.reconnect_attempts)
            self.reconnect_attempts += 1
            self.state = StreamState.RECONNECTING
            logger.info(
                f"Reconnecting in {delay:.1f}s "
                f"(attempt {self.reconnect_attempts}/{self.max_reconnect_attempts})"
            )
            await asyncio.sleep(delay)
