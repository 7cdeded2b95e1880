# src/main.py
import argparse
import asyncio
import logging
import signal
import time
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

from src.aggregator.dedup import TradeDeduplicator
from src.aggregator.position_tracker import PositionTracker
from src.alert.rate_limiter import RateLimiter
from src.alert.trigger import is_whale_trade, should_alert_trade
from src.client.hyperliquid import HyperliquidClient
from src.collector.hyperliquid_stream import HyperliquidStream, StreamState
from src.collector.snapshot_fetcher import SnapshotFetcher
from src.collector.trade_parser import parse_trades
from src.config import Config, load_config
from src.health import HealthServer
from src.notifier.discord import DiscordNotifier
from src.notifier.formatter import (
    format_new_position,
    format_position_closure,
    format_position_update,
    format_positions_summary,
    format_startup,
    format_trade,
)
from src.notifier.telegram import TelegramNotifier
from src.storage.json_store import JsonStore
from src.storage.models import Position, PositionEvent, PositionEventType, Trade

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

EVENT_FORMATTERS = {
    PositionEventType.NEW: format_new_position,
    PositionEventType.UPDATED: format_position_update,
    PositionEventType.CLOSED: format_position_closure,
}


class WhaleMonitor:
    def __init__(self, config: Config):
        self.config = config
        self.client = HyperliquidClient(
            api_url=config.exchange.api_url,
            timeout_seconds=config.exchange.request_timeout_seconds,
        )
        self.fetcher = SnapshotFetcher(
            self.client,
            config.assets,
            price_ttl_seconds=config.intervals.price_cache_seconds,
            normalize_sizes=config.exchange.normalize_sizes,
        )
        self.store = JsonStore(
            config.storage.data_dir,
            config.storage.max_trades_per_asset,
            config.storage.max_alert_log,
        )
        self.tracker = PositionTracker(self.fetcher, config.wallets, config.thresholds, self.store)
        self.dedup = TradeDeduplicator(config.dedup.max_size, config.dedup.evict_batch)
        self.stream = HyperliquidStream(
            assets=config.assets,
            on_message=self._on_message,
            url=config.exchange.ws_url,
            heartbeat_seconds=config.stream.heartbeat_seconds,
            reconnect_base_delay=config.stream.reconnect_base_delay_seconds,
            reconnect_backoff_factor=config.stream.reconnect_backoff_factor,
            max_reconnect_attempts=config.stream.max_reconnect_attempts,
        )

        self.telegram: TelegramNotifier | None = None
        if config.telegram.enabled and config.telegram.bot_token and config.telegram.chat_id:
            self.telegram = TelegramNotifier(
                config.telegram.bot_token,
                config.telegram.chat_id,
                rate_limiter=RateLimiter(
                    config.telegram.rate_limit_count,
                    config.telegram.rate_limit_window_seconds,
                ),
                retry_delay_seconds=config.telegram.retry_delay_seconds,
            )
        self.discord = DiscordNotifier(config.discord.webhook_url, config.discord.max_length)
        self.health = HealthServer(config.health.host, config.health.port) if config.health.enabled else None

        self.running = False
        self.start_time = time.time()
        self._stop_event = asyncio.Event()
        self._background: set[asyncio.Task[Any]] = set()
        self._polling = False

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def init(self) -> None:
        Path(self.config.storage.data_dir).mkdir(parents=True, exist_ok=True)
        await self.client.init()
        await self.fetcher.load_asset_index()

        if self.telegram:
            self.telegram.on_status = self._on_status
            self.telegram.on_positions = self._on_positions
        else:
            logger.warning("Telegram not configured, alerts go to Discord/logs only")

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    async def _publish(self, text: str, subject: Trade | Position | None = None) -> None:
        logger.info(f"Alert: {text}")
        if self.telegram:
            try:
                await self.telegram.send_message(text)
            except Exception as e:
                logger.error(f"Failed to publish alert to Telegram: {e}")
        try:
            await self.discord.send(text)
        except Exception as e:
            logger.error(f"Failed to publish alert to Discord: {e}")
        try:
            await self.store.log_alert(text, subject)
        except Exception as e:
            logger.error(f"Failed to log alert: {e}")

    async def _publish_event(self, event: PositionEvent) -> None:
        position = event.position
        stats = await self.store.get_wallet_stats(position.wallet)
        text = EVENT_FORMATTERS[event.type](position, stats)
        await self._publish(text, position)

    async def _publish_trade(self, trade: Trade) -> None:
        position = await self.fetcher.find_position(trade.wallets, trade.asset)
        stats = await self.store.get_wallet_stats(position.wallet) if position else None
        await self._publish(format_trade(trade, position, stats), trade)

    # ------------------------------------------------------------------
    # Stream path
    # ------------------------------------------------------------------

    async def _on_message(self, message: dict[str, Any]) -> None:
        trades = parse_trades(message, self.fetcher.normalize_size)
        if not trades:
            return

        new_trades = [t for t in trades if self.dedup.admit(t.trade_id)]
        if not new_trades:
            return

        self.tracker.record_trade_price(new_trades[-1])

        whale_trades = [t for t in new_trades if is_whale_trade(t, self.config.thresholds)]
        if not whale_trades:
            return

        for trade in whale_trades:
            logger.info(
                f"Whale {trade.side} {trade.asset}: {trade.size} @ ${trade.price:,.2f} "
                f"(${trade.notional:,.0f})"
            )
        await self.store.store_trades(whale_trades)

        for trade in whale_trades:
            if should_alert_trade(trade, self.config.thresholds):
                self._spawn(self._publish_trade(trade))

    # ------------------------------------------------------------------
    # Reconciliation path
    # ------------------------------------------------------------------

    async def _scan_positions(self) -> None:
        try:
            events = await self.tracker.run_cycle()
        except Exception as e:
            logger.error(f"Position scan failed: {e}")
            return

        for event in events:
            if event.alert:
                self._spawn(self._publish_event(event))

    async def _reconcile_loop(self) -> None:
        interval = self.config.intervals.scan_minutes * 60
        while self.running:
            await self._scan_positions()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except TimeoutError:
                pass

    # ------------------------------------------------------------------
    # Telegram commands
    # ------------------------------------------------------------------

    async def _on_status(self) -> str:
        uptime = time.time() - self.start_time
        days = int(uptime // 86400)
        hours = int((uptime % 86400) // 3600)
        minutes = int((uptime % 3600) // 60)
        stream_ok = "🟢 正常" if self.stream.state is StreamState.OPEN else f"🔴 {self.stream.state.value}"

        return f"""🔧 系统状态

运行时间: {days}d {hours}h {minutes}m
数据连接: {stream_ok}

监控币种: {", ".join(self.config.assets)}
监控钱包: {len(self.config.wallets)}
跟踪持仓: {len(self.tracker.positions)}
"""

    async def _on_positions(self) -> str:
        return format_positions_summary(list(self.tracker.positions.values()))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        logger.error(f"Unhandled error: {context.get('exception') or context.get('message')}")

    async def _start_optional_services(self) -> None:
        """健康检查与 Telegram 命令启动失败时只记录日志, 不影响监控主流程"""
        if self.health:
            try:
                await self.health.start()
            except Exception as e:
                logger.error(f"Health server failed to start, continuing without it: {e}")
                self.health = None

        if self.telegram and self.config.telegram.commands:
            try:
                await self.telegram.start_polling()
                self._polling = True
            except Exception as e:
                logger.error(f"Telegram command polling failed to start, continuing without it: {e}")

    async def _shutdown(self, reconcile_task: asyncio.Task[None] | None) -> None:
        # 不中断进行中的扫描, 但不再开始新的扫描
        self.running = False
        self._stop_event.set()

        try:
            await self.stream.stop()
        except Exception as e:
            logger.error(f"Error stopping stream: {e}")
        if reconcile_task:
            await reconcile_task
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

        if self._polling and self.telegram:
            try:
                await self.telegram.stop_polling()
            except Exception as e:
                logger.error(f"Error stopping Telegram polling: {e}")
        if self.health:
            try:
                await self.health.stop()
            except Exception as e:
                logger.error(f"Error stopping health server: {e}")
        await self.client.close()

    async def run(self) -> None:
        reconcile_task: asyncio.Task[None] | None = None
        try:
            await self.init()
            self.running = True

            loop = asyncio.get_running_loop()
            loop.set_exception_handler(self._handle_loop_exception)
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self._stop_event.set)

            await self._start_optional_services()
            await self.stream.start()
            reconcile_task = asyncio.create_task(self._reconcile_loop())

            logger.info(
                f"Whale Monitor started: assets={', '.join(self.config.assets)}, "
                f"wallets={len(self.config.wallets)}"
            )
            self._spawn(
                self._publish(
                    format_startup(
                        self.config.assets,
                        self.config.thresholds.whale_trade_usd,
                        len(self.config.wallets),
                    )
                )
            )

            await self._stop_event.wait()
            logger.info("Shutting down...")
        finally:
            await self._shutdown(reconcile_task)

        logger.info("Whale Monitor stopped")


async def main() -> None:
    parser = argparse.ArgumentParser(description="Hyperliquid whale monitor")
    parser.add_argument("--config", default="config.yaml", help="path to config.yaml")
    args = parser.parse_args()

    config = load_config(Path(args.config))
    logging.getLogger().setLevel(config.logging.level.upper())

    monitor = WhaleMonitor(config)
    await monitor.run()


def run_cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run_cli()
