# src/aggregator/position_tracker.py
import asyncio
import logging
import time

from src.aggregator import risk
from src.alert.trigger import (
    is_significant_change,
    is_whale_position,
    should_alert_closure,
    should_alert_new_position,
    should_alert_update,
)
from src.collector.snapshot_fetcher import SnapshotFetcher
from src.config import ThresholdsConfig
from src.storage.json_store import JsonStore
from src.storage.models import MarketStats, Position, PositionEvent, PositionEventType, Trade

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class PositionTracker:
    """巨鲸持仓生命周期跟踪

    每轮扫描得到当前持仓快照, 与上一轮跟踪的持仓比较, 产生 NEW / UPDATED / CLOSED 事件。
    """

    def __init__(
        self,
        fetcher: SnapshotFetcher,
        wallets: list[str],
        thresholds: ThresholdsConfig,
        store: JsonStore | None = None,
    ):
        self.fetcher = fetcher
        self.wallets = wallets
        self.thresholds = thresholds
        self.store = store
        self.positions: dict[tuple[str, str], Position] = {}
        self.market_stats: dict[str, MarketStats] = {a: MarketStats(asset=a) for a in fetcher.assets}
        self._cycle_lock = asyncio.Lock()

    def current_price(self, asset: str) -> float:
        stats = self.market_stats.get(asset)
        return stats.price if stats else 0.0

    def record_trade_price(self, trade: Trade) -> None:
        stats = self.market_stats.get(trade.asset)
        if stats:
            stats.price = trade.price
            stats.last_updated = _now_ms()

    async def update_market_stats(self) -> bool:
        prices = await self.fetcher.fetch_prices()
        if not prices:
            logger.warning("No price data available, keeping previous market stats")
            return False

        metadata = await self.fetcher.fetch_asset_metadata()
        now = _now_ms()
        for asset, stats in self.market_stats.items():
            if asset in prices:
                stats.price = prices[asset]
            meta = metadata.get(asset)
            if meta and meta.open_interest:
                stats.open_interest = meta.open_interest
            stats.last_updated = now
            logger.info(f"Market stats {asset}: ${stats.price:,.2f}, OI: {stats.open_interest:,.2f}")
        return True

    async def scan_positions(self) -> tuple[list[Position], set[str]]:
        """返回当前巨鲸持仓, 以及本轮请求失败而被跳过的钱包"""
        current: list[Position] = []
        skipped: set[str] = set()
        for wallet in self.wallets:
            try:
                positions = await self.fetcher.fetch_positions(wallet)
            except Exception as e:
                logger.error(f"Error scanning wallet {wallet}: {e}")
                skipped.add(wallet)
                continue
            current.extend(p for p in positions if is_whale_position(p, self.thresholds))

        logger.info(f"Found {len(current)} whale positions across {len(self.wallets)} wallets")
        return current, skipped

    def _apply_analytics(self, position: Position) -> None:
        stats = self.market_stats.get(position.asset)
        open_interest = stats.open_interest if stats else 0.0

        position.percent_of_oi = risk.percent_of_oi(position.size, open_interest)
        position.risk_level = risk.risk_level(position.leverage, position.percent_of_oi)
        position.market_impact = risk.market_impact(position.percent_of_oi)
        position.liquidation_risk = risk.liquidation_risk(position, self.current_price(position.asset))

    def _open(self, position: Position) -> PositionEvent:
        self._apply_analytics(position)
        self.positions[position.key] = position
        logger.info(
            f"New whale position: {position.wallet} {position.direction} "
            f"{abs(position.size)} {position.asset} (${position.notional:,.0f})"
        )
        return PositionEvent(
            type=PositionEventType.NEW,
            position=position,
            alert=should_alert_new_position(position, self.thresholds),
        )

    def _update(self, tracked: Position, current: Position) -> PositionEvent | None:
        if not is_significant_change(tracked.size, current.size, self.thresholds):
            return None

        size_delta = abs(current.size) - abs(tracked.size)
        tracked.previous_size = tracked.size
        tracked.size_delta = size_delta
        tracked.size = current.size
        tracked.entry_price = current.entry_price
        tracked.liquidation_price = current.liquidation_price
        tracked.leverage = current.leverage
        tracked.unrealized_pnl = current.unrealized_pnl
        tracked.timestamp = current.timestamp
        self._apply_analytics(tracked)

        sign = "+" if size_delta > 0 else ""
        logger.info(
            f"Whale position updated: {tracked.wallet} {tracked.direction} "
            f"{abs(tracked.size)} {tracked.asset} ({sign}{size_delta:.4f})"
        )
        price = self.current_price(tracked.asset) or tracked.entry_price
        return PositionEvent(
            type=PositionEventType.UPDATED,
            position=tracked,
            alert=should_alert_update(tracked, price, self.thresholds),
        )

    def _close(self, position: Position) -> PositionEvent:
        position.closed = True
        position.closed_at = _now_ms()

        exit_price = self.current_price(position.asset)
        if exit_price > 0 and position.entry_price:
            pnl = risk.realized_pnl(position.direction, position.entry_price, exit_price, position.size)
            position.exit_price = exit_price
            position.final_pnl = pnl
            position.final_pnl_percent = risk.pnl_percent(pnl, position.entry_price, position.size)
        else:
            logger.warning(f"No exit price for closed {position.asset} position of {position.wallet}")

        logger.info(
            f"Whale position closed: {position.wallet} {position.direction} "
            f"{abs(position.size)} {position.asset} (PnL: {position.final_pnl})"
        )
        return PositionEvent(
            type=PositionEventType.CLOSED,
            position=position,
            alert=should_alert_closure(position, self.thresholds),
        )

    def reconcile(
        self, current: list[Position], skipped_wallets: set[str] | None = None
    ) -> list[PositionEvent]:
        skipped_wallets = skipped_wallets or set()
        events: list[PositionEvent] = []
        current_keys: set[tuple[str, str]] = set()

        for position in current:
            current_keys.add(position.key)
            tracked = self.positions.get(position.key)
            if tracked is None:
                events.append(self._open(position))
            else:
                event = self._update(tracked, position)
                if event:
                    events.append(event)

        # 跳过的钱包本轮没有快照, 不能判定为平仓
        closed_keys = [
            k for k in self.positions if k not in current_keys and k[0] not in skipped_wallets
        ]
        for key in closed_keys:
            events.append(self._close(self.positions.pop(key)))

        return events

    async def _persist(self, events: list[PositionEvent]) -> None:
        if self.store is None:
            return
        for event in events:
            try:
                if event.type is PositionEventType.CLOSED:
                    await self.store.store_closed_position(event.position)
                    if event.position.final_pnl is not None:
                        await self.store.update_wallet_stats(event.position)
                else:
                    await self.store.store_position(event.position)
            except Exception as e:
                logger.error(f"Failed to persist {event.type.value} position: {e}")

    async def run_cycle(self) -> list[PositionEvent]:
        if self._cycle_lock.locked():
            logger.warning("Previous position scan still running, skipping this tick")
            return []

        async with self._cycle_lock:
            if not self.fetcher.asset_index:
                await self.fetcher.load_asset_index()

            if not await self.update_market_stats():
                logger.warning("Skipping position scan: no price data")
                return []

            current, skipped = await self.scan_positions()
            events = self.reconcile(current, skipped)
            await self._persist(events)
            return events
