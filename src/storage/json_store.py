# src/storage/json_store.py
import asyncio
import json
import logging
from dataclasses import asdict
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .models import Position, Trade, WalletStats

logger = logging.getLogger(__name__)


def _trade_record(trade: Trade) -> dict[str, Any]:
    record = asdict(trade)
    record["wallets"] = list(trade.wallets)
    record["notional"] = trade.notional
    return record


def _position_record(position: Position) -> dict[str, Any]:
    record = asdict(position)
    record["direction"] = position.direction
    record["notional"] = position.notional
    return record


class JsonStore:
    """按资产目录存放的 JSON 文件存储

    data/<ASSET>/whale_trades.json
    data/<ASSET>/whale_positions.json
    data/<ASSET>/closed_positions.json
    data/wallets/<wallet>.json
    data/logs/alerts_log.json
    """

    def __init__(self, data_dir: str, max_trades_per_asset: int = 1000, max_alert_log: int = 1000):
        self.data_dir = Path(data_dir)
        self.max_trades_per_asset = max_trades_per_asset
        self.max_alert_log = max_alert_log
        self._lock = asyncio.Lock()

    @staticmethod
    def _read_list(path: Path) -> list[Any]:
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text())
        except json.JSONDecodeError:
            logger.warning(f"Corrupt JSON file {path}, starting fresh")
            return []
        return data if isinstance(data, list) else []

    @staticmethod
    def _write(path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2))
        tmp.replace(path)

    def _append(self, path: Path, records: list[dict[str, Any]], limit: int | None = None) -> None:
        items = self._read_list(path)
        items.extend(records)
        if limit is not None and len(items) > limit:
            items = items[-limit:]
        self._write(path, items)

    def _store_trades(self, trades: list[Trade]) -> None:
        by_asset: dict[str, list[dict[str, Any]]] = {}
        for trade in trades:
            by_asset.setdefault(trade.asset, []).append(_trade_record(trade))
        for asset, records in by_asset.items():
            path = self.data_dir / asset / "whale_trades.json"
            self._append(path, records, limit=self.max_trades_per_asset)
            logger.info(f"Saved {len(records)} whale trades for {asset}")

    def _wallet_path(self, wallet: str) -> Path:
        return self.data_dir / "wallets" / f"{wallet}.json"

    def _load_wallet_stats(self, wallet: str) -> WalletStats | None:
        path = self._wallet_path(wallet)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text())
            return WalletStats(
                trades=int(data.get("trades", 0)),
                wins=int(data.get("wins", 0)),
                pnl=float(data.get("pnl", 0)),
                volume=float(data.get("volume", 0)),
            )
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError) as e:
            logger.warning(f"Failed to read wallet stats for {wallet}: {e}")
            return None

    def _update_wallet_stats(self, position: Position) -> WalletStats:
        stats = self._load_wallet_stats(position.wallet) or WalletStats()
        pnl = position.final_pnl or 0.0
        stats.trades += 1
        if pnl > 0:
            stats.wins += 1
        stats.pnl += pnl
        stats.volume += position.notional
        self._write(self._wallet_path(position.wallet), asdict(stats))
        return stats

    async def store_trades(self, trades: list[Trade]) -> None:
        if not trades:
            return
        async with self._lock:
            await asyncio.to_thread(self._store_trades, trades)

    async def store_position(self, position: Position) -> None:
        path = self.data_dir / position.asset / "whale_positions.json"
        async with self._lock:
            await asyncio.to_thread(self._append, path, [_position_record(position)])
        logger.debug(f"Position data saved for {position.wallet} on {position.asset}")

    async def store_closed_position(self, position: Position) -> None:
        path = self.data_dir / position.asset / "closed_positions.json"
        async with self._lock:
            await asyncio.to_thread(self._append, path, [_position_record(position)])
        logger.debug(f"Closed position saved for {position.wallet} on {position.asset}")

    async def update_wallet_stats(self, position: Position) -> WalletStats:
        async with self._lock:
            stats = await asyncio.to_thread(self._update_wallet_stats, position)
        logger.info(f"Updated wallet stats for {position.wallet}")
        return stats

    async def get_wallet_stats(self, wallet: str) -> WalletStats | None:
        return await asyncio.to_thread(self._load_wallet_stats, wallet)

    async def log_alert(self, text: str, subject: Trade | Position | None = None) -> None:
        """记录已发布的告警文本及其对应的成交或持仓"""
        record: dict[str, Any] = {"timestamp": datetime.now(UTC).isoformat(), "text": text}
        if isinstance(subject, Trade):
            record["trade"] = _trade_record(subject)
        elif isinstance(subject, Position):
            record["position"] = _position_record(subject)

        path = self.data_dir / "logs" / "alerts_log.json"
        async with self._lock:
            await asyncio.to_thread(self._append, path, [record], self.max_alert_log)
