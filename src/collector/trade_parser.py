# src/collector/trade_parser.py
import logging
from collections.abc import Callable
from typing import Any

from src.collector.snapshot_fetcher import UnknownAssetError
from src.storage.models import Trade

logger = logging.getLogger(__name__)

SizeNormalizer = Callable[[str, str], float]


def _parse_trade(data: dict[str, Any], normalize: SizeNormalizer | None) -> Trade | None:
    trade_id = data.get("tid")
    if trade_id is None:
        return None

    asset = data["coin"]
    price = float(data["px"])
    size = normalize(asset, str(data["sz"])) if normalize else float(data["sz"])
    if price <= 0 or size <= 0:
        return None

    # side: B = 主动买, A = 主动卖
    side = "BUY" if data.get("side") == "B" else "SELL"

    return Trade(
        asset=asset,
        side=side,
        price=price,
        size=size,
        timestamp=int(data["time"]),
        trade_id=int(trade_id),
        wallets=tuple(data.get("users") or ()),
        tx_hash=data.get("hash"),
    )


def parse_trades(message: dict[str, Any], normalize: SizeNormalizer | None = None) -> list[Trade]:
    """解析 trades 频道消息, 非 trades 消息返回空列表"""
    if message.get("channel") != "trades" or not isinstance(message.get("data"), list):
        return []

    trades: list[Trade] = []
    for data in message["data"]:
        try:
            trade = _parse_trade(data, normalize)
        except (KeyError, TypeError, ValueError, UnknownAssetError) as e:
            logger.warning(f"Dropping malformed trade {data}: {e}")
            continue
        if trade:
            trades.append(trade)
    return trades
