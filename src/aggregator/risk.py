# src/aggregator/risk.py
import logging
import math

from src.storage.models import Position

logger = logging.getLogger(__name__)


def percent_of_oi(size: float, open_interest: float) -> float:
    if open_interest <= 0:
        return 0.0
    return abs(size) / open_interest * 100


def risk_level(leverage: float, pct_of_oi: float) -> int:
    """风险等级 0-5: 杠杆与持仓占比各占 2.5 分"""
    leverage_risk = min(leverage / 10, 1) * 2.5
    size_risk = min(pct_of_oi / 5, 1) * 2.5
    # 四舍五入 (half-up), 避免 round() 的银行家舍入
    level = math.floor(leverage_risk + size_risk + 0.5)
    return max(0, min(level, 5))


def market_impact(pct_of_oi: float) -> float:
    return min(pct_of_oi * 2, 100)


def liquidation_is_consistent(position: Position) -> bool:
    """多头强平价必须低于开仓价, 空头必须高于开仓价"""
    if position.direction == "LONG":
        return position.liquidation_price < position.entry_price
    return position.liquidation_price > position.entry_price


def liquidation_risk(position: Position, current_price: float) -> float:
    """强平风险 0-100: 100 减去距强平还需的价格变动百分比"""
    if not position.liquidation_price:
        return 0.0

    if not liquidation_is_consistent(position):
        logger.warning(
            f"Inconsistent liquidation price for {position.wallet} {position.direction} "
            f"{position.asset}: entry={position.entry_price} liq={position.liquidation_price}"
        )
        return 0.0

    price = current_price or position.entry_price
    if price <= 0:
        return 0.0

    if position.direction == "LONG":
        move_pct = (price - position.liquidation_price) / price * 100
    else:
        move_pct = (position.liquidation_price - price) / price * 100
    return max(0.0, min(100 - move_pct, 100.0))


def realized_pnl(direction: str, entry_price: float, exit_price: float, size: float) -> float:
    if direction == "LONG":
        return (exit_price - entry_price) * abs(size)
    return (entry_price - exit_price) * abs(size)


def pnl_percent(pnl: float, entry_price: float, size: float) -> float:
    cost = entry_price * abs(size)
    if cost == 0:
        return 0.0
    return pnl / cost * 100
