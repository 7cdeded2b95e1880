# src/alert/trigger.py
from src.config import ThresholdsConfig
from src.storage.models import Position, Trade


def is_whale_trade(trade: Trade, thresholds: ThresholdsConfig) -> bool:
    return trade.is_whale(thresholds.whale_trade_usd)


def should_alert_trade(trade: Trade, thresholds: ThresholdsConfig) -> bool:
    return trade.notional >= thresholds.trade_alert_usd


def is_whale_position(position: Position, thresholds: ThresholdsConfig) -> bool:
    return position.notional >= thresholds.position_usd


def is_significant_change(previous_size: float, size: float, thresholds: ThresholdsConfig) -> bool:
    """持仓变化超过 update_ratio (默认 10%) 才算更新, 正好 10% 不算"""
    if previous_size == 0:
        return size != 0
    return abs(size - previous_size) / abs(previous_size) > thresholds.update_ratio


def should_alert_new_position(position: Position, thresholds: ThresholdsConfig) -> bool:
    return position.notional >= thresholds.position_alert_usd


def should_alert_update(position: Position, price: float, thresholds: ThresholdsConfig) -> bool:
    delta_usd = abs(position.size_delta or 0) * price
    return (
        position.notional >= thresholds.position_alert_usd
        and delta_usd >= thresholds.update_delta_usd
    )


def should_alert_closure(position: Position, thresholds: ThresholdsConfig) -> bool:
    return position.final_pnl is not None and position.notional >= thresholds.position_alert_usd
