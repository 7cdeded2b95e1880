# tests/aggregator/test_risk.py
import logging

import pytest

from src.aggregator.risk import (
    liquidation_risk,
    market_impact,
    percent_of_oi,
    pnl_percent,
    realized_pnl,
    risk_level,
)
from src.storage.models import Position


def _position(size: float, entry: float, liq: float, leverage: float = 10) -> Position:
    return Position(
        wallet="0xwallet",
        asset="BTC",
        size=size,
        entry_price=entry,
        liquidation_price=liq,
        leverage=leverage,
        unrealized_pnl=0.0,
        timestamp=1706600000000,
    )


def test_notional_uses_entry_price():
    position = _position(-2.5, 40000, 44000)

    assert position.notional == pytest.approx(100000)


def test_percent_of_oi():
    assert percent_of_oi(-50, 1000) == 5.0
    assert percent_of_oi(50, 0) == 0.0


def test_risk_level():
    assert risk_level(leverage=0, pct_of_oi=0) == 0
    assert risk_level(leverage=10, pct_of_oi=5) == 5
    assert risk_level(leverage=50, pct_of_oi=100) == 5
    assert risk_level(leverage=5, pct_of_oi=0) == 1  # 1.25
    # 2.5 四舍五入为 3
    assert risk_level(leverage=10, pct_of_oi=0) == 3


def test_market_impact_capped():
    assert market_impact(3) == 6
    assert market_impact(80) == 100


def test_long_liquidation_risk():
    position = _position(10, 100, 90)

    # 当前价 100, 距强平还需下跌 10%
    assert liquidation_risk(position, 100) == pytest.approx(90)


def test_short_liquidation_risk():
    position = _position(-10, 100, 120)

    assert liquidation_risk(position, 100) == pytest.approx(80)


def test_liquidation_risk_uses_entry_when_no_price():
    position = _position(10, 100, 50)

    assert liquidation_risk(position, 0) == pytest.approx(50)


def test_liquidation_risk_clamped():
    position = _position(10, 100, 90)

    # 价格已跌破强平价
    assert liquidation_risk(position, 80) == 100


def test_long_inconsistent_liquidation_price(caplog):
    position = _position(10, 100, 100)

    with caplog.at_level(logging.WARNING):
        assert liquidation_risk(position, 100) == 0
    assert "Inconsistent liquidation price" in caplog.text


def test_short_inconsistent_liquidation_price(caplog):
    position = _position(-10, 100, 95)

    with caplog.at_level(logging.WARNING):
        assert liquidation_risk(position, 100) == 0
    assert "Inconsistent liquidation price" in caplog.text


def test_missing_liquidation_price():
    assert liquidation_risk(_position(10, 100, 0), 100) == 0


def test_realized_pnl_long():
    assert realized_pnl("LONG", entry_price=100, exit_price=120, size=10) == 200


def test_realized_pnl_short():
    assert realized_pnl("SHORT", entry_price=120, exit_price=100, size=-10) == 200


def test_pnl_percent():
    assert pnl_percent(200, entry_price=100, size=10) == 20
    assert pnl_percent(200, entry_price=0, size=10) == 0
