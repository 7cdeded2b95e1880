# tests/storage/test_models.py
import dataclasses

import pytest

from src.storage.models import Position, Trade, WalletStats


def _position(size: float) -> Position:
    return Position(
        wallet="0xwallet",
        asset="ETH",
        size=size,
        entry_price=3000.0,
        liquidation_price=0.0,
        leverage=5.0,
        unrealized_pnl=0.0,
        timestamp=0,
    )


def test_trade_is_immutable():
    trade = Trade(asset="BTC", side="BUY", price=1.0, size=1.0, timestamp=0, trade_id=1)

    with pytest.raises(dataclasses.FrozenInstanceError):
        trade.price = 2.0  # type: ignore[misc]


def test_trade_whale_threshold_is_inclusive():
    trade = Trade(asset="BTC", side="SELL", price=50000.0, size=2.0, timestamp=0, trade_id=1)

    assert trade.notional == 100000.0
    assert trade.is_whale(100000)
    assert not trade.is_whale(100001)


def test_position_direction_and_key():
    assert _position(1).direction == "LONG"
    assert _position(-1).direction == "SHORT"
    assert _position(1).key == ("0xwallet", "ETH")


def test_position_notional_is_absolute():
    assert _position(-50).notional == 150000.0


def test_win_rate_without_trades():
    assert WalletStats().win_rate == 0.0
