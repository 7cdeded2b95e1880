# tests/notifier/test_formatter.py
from src.notifier.formatter import (
    MAX_MESSAGE_LENGTH,
    format_new_position,
    format_position_closure,
    format_position_update,
    format_positions_summary,
    format_startup,
    format_trade,
)
from src.storage.models import Position, Trade, WalletStats

WALLET = "0x7ac71c29ef4faddea7d9bac833585567a5d3f581"


def _position(size: float = 10, entry: float = 50000, **kw) -> Position:
    defaults = {
        "liquidation_price": 45000.0,
        "leverage": 20.0,
        "percent_of_oi": 1.5,
        "risk_level": 4,
        "liquidation_risk": 90.0,
    }
    defaults.update(kw)
    return Position(
        wallet=WALLET,
        asset="BTC",
        size=size,
        entry_price=entry,
        unrealized_pnl=0.0,
        timestamp=0,
        **defaults,
    )


def test_format_new_long_position():
    text = format_new_position(_position())

    assert text.startswith("🟢 BTC whale longed $500.0K at $50,000")
    assert "20x leverage" in text
    assert "liquidation at $45,000" in text
    assert "1.50% of OI" in text
    assert "Risk 4/5" in text


def test_format_new_short_position():
    text = format_new_position(_position(size=-10, liquidation_price=55000.0))

    assert text.startswith("🔴 BTC whale shorted $500.0K")


def test_format_new_position_with_wallet_stats():
    stats = WalletStats(trades=4, wins=3, pnl=120_000, volume=8_000_000)

    text = format_new_position(_position(), stats)

    assert "0x7ac7...f581" in text
    assert "Win Rate: 75%" in text
    assert "PnL: +$120.0K" in text
    assert "Vol: $8.0M" in text


def test_format_position_update_added():
    text = format_position_update(_position(size=15, size_delta=5, previous_size=10))

    assert text.startswith("🔄 BTC whale added $250.0K to LONG position")
    assert "$750.0K total" in text


def test_format_position_update_reduced():
    text = format_position_update(_position(size=-5, size_delta=-5, previous_size=-10))

    assert "reduced $250.0K from SHORT position" in text


def test_format_position_closure_with_pnl():
    position = _position(closed=True, exit_price=53000.0, final_pnl=30_000.0, final_pnl_percent=6.0)

    text = format_position_closure(position)

    assert text.startswith("🏁 BTC whale closed LONG position: +$30.0K (+6.0%)")
    assert "Exit $53,000" in text


def test_format_position_closure_with_loss():
    position = _position(closed=True, exit_price=48000.0, final_pnl=-20_000.0, final_pnl_percent=-4.0)

    assert "-$20.0K (-4.0%)" in format_position_closure(position)


def test_format_position_closure_without_pnl():
    text = format_position_closure(_position(closed=True))

    assert "PnL unknown" in text
    assert "Exit n/a" in text


def test_format_trade():
    trade = Trade(
        asset="ETH",
        side="SELL",
        price=3500.0,
        size=400.0,
        timestamp=0,
        trade_id=1,
        tx_hash="0xabc",
    )

    text = format_trade(trade)

    assert text.startswith("🐋 ETH whale shorted $1.4M at $3,500")
    assert text.endswith("https://app.hyperliquid.xyz/explorer/tx/0xabc")


def test_format_trade_with_position_context():
    trade = Trade(asset="BTC", side="BUY", price=50000.0, size=30.0, timestamp=0, trade_id=1)
    stats = WalletStats(trades=1, wins=0, pnl=-5000, volume=1_000_000)

    text = format_trade(trade, _position(), stats)

    assert "20x leverage, liquidation at $45,000" in text
    assert "PnL: -$5.0K" in text


def test_messages_are_bounded():
    position = Position(
        wallet=WALLET,
        asset="X" * 2000,
        size=10,
        entry_price=1.0,
        liquidation_price=0.5,
        leverage=2.0,
        unrealized_pnl=0.0,
        timestamp=0,
    )

    text = format_new_position(position)

    assert len(text) == MAX_MESSAGE_LENGTH
    assert text.endswith("…")


def test_positions_summary():
    small = _position(size=3)
    large = _position(size=-30, liquidation_price=55000.0)

    text = format_positions_summary([small, large])

    lines = text.splitlines()
    assert "SHORT $1.5M" in lines[2]
    assert "LONG $150.0K" in lines[3]


def test_empty_positions_summary():
    assert format_positions_summary([]) == "暂无跟踪持仓"


def test_startup_message():
    text = format_startup(["BTC", "ETH"], 100_000, 3)

    assert text.startswith("🐋 Hyperliquid Whale Monitor is now running!")
    assert "BTC, ETH trades above $100.0K" in text
    assert "3 whale wallets" in text
