# src/notifier/formatter.py
from src.storage.models import Position, Trade, WalletStats

MAX_MESSAGE_LENGTH = 1000
EXPLORER_TX_URL = "https://app.hyperliquid.xyz/explorer/tx/"


def _format_usd(value: float) -> str:
    if abs(value) >= 1_000_000_000:
        return f"${value / 1_000_000_000:.1f}B"
    elif abs(value) >= 1_000_000:
        return f"${value / 1_000_000:.1f}M"
    elif abs(value) >= 1_000:
        return f"${value / 1_000:.1f}K"
    else:
        return f"${value:,.0f}"


def _format_usd_signed(value: float) -> str:
    sign = "+" if value >= 0 else "-"
    return f"{sign}{_format_usd(abs(value))}"


def _format_price(value: float | None) -> str:
    if not value:
        return "n/a"
    if value >= 100:
        return f"${value:,.0f}"
    return f"${value:,.4g}"


def _short_wallet(wallet: str | None) -> str:
    if not wallet:
        return "unknown"
    if len(wallet) > 12:
        return f"{wallet[:6]}...{wallet[-4:]}"
    return wallet


def _leverage(value: float | None) -> str:
    if not value:
        return "n/a"
    return f"{value:g}x"


def _stats_line(wallet: str, stats: WalletStats | None) -> str:
    if stats is None or stats.trades == 0:
        return ""
    items = [
        f"Win Rate: {stats.win_rate:.0f}%",
        f"PnL: {_format_usd_signed(stats.pnl)}",
        f"Vol: {_format_usd(stats.volume)}",
    ]
    return f"\n{_short_wallet(wallet)}: {' | '.join(items)}"


def _tx_link(tx_hash: str | None) -> str:
    return f"\n\n🔗 {EXPLORER_TX_URL}{tx_hash}" if tx_hash else ""


def _bounded(text: str) -> str:
    if len(text) <= MAX_MESSAGE_LENGTH:
        return text
    return text[: MAX_MESSAGE_LENGTH - 1] + "…"


def format_new_position(position: Position, stats: WalletStats | None = None) -> str:
    action = "longed" if position.direction == "LONG" else "shorted"
    emoji = "🟢" if position.direction == "LONG" else "🔴"

    text = (
        f"{emoji} {position.asset} whale {action} {_format_usd(position.notional)} "
        f"at {_format_price(position.entry_price)}\n"
        f"{_leverage(position.leverage)} leverage, liquidation at {_format_price(position.liquidation_price)}\n"
        f"{position.percent_of_oi:.2f}% of OI | Risk {position.risk_level}/5 | "
        f"Liq risk {position.liquidation_risk:.0f}%"
        f"{_stats_line(position.wallet, stats)}"
        f"{_tx_link(position.tx_hash)}"
    )
    return _bounded(text)


def format_position_update(position: Position, stats: WalletStats | None = None) -> str:
    delta = position.size_delta or 0.0
    action = "added" if delta > 0 else "reduced"
    change_usd = abs(delta) * position.entry_price

    text = (
        f"🔄 {position.asset} whale {action} {_format_usd(change_usd)} "
        f"{'to' if delta > 0 else 'from'} {position.direction} position\n"
        f"{_format_usd(position.notional)} total, {_leverage(position.leverage)} leverage, "
        f"liquidation at {_format_price(position.liquidation_price)}\n"
        f"Risk {position.risk_level}/5 | Liq risk {position.liquidation_risk:.0f}%"
        f"{_stats_line(position.wallet, stats)}"
        f"{_tx_link(position.tx_hash)}"
    )
    return _bounded(text)


def format_position_closure(position: Position, stats: WalletStats | None = None) -> str:
    if position.final_pnl is None:
        pnl_text = "PnL unknown"
    else:
        pct = position.final_pnl_percent or 0.0
        pnl_text = f"{_format_usd_signed(position.final_pnl)} ({pct:+.1f}%)"

    text = (
        f"🏁 {position.asset} whale closed {position.direction} position: {pnl_text}\n"
        f"Entry {_format_price(position.entry_price)} → Exit {_format_price(position.exit_price)}, "
        f"{_leverage(position.leverage)} leverage\n"
        f"{_short_wallet(position.wallet)}"
        f"{_stats_line(position.wallet, stats)}"
    )
    return _bounded(text)


def format_trade(
    trade: Trade,
    position: Position | None = None,
    stats: WalletStats | None = None,
) -> str:
    action = "longed" if trade.side == "BUY" else "shorted"
    details = ""
    wallet = position.wallet if position else None
    if position:
        details = (
            f"\n{_leverage(position.leverage)} leverage, "
            f"liquidation at {_format_price(position.liquidation_price)}"
        )

    text = (
        f"🐋 {trade.asset} whale {action} {_format_usd(trade.notional)} "
        f"at {_format_price(trade.price)}"
        f"{details}"
        f"{_stats_line(wallet, stats) if wallet else ''}"
        f"{_tx_link(trade.tx_hash)}"
    )
    return _bounded(text)


def format_positions_summary(positions: list[Position]) -> str:
    if not positions:
        return "暂无跟踪持仓"

    lines = ["🐋 当前巨鲸持仓\n"]
    for position in sorted(positions, key=lambda p: -p.notional):
        lines.append(
            f"• {position.asset} {position.direction} {_format_usd(position.notional)} "
            f"({_short_wallet(position.wallet)}) risk {position.risk_level}/5"
        )
    return _bounded("\n".join(lines))


def format_startup(assets: list[str], whale_trade_usd: float, wallets: int) -> str:
    return (
        f"🐋 Hyperliquid Whale Monitor is now running!\n"
        f"Monitoring {', '.join(assets)} trades above {_format_usd(whale_trade_usd)} "
        f"and {wallets} whale wallets"
    )
