# src/storage/models.py
from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Trade:
    asset: str
    side: str  # "BUY" | "SELL"
    price: float
    size: float
    timestamp: int  # ms
    trade_id: int
    wallets: tuple[str, ...] = ()  # (buyer, seller)
    tx_hash: str | None = None

    @property
    def notional(self) -> float:
        return self.price * self.size

    def is_whale(self, threshold_usd: float) -> bool:
        return self.notional >= threshold_usd


@dataclass
class Position:
    wallet: str
    asset: str
    size: float  # 正数为多头, 负数为空头
    entry_price: float
    liquidation_price: float
    leverage: float
    unrealized_pnl: float
    timestamp: int
    percent_of_oi: float = 0.0
    risk_level: int = 0
    market_impact: float = 0.0
    liquidation_risk: float = 0.0
    previous_size: float | None = None
    size_delta: float | None = None
    closed: bool = False
    closed_at: int | None = None
    exit_price: float | None = None
    final_pnl: float | None = None
    final_pnl_percent: float | None = None
    tx_hash: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.wallet, self.asset)

    @property
    def direction(self) -> str:
        return "LONG" if self.size > 0 else "SHORT"

    @property
    def notional(self) -> float:
        return abs(self.size) * self.entry_price


@dataclass
class MarketStats:
    asset: str
    price: float = 0.0
    open_interest: float = 0.0
    last_updated: int = 0


@dataclass
class WalletStats:
    trades: int = 0
    wins: int = 0
    pnl: float = 0.0
    volume: float = 0.0

    @property
    def win_rate(self) -> float:
        if self.trades == 0:
            return 0.0
        return self.wins / self.trades * 100


class PositionEventType(Enum):
    NEW = "new"
    UPDATED = "updated"
    CLOSED = "closed"


@dataclass
class PositionEvent:
    type: PositionEventType
    position: Position
    alert: bool = False
