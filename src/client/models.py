"""Hyperliquid API 数据模型"""

from dataclasses import dataclass


@dataclass
class AssetMeta:
    """资产元数据 (universe 列表中的一项)"""

    name: str
    index: int
    sz_decimals: int
    open_interest: float = 0.0
    mark_price: float = 0.0


@dataclass
class AssetPosition:
    """clearinghouseState 中的单个持仓 (未做 size 缩放)"""

    coin: str
    raw_size: str
    entry_price: float
    liquidation_price: float
    leverage: float
    unrealized_pnl: float
