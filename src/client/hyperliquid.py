"""Hyperliquid Info API 客户端"""

import json
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from src.client.models import AssetMeta, AssetPosition


class HyperliquidAPIError(Exception):
    """Hyperliquid API 错误"""

    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(f"[{status}] {message}")


def _to_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    return float(value)


@dataclass
class HyperliquidClient:
    """Hyperliquid Info API 客户端

    所有查询都是同一个 POST 端点, 通过请求体中的 ``type`` 区分。
    """

    api_url: str = "https://api.hyperliquid.xyz/info"
    timeout_seconds: float = 10
    _session: aiohttp.ClientSession | None = field(default=None, repr=False)

    async def _request(self, payload: dict[str, Any]) -> Any:
        """发送 Info 请求"""
        if self._session is None:
            raise RuntimeError("Session not initialized. Use 'async with' or init().")

        async with self._session.post(self.api_url, json=payload) as response:
            if response.status != 200:
                error_text = await response.text()
                try:
                    error_data = json.loads(error_text)
                    message = error_data.get("error", error_text)
                except (json.JSONDecodeError, AttributeError):
                    message = error_text
                raise HyperliquidAPIError(response.status, message)

            return await response.json()

    async def init(self) -> None:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "HyperliquidClient":
        await self.init()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def get_all_mids(self) -> dict[str, float]:
        """获取所有资产中间价"""
        data = await self._request({"type": "allMids"})
        return {coin: float(px) for coin, px in data.items()}

    async def get_meta(self) -> list[AssetMeta]:
        """获取资产列表 (universe)"""
        data = await self._request({"type": "meta"})
        return [
            AssetMeta(name=asset["name"], index=i, sz_decimals=int(asset.get("szDecimals", 0)))
            for i, asset in enumerate(data.get("universe", []))
        ]

    async def get_meta_and_asset_ctxs(self) -> list[AssetMeta]:
        """获取资产列表及持仓量、标记价格"""
        data = await self._request({"type": "metaAndAssetCtxs"})
        meta, ctxs = data[0], data[1]

        assets: list[AssetMeta] = []
        for i, asset in enumerate(meta.get("universe", [])):
            ctx = ctxs[i] if i < len(ctxs) else {}
            assets.append(
                AssetMeta(
                    name=asset["name"],
                    index=i,
                    sz_decimals=int(asset.get("szDecimals", 0)),
                    open_interest=_to_float(ctx.get("openInterest")),
                    mark_price=_to_float(ctx.get("markPx")),
                )
            )
        return assets

    async def get_clearinghouse_state(self, user: str) -> list[AssetPosition]:
        """获取钱包当前持仓"""
        data = await self._request({"type": "clearinghouseState", "user": user})

        positions: list[AssetPosition] = []
        for item in data.get("assetPositions", []):
            position = item.get("position")
            if not position:
                continue
            leverage = position.get("leverage") or {}
            positions.append(
                AssetPosition(
                    coin=position["coin"],
                    raw_size=str(position["szi"]),
                    entry_price=_to_float(position.get("entryPx")),
                    liquidation_price=_to_float(position.get("liquidationPx")),
                    leverage=_to_float(leverage.get("value")),
                    unrealized_pnl=_to_float(position.get("unrealizedPnl")),
                )
            )
        return positions
