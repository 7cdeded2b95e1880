# src/collector/snapshot_fetcher.py
import logging
import time

from src.client.hyperliquid import HyperliquidClient
from src.client.models import AssetMeta
from src.storage.models import Position

logger = logging.getLogger(__name__)


class UnknownAssetError(Exception):
    """资产不在 universe 索引表中"""

    def __init__(self, asset: str):
        self.asset = asset
        super().__init__(f"Asset {asset} not found in asset index")


class SnapshotFetcher:
    def __init__(
        self,
        client: HyperliquidClient,
        assets: list[str],
        price_ttl_seconds: float = 30,
        normalize_sizes: bool = True,
    ):
        self.client = client
        self.assets = assets
        self.price_ttl_seconds = price_ttl_seconds
        self.normalize_sizes = normalize_sizes
        self.asset_index: dict[str, AssetMeta] = {}
        self._prices: dict[str, float] = {}
        self._prices_fetched_at: float | None = None

    async def load_asset_index(self) -> bool:
        try:
            universe = await self.client.get_meta()
        except Exception as e:
            logger.error(f"Failed to load asset index: {e}")
            return False

        self.asset_index = {asset.name: asset for asset in universe}
        for asset in self.assets:
            meta = self.asset_index.get(asset)
            if meta:
                logger.info(f"Asset {asset} has index {meta.index} (szDecimals={meta.sz_decimals})")
            else:
                logger.warning(f"Monitored asset {asset} is not listed on the exchange")
        return True

    def normalize_size(self, asset: str, raw: str | float) -> float:
        meta = self.asset_index.get(asset)
        if meta is None:
            raise UnknownAssetError(asset)
        if not self.normalize_sizes:
            return float(raw)
        return float(raw) * 10 ** -meta.sz_decimals

    async def fetch_prices(self) -> dict[str, float]:
        now = time.monotonic()
        if self._prices_fetched_at is not None and now - self._prices_fetched_at < self.price_ttl_seconds:
            return dict(self._prices)

        try:
            mids = await self.client.get_all_mids()
        except Exception as e:
            if self._prices:
                logger.warning(f"Failed to fetch prices, using cached values: {e}")
                return dict(self._prices)
            logger.error(f"Failed to fetch prices and no cache available: {e}")
            return {}

        self._prices = {asset: mids[asset] for asset in self.assets if asset in mids}
        self._prices_fetched_at = now
        return dict(self._prices)

    async def fetch_asset_metadata(self) -> dict[str, AssetMeta]:
        try:
            assets = await self.client.get_meta_and_asset_ctxs()
        except Exception as e:
            logger.error(f"Failed to fetch asset metadata: {e}")
            return {}

        return {a.name: a for a in assets if a.name in self.assets}

    async def fetch_positions(self, wallet: str) -> list[Position]:
        """获取钱包在监控资产上的持仓, 请求失败时异常向上抛出"""
        raw_positions = await self.client.get_clearinghouse_state(wallet)
        now = int(time.time() * 1000)

        positions: list[Position] = []
        for raw in raw_positions:
            if raw.coin not in self.assets:
                continue
            try:
                size = self.normalize_size(raw.coin, raw.raw_size)
            except UnknownAssetError as e:
                logger.warning(f"Skipping {wallet} position: {e}")
                continue
            if size == 0:
                continue

            positions.append(
                Position(
                    wallet=wallet,
                    asset=raw.coin,
                    size=size,
                    entry_price=raw.entry_price,
                    liquidation_price=raw.liquidation_price,
                    leverage=raw.leverage,
                    unrealized_pnl=raw.unrealized_pnl,
                    timestamp=now,
                )
            )
        return positions

    async def find_position(self, wallets: tuple[str, ...], asset: str) -> Position | None:
        """在成交对手方中查找持有该资产的钱包"""
        for wallet in wallets:
            try:
                positions = await self.fetch_positions(wallet)
            except Exception as e:
                logger.warning(f"Failed to look up position for {wallet}: {e}")
                continue
            for position in positions:
                if position.asset == asset:
                    return position
        return None
