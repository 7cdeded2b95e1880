# tests/collector/test_snapshot_fetcher.py
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.client.hyperliquid import HyperliquidAPIError
from src.client.models import AssetMeta, AssetPosition
from src.collector.snapshot_fetcher import SnapshotFetcher, UnknownAssetError


def make_fetcher(**kwargs) -> SnapshotFetcher:
    client = MagicMock()
    client.get_all_mids = AsyncMock(return_value={"BTC": 100000.0, "ETH": 3500.0, "SOL": 150.0})
    client.get_meta = AsyncMock(
        return_value=[
            AssetMeta(name="BTC", index=0, sz_decimals=5),
            AssetMeta(name="ETH", index=1, sz_decimals=4),
        ]
    )
    fetcher = SnapshotFetcher(client, ["BTC", "ETH"], **kwargs)
    return fetcher


async def test_fetch_prices_filters_monitored_assets():
    fetcher = make_fetcher()

    prices = await fetcher.fetch_prices()

    assert prices == {"BTC": 100000.0, "ETH": 3500.0}


async def test_fetch_prices_uses_cache_within_ttl():
    fetcher = make_fetcher(price_ttl_seconds=30)

    await fetcher.fetch_prices()
    await fetcher.fetch_prices()

    assert fetcher.client.get_all_mids.await_count == 1


async def test_fetch_prices_refetches_after_ttl():
    fetcher = make_fetcher(price_ttl_seconds=30)

    await fetcher.fetch_prices()
    assert fetcher._prices_fetched_at is not None
    fetcher._prices_fetched_at -= 31
    fetcher.client.get_all_mids.return_value = {"BTC": 101000.0, "ETH": 3600.0}

    prices = await fetcher.fetch_prices()

    assert fetcher.client.get_all_mids.await_count == 2
    assert prices["BTC"] == 101000.0


async def test_fetch_prices_falls_back_to_stale_cache():
    fetcher = make_fetcher(price_ttl_seconds=30)
    await fetcher.fetch_prices()
    fetcher._prices_fetched_at -= 60
    fetcher.client.get_all_mids.side_effect = HyperliquidAPIError(500, "down")

    prices = await fetcher.fetch_prices()

    assert prices == {"BTC": 100000.0, "ETH": 3500.0}


async def test_fetch_prices_without_cache_returns_empty():
    fetcher = make_fetcher()
    fetcher.client.get_all_mids.side_effect = HyperliquidAPIError(500, "down")

    assert await fetcher.fetch_prices() == {}


async def test_load_asset_index_and_normalize_size():
    fetcher = make_fetcher()

    assert await fetcher.load_asset_index() is True

    assert fetcher.normalize_size("BTC", "150000") == pytest.approx(1.5)
    assert fetcher.normalize_size("ETH", 25000) == pytest.approx(2.5)


async def test_normalize_size_disabled_keeps_raw_value():
    fetcher = make_fetcher(normalize_sizes=False)
    await fetcher.load_asset_index()

    assert fetcher.normalize_size("BTC", "1.5") == 1.5


async def test_normalize_size_unknown_asset_raises():
    fetcher = make_fetcher()
    await fetcher.load_asset_index()

    with pytest.raises(UnknownAssetError):
        fetcher.normalize_size("DOGE", "100")


async def test_load_asset_index_failure_returns_false():
    fetcher = make_fetcher()
    fetcher.client.get_meta.side_effect = HyperliquidAPIError(500, "down")

    assert await fetcher.load_asset_index() is False
    assert fetcher.asset_index == {}


async def test_fetch_asset_metadata():
    fetcher = make_fetcher()
    fetcher.client.get_meta_and_asset_ctxs = AsyncMock(
        return_value=[
            AssetMeta(name="BTC", index=0, sz_decimals=5, open_interest=25000.0, mark_price=100000.0),
            AssetMeta(name="SOL", index=5, sz_decimals=2, open_interest=1.0, mark_price=150.0),
        ]
    )

    metadata = await fetcher.fetch_asset_metadata()

    assert list(metadata) == ["BTC"]
    assert metadata["BTC"].open_interest == 25000.0


async def test_fetch_asset_metadata_failure_returns_empty():
    fetcher = make_fetcher()
    fetcher.client.get_meta_and_asset_ctxs = AsyncMock(side_effect=HyperliquidAPIError(429, "slow down"))

    assert await fetcher.fetch_asset_metadata() == {}


async def test_fetch_positions_normalizes_and_filters():
    fetcher = make_fetcher(normalize_sizes=False)
    await fetcher.load_asset_index()
    fetcher.client.get_clearinghouse_state = AsyncMock(
        return_value=[
            AssetPosition("BTC", "-2.0", 100000.0, 110000.0, 10.0, -500.0),
            AssetPosition("SOL", "100", 150.0, 100.0, 5.0, 0.0),
            AssetPosition("ETH", "0", 3500.0, 0.0, 1.0, 0.0),
        ]
    )

    positions = await fetcher.fetch_positions("0xwallet")

    assert len(positions) == 1
    assert positions[0].wallet == "0xwallet"
    assert positions[0].asset == "BTC"
    assert positions[0].size == -2.0
    assert positions[0].direction == "SHORT"
    assert positions[0].notional == 200000.0


async def test_fetch_positions_propagates_errors():
    fetcher = make_fetcher()
    fetcher.client.get_clearinghouse_state = AsyncMock(side_effect=HyperliquidAPIError(500, "down"))

    with pytest.raises(HyperliquidAPIError):
        await fetcher.fetch_positions("0xwallet")


async def test_find_position_skips_failing_wallets():
    fetcher = make_fetcher(normalize_sizes=False)
    await fetcher.load_asset_index()
    fetcher.client.get_clearinghouse_state = AsyncMock(
        side_effect=[
            HyperliquidAPIError(500, "down"),
            [AssetPosition("BTC", "3", 100000.0, 90000.0, 5.0, 0.0)],
        ]
    )

    position = await fetcher.find_position(("0xbuyer", "0xseller"), "BTC")

    assert position is not None
    assert position.wallet == "0xseller"
    assert position.leverage == 5.0
