# src/config.py
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel


class ExchangeConfig(BaseModel):
    api_url: str = "https://api.hyperliquid.xyz/info"
    ws_url: str = "wss://api.hyperliquid.xyz/ws"
    request_timeout_seconds: float = 10
    # 原始 size 按 10^-szDecimals 缩放
    normalize_sizes: bool = True


class StreamConfig(BaseModel):
    heartbeat_seconds: float = 30
    reconnect_base_delay_seconds: float = 5.0
    reconnect_backoff_factor: float = 1.5
    max_reconnect_attempts: int = 10


class ThresholdsConfig(BaseModel):
    whale_trade_usd: float = 100_000
    trade_alert_usd: float = 1_000_000
    position_usd: float = 100_000
    position_alert_usd: float = 1_000_000
    update_delta_usd: float = 500_000
    update_ratio: float = 0.1


class IntervalsConfig(BaseModel):
    scan_minutes: float = 5
    price_cache_seconds: float = 30


class DedupConfig(BaseModel):
    max_size: int = 10_000
    evict_batch: int = 1_000


class TelegramConfig(BaseModel):
    enabled: bool = True
    bot_token: str = ""
    chat_id: str = ""
    commands: bool = False
    rate_limit_count: int = 5
    rate_limit_window_seconds: float = 60
    retry_delay_seconds: float = 15


class DiscordConfig(BaseModel):
    webhook_url: str = ""
    max_length: int = 2000


class StorageConfig(BaseModel):
    data_dir: str = "data"
    max_trades_per_asset: int = 1000
    max_alert_log: int = 1000


class HealthConfig(BaseModel):
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8080


class LoggingConfig(BaseModel):
    level: str = "INFO"


class Config(BaseModel):
    assets: list[str] = ["BTC", "ETH"]
    wallets: list[str] = []
    exchange: ExchangeConfig = ExchangeConfig()
    stream: StreamConfig = StreamConfig()
    thresholds: ThresholdsConfig = ThresholdsConfig()
    intervals: IntervalsConfig = IntervalsConfig()
    dedup: DedupConfig = DedupConfig()
    telegram: TelegramConfig = TelegramConfig()
    discord: DiscordConfig = DiscordConfig()
    storage: StorageConfig = StorageConfig()
    health: HealthConfig = HealthConfig()
    logging: LoggingConfig = LoggingConfig()


_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """递归替换 ${VAR} 为环境变量"""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


def _apply_env_defaults(config: Config) -> Config:
    if not config.telegram.bot_token:
        config.telegram.bot_token = os.environ.get("TELEGRAM_BOT_TOKEN", "")
    if not config.telegram.chat_id:
        config.telegram.chat_id = os.environ.get("TELEGRAM_CHAT_ID", "")
    if not config.discord.webhook_url:
        config.discord.webhook_url = os.environ.get("DISCORD_WEBHOOK", "")
    return config


def load_config(path: Path) -> Config:
    load_dotenv()
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    config = Config(**_interpolate_env(data))
    config.assets = [a.upper() for a in config.assets]
    return _apply_env_defaults(config)
