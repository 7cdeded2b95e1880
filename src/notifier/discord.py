# src/notifier/discord.py
import logging

import aiohttp

logger = logging.getLogger(__name__)


class DiscordNotifier:
    """Discord webhook 推送, 失败只记录日志"""

    def __init__(self, webhook_url: str, max_length: int = 2000, timeout_seconds: float = 10):
        self.webhook_url = webhook_url
        self.max_length = max_length
        self.timeout_seconds = timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def send(self, text: str) -> bool:
        if not self.enabled:
            logger.debug("Discord webhook not configured, skipping")
            return False

        payload = {"content": text[: self.max_length]}
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.webhook_url, json=payload) as response:
                    if response.status < 300:
                        return True
                    logger.error(f"Discord notification failed: {response.status}")
                    return False
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.error(f"Error sending Discord notification: {e}")
            return False
