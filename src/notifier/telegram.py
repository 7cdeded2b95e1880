# src/notifier/telegram.py
import asyncio
import logging
from collections.abc import Callable, Coroutine
from datetime import timedelta
from typing import Any

from telegram import Bot, BotCommand, Update
from telegram.error import RetryAfter, TelegramError
from telegram.ext import Application, CommandHandler, ContextTypes

from src.alert.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = """
🐋 <b>Hyperliquid Whale Monitor</b>

<b>功能：</b>
• 大额成交实时推送
• 巨鲸持仓开仓 / 加减仓 / 平仓追踪
• 持仓风险指标 (OI 占比、杠杆、强平风险)

输入 /help 查看所有命令
"""

HELP_MESSAGE = """
📖 <b>命令列表</b>

/status - 查看系统状态
/positions - 查看当前跟踪的巨鲸持仓
"""

BOT_COMMANDS = [
    BotCommand("start", "开始使用"),
    BotCommand("help", "查看帮助"),
    BotCommand("status", "系统状态"),
    BotCommand("positions", "巨鲸持仓"),
]


class TelegramNotifier:
    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        rate_limiter: RateLimiter | None = None,
        retry_delay_seconds: float = 15,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.bot = Bot(token=bot_token)
        self.rate_limiter = rate_limiter or RateLimiter()
        self.retry_delay_seconds = retry_delay_seconds
        self.app: Application | None = None  # type: ignore[type-arg]

        # Callbacks
        self.on_status: Callable[[], Coroutine[Any, Any, str]] | None = None
        self.on_positions: Callable[[], Coroutine[Any, Any, str]] | None = None

    async def _send(self, text: str) -> None:
        await self.bot.send_message(chat_id=self.chat_id, text=text)

    async def send_message(self, text: str) -> bool:
        await self.rate_limiter.acquire()
        try:
            await self._send(text)
            return True
        except RetryAfter as e:
            retry_after = e.retry_after
            if isinstance(retry_after, timedelta):
                retry_after = retry_after.total_seconds()
            delay = max(self.retry_delay_seconds, float(retry_after))
            logger.warning(f"Telegram rate limited, retrying once in {delay:.0f}s")
        except TelegramError as e:
            logger.error(f"Failed to send Telegram message: {e}")
            return False

        await asyncio.sleep(delay)
        await self.rate_limiter.acquire()
        try:
            await self._send(text)
            return True
        except TelegramError as e:
            logger.error(f"Telegram retry failed, dropping message: {e}")
            return False

    @staticmethod
    async def _reply(update: Update, text: str, **kwargs: Any) -> None:
        if update.message:
            await update.message.reply_text(text, **kwargs)

    async def _handle_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._reply(update, WELCOME_MESSAGE, parse_mode="HTML")

    async def _handle_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._reply(update, HELP_MESSAGE, parse_mode="HTML")

    async def _handle_status(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        text = await self.on_status() if self.on_status else "系统运行中"
        await self._reply(update, text)

    async def _handle_positions(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        text = await self.on_positions() if self.on_positions else "暂无跟踪持仓"
        await self._reply(update, text)

    def setup_handlers(self, app: Application) -> None:  # type: ignore[type-arg]
        handlers = {
            "start": self._handle_start,
            "help": self._handle_help,
            "status": self._handle_status,
            "positions": self._handle_positions,
        }
        for command, callback in handlers.items():
            app.add_handler(CommandHandler(command, callback))

    async def start_polling(self) -> None:
        """命令轮询与告警推送共用同一个 Bot 实例"""
        self.app = Application.builder().bot(self.bot).build()
        self.setup_handlers(self.app)
        await self.app.initialize()
        await self.app.start()
        await self.app.bot.set_my_commands(BOT_COMMANDS)
        if self.app.updater:
            await self.app.updater.start_polling(drop_pending_updates=True)
        logger.info("Telegram command polling started")

    async def stop_polling(self) -> None:
        if self.app is None:
            return
        app, self.app = self.app, None
        if app.updater and app.updater.running:
            await app.updater.stop()
        await app.stop()
        await app.shutdown()
