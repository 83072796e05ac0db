import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from loguru import logger
from telegram import Bot

from alertcore.config import BOT_TOKEN, CHANNEL_CHAT_ID
from alertcore.notif.router import DeliveryResult, FiringContext
from alertcore.notif.templates import template_rule_fired


async def _send_message_async(token: str, text: str, chat_id: str) -> None:
    """Send message to specific chat."""
    bot = Bot(token)
    await bot.send_message(chat_id=chat_id, text=text)


def _run(coro):
    """Run the coroutine to completion, even if an event loop is already running."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        # No running loop, use asyncio.run()
        return asyncio.run(coro)

    # Already in async context: wait for it on a private loop in a worker thread
    with ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()


class TelegramSender:
    """
    Telegram delivery channel.
    Without a token or chat id it runs in dry-run mode: the message is logged
    and reported as sent.
    """

    def __init__(self, token: Optional[str] = None, chat_id: Optional[str] = None, tz_name: str = "UTC"):
        self.token = BOT_TOKEN if token is None else token
        self.chat_id = CHANNEL_CHAT_ID if chat_id is None else chat_id
        self.tz_name = tz_name

    @property
    def dry_run(self) -> bool:
        return not self.token or not self.chat_id

    def __call__(self, rule_id: str, context: FiringContext) -> DeliveryResult:
        return self.send_message(template_rule_fired(context, self.tz_name))

    async def send_alert_async(self, rule_id: str, context: FiringContext) -> DeliveryResult:
        return await self.send_message_async(template_rule_fired(context, self.tz_name))

    async def send_message_async(self, text: str) -> DeliveryResult:
        """Send message to Telegram (async version)."""
        if self.dry_run:
            logger.info(f"[dry-run] telegram MSG -> {text}")
            return DeliveryResult.sent()

        try:
            await _send_message_async(self.token, text, self.chat_id)
            return DeliveryResult.sent()
        except Exception as e:
            logger.exception(f"Failed to send Telegram message: {e}")
            return DeliveryResult.failed(str(e))

    def send_message(self, text: str) -> DeliveryResult:
        """Send message to Telegram (sync wrapper)."""
        if self.dry_run:
            logger.info(f"[dry-run] telegram MSG -> {text}")
            return DeliveryResult.sent()

        try:
            _run(_send_message_async(self.token, text, self.chat_id))
            return DeliveryResult.sent()
        except Exception as e:
            logger.exception(f"Failed to send Telegram message: {e}")
            return DeliveryResult.failed(str(e))
