"""
aiogram Bot used by NotificationService for admin alerts.

The bot only sends (sync alerts, settlement failures, unhandled API errors);
it never polls for updates. It is created on first use so that a deployment
without TOKEN never builds one, and app.py closes its HTTP session on shutdown.
"""

from aiogram import Bot
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

import config

_alert_bot: Bot | None = None


def get_bot() -> Bot:
    global _alert_bot
    if _alert_bot is None:
        _alert_bot = Bot(token=config.TOKEN, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
    return _alert_bot


async def close_bot():
    global _alert_bot
    if _alert_bot is None:
        return
    await _alert_bot.session.close()
    _alert_bot = None
