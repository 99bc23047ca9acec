import logging

from aiogram.types import BufferedInputFile

import config
from bot_instance import get_bot
from models.syncRun import SyncResultDTO
from utils.datetime_utils import utcnow
from utils.html_escape import safe_html

logger = logging.getLogger(__name__)


class NotificationService:

    @staticmethod
    def is_enabled() -> bool:
        return bool(config.TOKEN) and bool(config.ADMIN_ID_LIST)

    @staticmethod
    async def send_to_admins(message: str | BufferedInputFile):
        if not NotificationService.is_enabled():
            logger.debug("[Notification] TOKEN or ADMIN_ID_LIST not configured, admin notification skipped")
            return
        bot = get_bot()
        for admin_id in config.ADMIN_ID_LIST:
            try:
                if isinstance(message, str):
                    await bot.send_message(admin_id, message)
                else:
                    await bot.send_document(admin_id, message)
            except Exception as e:
                logger.error(f"[Notification] Failed to notify admin {admin_id}: {e}")

    @staticmethod
    async def sync_run_alert(result: SyncResultDTO):
        """Alert admins about accounts that need a fresh courier login or failed to sync."""
        if not result.needs_login and not result.errors:
            return

        lines = [f"⚠️ <b>Delivery sync</b> ({result.mode.value}, run {result.run_id})\n"]
        if result.needs_login:
            lines.append("<b>Login required:</b>")
            for account in result.needs_login:
                lines.append(f"• #{account.account_id} {safe_html(account.username)}")
        if result.errors:
            lines.append("<b>Errors:</b>")
            for error in result.errors:
                account = f"#{error.account_id}" if error.account_id is not None else "-"
                lines.append(f"• {account} {error.error_type}: {safe_html(error.message)}")
        await NotificationService.send_to_admins("\n".join(lines))

    @staticmethod
    async def settlement_failed(order_id: int, reason: str):
        message = (
            f"❌ <b>Settlement failed</b>\n\n"
            f"<b>Order:</b> {order_id}\n"
            f"<b>Reason:</b> {safe_html(reason)}\n\n"
            f"It will be retried after the next sync cycle."
        )
        await NotificationService.send_to_admins(message)

    @staticmethod
    async def notify_admins_api_error(
        correlation_id: str,
        endpoint: str,
        exception: Exception,
        traceback_str: str
    ):
        """
        Send API error notification to admins with debugging information.

        Args:
            correlation_id: Unique ID for request tracing
            endpoint: API endpoint that failed
            exception: The exception that was raised
            traceback_str: Full stack trace
        """
        message = (
            f"🚨 <b>API Error</b>\n\n"
            f"<b>Correlation-ID:</b> <code>{correlation_id}</code>\n"
            f"<b>Timestamp:</b> {utcnow().isoformat()}\n"
            f"<b>Endpoint:</b> {safe_html(endpoint)}\n\n"
            f"<b>Exception:</b> {type(exception).__name__}\n"
            f"<b>Message:</b> {safe_html(str(exception))}\n\n"
            f"<b>Traceback:</b>\n<pre>{safe_html(traceback_str[:3000])}</pre>"
        )

        # If traceback too long, send as file
        if len(traceback_str) > 3000:
            file_content = (
                f"Correlation-ID: {correlation_id}\n"
                f"Timestamp: {utcnow().isoformat()}\n"
                f"Endpoint: {endpoint}\n\n"
                f"Exception: {type(exception).__name__}: {str(exception)}\n\n"
                f"Full Traceback:\n{traceback_str}"
            )
            document = BufferedInputFile(bytearray(file_content, 'utf-8'), f"api_error_{correlation_id}.txt")
            await NotificationService.send_to_admins(document)
        else:
            await NotificationService.send_to_admins(message)
