"""
Delivery Sync Job

Periodically runs a smart sync of all active courier accounts, then re-settles
split orders whose settlement is still pending or failed, then alerts admins.

Configuration (in .env):
- SYNC_ENABLED: Enable/disable the scheduler (default: true)
- SYNC_INTERVAL_MINUTES: Minutes between cycles (default: 10)
- SYNC_NOTIFY_ADMINS: Alert admins about accounts needing login or failing (default: true)
"""

import asyncio
import logging
from datetime import timedelta

import config
from enums.sync_mode import SyncMode
from models.syncRun import SyncRequestDTO, SyncResultDTO
from services.notification import NotificationService
from services.settlement import SettlementService
from services.sync_orchestrator import SyncOrchestrator
from utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


async def run_sync_cycle() -> SyncResultDTO:
    """Run one complete cycle: smart sync -> settlement reconciliation -> admin alerts."""
    logger.info("[Sync Job] Starting sync cycle")

    result = await SyncOrchestrator.run(SyncRequestDTO(mode=SyncMode.SMART))

    settlement_results = await SettlementService.resettle_pending()
    if settlement_results['errors']:
        logger.warning(f"[Sync Job] {len(settlement_results['errors'])} settlements still failing")

    if config.SYNC_NOTIFY_ADMINS:
        await NotificationService.sync_run_alert(result)

    logger.info(
        f"[Sync Job] Sync cycle complete "
        f"(status: {'✅ SUCCESS' if result.success else '❌ ERRORS'}, "
        f"settled: {settlement_results['settled']}/{settlement_results['checked']})"
    )
    return result


async def delivery_sync_scheduler():
    """Scheduler that runs sync cycles at configured intervals.

    This function runs indefinitely and should be started as a background task.
    """
    if not config.SYNC_ENABLED:
        logger.info("[Sync Job] Sync scheduler disabled")
        return

    logger.info(f"[Sync Job] Scheduler started (interval: {config.SYNC_INTERVAL_MINUTES} min)")
    interval_seconds = config.SYNC_INTERVAL_MINUTES * 60

    while True:
        try:
            await run_sync_cycle()
            logger.info(
                f"[Sync Job] Next cycle in {config.SYNC_INTERVAL_MINUTES} minute(s) "
                f"at {(utcnow() + timedelta(seconds=interval_seconds)).strftime('%Y-%m-%d %H:%M:%S')} UTC"
            )
            await asyncio.sleep(interval_seconds)

        except asyncio.CancelledError:
            logger.info("[Sync Job] Scheduler stopped")
            break
        except Exception as e:
            logger.error(f"[Sync Job] Scheduler error: {e}", exc_info=True)
            # Wait before retrying on error
            await asyncio.sleep(60)
