# backend/eduportal/workers/billing_worker.py
"""
Renewal billing run.

Meant to be triggered by an external scheduler (cron, a k8s CronJob):

    python -m eduportal.workers.billing_worker
"""
import asyncio
from typing import Any, Dict

from eduportal.core.logging import logger


async def run_billing() -> Dict[str, Any]:
    """Invoice every active subscription that renews within the lookahead window"""
    from eduportal.db.database import async_session_local, close_db
    from eduportal.services.subscription_service import SubscriptionService

    try:
        async with async_session_local() as session:
            invoices = await SubscriptionService(session).process_automatic_billing()
            return {
                "invoices_generated": len(invoices),
                "invoice_numbers": [invoice.invoice_number for invoice in invoices],
            }
    finally:
        await close_db()


def main() -> None:
    try:
        result = asyncio.run(run_billing())
    except Exception as e:
        logger.error(f"Billing run failed: {str(e)}", exc_info=True)
        raise
    logger.info(f"Billing run finished: {result['invoices_generated']} invoice(s)")


if __name__ == "__main__":
    main()
