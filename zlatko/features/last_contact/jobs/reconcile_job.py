"""
Last-contact reconciliation job.

One-shot run over every tenant that owns prospects, started through
`python -m zlatko.jobs.worker reconcile_last_contact`.
"""

import asyncio

from zlatko.db.pool import db_pool
from zlatko.features.last_contact.services import last_contact_reconciler
from zlatko.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


async def run_last_contact_reconciliation() -> None:
    await db_pool.initialize()
    try:
        results = await last_contact_reconciler.reconcile_all()
    finally:
        await db_pool.close()

    logger.info(
        "Last-contact reconciliation finished",
        tenants=len(results),
        updated=sum(r.updated for r in results.values()),
        failed=sum(r.failed for r in results.values()),
    )


if __name__ == "__main__":
    asyncio.run(run_last_contact_reconciliation())
