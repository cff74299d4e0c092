from app.db.store import ITEMS, STATS, DocumentStore
from datetime import datetime
import logging

logger = logging.getLogger(__name__)

APP_METRICS_ID = "app-metrics"


async def initialize_app_stats(store: DocumentStore) -> bool:
    """
    Recount items and write the ``stats/app-metrics`` document.

    Failures are logged and reported through the return value so a startup
    hook never takes the service down.
    """
    logger.info("Initializing app statistics...")
    try:
        total_items = await store.count(ITEMS)
        total_active_items = await store.count(ITEMS, {"status": "active"})
        await store.put(STATS, APP_METRICS_ID, {
            "total_items": total_items,
            "total_active_items": total_active_items,
            "last_updated": datetime.utcnow(),
        })
    except Exception as e:
        logger.error(f"Error initializing app statistics: {e}")
        return False

    logger.info(f"App metrics initialized: {total_items} total items, {total_active_items} active items")
    return True
