# storefront/tasks/expire.py
from datetime import datetime, timedelta, timezone

from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.services.cart_service import CartService
from storefront.utils.settings import CART_TTL_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@celery_app.task(name="storefront.tasks.expire.purge_guest_carts_task")
def purge_guest_carts_task(max_age_seconds: int = CART_TTL_SECONDS):
    logger.info("Purge guest carts task started")

    db = SessionLocal()
    try:
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=max_age_seconds)
        removed = CartService(db).purge_stale_guest_carts(cutoff)
        logger.info(f"Removed {removed} guest carts idle since {cutoff.isoformat()}")
        return removed
    finally:
        db.close()
