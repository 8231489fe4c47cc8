# shopcore/tasks/abandon.py
from datetime import datetime, timedelta, timezone

from shopcore.celery_worker import celery_app
from shopcore.data.database import SessionLocal
from shopcore.services.cart_service import CartService
from shopcore.services.product_client import ProductClient
from shopcore.utils.settings import CART_ABANDON_AFTER_SECONDS
from shopcore.utils.logging import get_logger

logger = get_logger(__name__)


@celery_app.task(name="shopcore.tasks.abandon.abandon_idle_carts_task")
def abandon_idle_carts_task(idle_seconds: int | None = None):
    """Mark active carts without activity for too long as abandoned."""
    idle_before = datetime.now(timezone.utc) - timedelta(
        seconds=idle_seconds if idle_seconds is not None else CART_ABANDON_AFTER_SECONDS
    )
    logger.info(f"Abandon carts task started, idle before {idle_before.isoformat()}")

    db = SessionLocal()
    try:
        abandoned = CartService(db, ProductClient()).abandon_idle_carts(idle_before)
    finally:
        db.close()

    logger.info(f"Marked {abandoned} carts abandoned")
    return abandoned
