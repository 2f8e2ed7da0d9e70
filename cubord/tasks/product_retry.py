"""Celery tasks for product enrichment retries."""

import logging

from sqlalchemy.orm import Session

from cubord.celery_app import app as celery_app
from cubord.config import get_settings
from cubord.database import SessionLocal
from cubord.services.product_service import ProductService

logger = logging.getLogger(__name__)


@celery_app.task
def retry_pending_products(max_attempts: int | None = None) -> dict:
    """Retry the UPC lookup for products saved without external data.

    This task runs every hour via celery-beat.

    Args:
        max_attempts: Retry ceiling; defaults to PRODUCT_MAX_RETRY_ATTEMPTS

    Returns:
        dict with the number of products enriched
    """
    settings = get_settings()
    ceiling = settings.product_max_retry_attempts if max_attempts is None else max_attempts
    db: Session = SessionLocal()

    try:
        enriched = ProductService(db, settings=settings).retry_pending_products(ceiling)
        logger.info(f"Product retry run finished: {enriched} enriched")
        return {"enriched": enriched}
    except Exception as e:
        logger.error(f"Error retrying product enrichment: {e}", exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()
