from datetime import timedelta
from typing import Optional
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from pantry_api.celery_app import celery_app
from pantry_api.database import get_db_sync
from pantry_api.expiry import days_until_expiry, is_expired, is_expiring_soon, DEFAULT_THRESHOLD_DAYS
from pantry_api.models import Product, User, utc_today

logger = logging.getLogger('celery')


def _alert_entry(product: Product, today) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "expiry_date": product.expiry_date.isoformat(),
        "days_until_expiry": days_until_expiry(product.expiry_date, today),
    }


@celery_app.task(name='tasks.scan_expiring_products')
def scan_expiring_products(user_id: Optional[int] = None, days: int = DEFAULT_THRESHOLD_DAYS):
    logger.info("Starting scan_expiring_products task (user=%s, days=%s)", user_id, days)
    db: Session = next(get_db_sync())
    try:
        today = utc_today()
        query = (
            select(Product)
            .join(User, User.id == Product.created_by)
            .where(
                User.is_active.is_(True),
                Product.is_consumed.is_(False),
                Product.expiry_date.is_not(None),
                Product.expiry_date <= today + timedelta(days=days),
            )
            .order_by(Product.created_by, Product.expiry_date, Product.id)
        )
        if user_id is not None:
            query = query.where(Product.created_by == user_id)
        products = db.execute(query).scalars().all()
        logger.info("Found %d products expiring within %d days", len(products), days)

        by_user = {}
        for product in products:
            entry = by_user.setdefault(
                product.created_by,
                {"user_id": product.created_by, "expiring_soon": [], "expired": []},
            )
            if is_expired(product.expiry_date, today):
                entry["expired"].append(_alert_entry(product, today))
            elif is_expiring_soon(product.expiry_date, today, days):
                entry["expiring_soon"].append(_alert_entry(product, today))

        logger.info("Task completed successfully")
        return {
            "date": today.isoformat(),
            "days": days,
            "user_id": user_id,
            "users": list(by_user.values()),
        }
    except Exception as e:
        logger.error(f"Task failed: {str(e)}")
        raise Exception(f"Failed to scan expiring products: {str(e)}") from e
    finally:
        db.close()
