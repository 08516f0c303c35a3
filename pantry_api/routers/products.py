import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from .. import crud, notifier
from ..auth import get_current_user
from ..celery_app import celery_app
from ..config import EXPIRY_WARNING_DAYS
from ..database import get_db
from ..errors import NotFound, PantryError
from ..expiry import days_until_expiry, is_expired, is_expiring_soon, pantry_stats
from ..models import Location, Product, ProductCategory, User
from ..schemas import (
    Page, PantryAlerts, PantryStats, ProductBulkCreate, ProductBulkResponse,
    ProductCreate, ProductSchema,
)
from .deps import get_today

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


def _product_out(product: Product, today: date, threshold: int = EXPIRY_WARNING_DAYS) -> ProductSchema:
    out = ProductSchema.model_validate(product)
    out.days_until_expiry = days_until_expiry(product.expiry_date, today)
    out.is_expiring_soon = is_expiring_soon(product.expiry_date, today, threshold)
    out.is_expired = is_expired(product.expiry_date, today)
    return out


@router.get("", response_model=Page[ProductSchema])
async def list_products(
    category: Optional[ProductCategory] = None,
    location: Optional[Location] = None,
    expiring_soon: bool = False,
    expired: bool = False,
    days: int = Query(EXPIRY_WARNING_DAYS, ge=0),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    today: date = Depends(get_today),
):
    products, total = await crud.list_products(
        db, current_user.id, today,
        category=category, location=location,
        expiring_soon=expiring_soon, expired=expired, days=days,
        page=page, limit=limit,
    )
    return {
        "items": [_product_out(p, today, days) for p in products],
        "pagination": crud.pagination(page, limit, total),
    }


@router.get("/stats", response_model=PantryStats)
async def get_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    today: date = Depends(get_today),
):
    products = await crud.active_products(db, current_user.id)
    return pantry_stats(products, today, EXPIRY_WARNING_DAYS)


@router.get("/alerts", response_model=PantryAlerts)
async def get_alerts(
    days: int = Query(EXPIRY_WARNING_DAYS, ge=0),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    today: date = Depends(get_today),
):
    products = await crud.active_products(db, current_user.id)
    products.sort(key=lambda p: (p.expiry_date is None, p.expiry_date or today, p.id))
    return {
        "as_of": today,
        "days": days,
        "expiring_soon": [
            _product_out(p, today, days) for p in products
            if is_expiring_soon(p.expiry_date, today, days)
        ],
        "expired": [
            _product_out(p, today, days) for p in products if is_expired(p.expiry_date, today)
        ],
    }


@router.post("/alerts/scan")
async def start_expiry_scan(
    days: int = Query(EXPIRY_WARNING_DAYS, ge=0),
    current_user: User = Depends(get_current_user),
):
    task = celery_app.send_task(
        "tasks.scan_expiring_products",
        kwargs={"user_id": current_user.id, "days": days},
    )
    logger.info("Started scan_expiring_products task with ID: %s", task.id)
    return {"task_id": task.id, "status": "Expiry scan started"}


@router.get("/alerts/scan/{task_id}")
async def get_expiry_scan(task_id: str, current_user: User = Depends(get_current_user)):
    task_result = celery_app.AsyncResult(task_id)
    state = getattr(task_result, "state", getattr(task_result, "status", None))
    logger.info("Checking expiry scan task %s, state: %s", task_id, state)
    if not task_result.ready():
        return {"status": "PENDING", "detail": "Task is still processing"}
    if task_result.failed():
        # the failure carries no owner, so its detail stays in the log
        logger.error("Expiry scan task %s failed: %s", task_id, task_result.get(propagate=False))
        raise PantryError("Expiry scan failed")
    result = task_result.get()
    if not isinstance(result, dict) or result.get("user_id") != current_user.id:
        raise NotFound("Task not found")
    return {"status": "SUCCESS", "result": result}


@router.get("/{product_id}", response_model=ProductSchema)
async def read_product(
    product_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    today: date = Depends(get_today),
):
    product = await crud.get_product(db, product_id, current_user.id)
    return _product_out(product, today)


@router.post("", response_model=ProductSchema, status_code=status.HTTP_201_CREATED)
async def create_product(
    product: ProductCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    today: date = Depends(get_today),
):
    db_product = await crud.create_product(db, current_user.id, product, today)
    await notifier.publish_pantry_event(current_user.id, "product_created", product_id=db_product.id)
    return _product_out(db_product, today)


@router.post("/bulk", response_model=ProductBulkResponse, status_code=status.HTTP_201_CREATED)
async def create_products_bulk(
    payload: ProductBulkCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    today: date = Depends(get_today),
):
    products: List[Product] = await crud.create_products_bulk(db, current_user.id, payload.products, today)
    await notifier.publish_pantry_event(
        current_user.id, "products_created", product_ids=[p.id for p in products]
    )
    return {
        "message": f"{len(products)} products added",
        "items": [_product_out(p, today) for p in products],
    }


@router.put("/{product_id}", response_model=ProductSchema)
async def update_product(
    product_id: int,
    product: ProductCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    today: date = Depends(get_today),
):
    db_product = await crud.update_product(db, product_id, current_user.id, product)
    await notifier.publish_pantry_event(current_user.id, "product_updated", product_id=product_id)
    return _product_out(db_product, today)


@router.patch("/{product_id}/consume", response_model=ProductSchema)
async def consume_product(
    product_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    today: date = Depends(get_today),
):
    db_product = await crud.consume_product(db, product_id, current_user.id)
    await notifier.publish_pantry_event(current_user.id, "product_consumed", product_id=product_id)
    return _product_out(db_product, today)


@router.delete("/{product_id}")
async def delete_product(
    product_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await crud.delete_product(db, product_id, current_user.id)
    await notifier.publish_pantry_event(current_user.id, "product_deleted", product_id=product_id)
    return {"message": "Product deleted"}
