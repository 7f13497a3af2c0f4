from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.errors import Conflict, Forbidden, NotFound, ValidationError
from app.models import ADMIN_TIER, StockAllocation, StockItem, StockItemStatus, User
from app.schemas import StockAllocationCreate, StockItemReview
from app.services.clock import local_day
from app.services.org_refs import require_activity, require_zone
from app.services.visibility import restrict_to_team

logger = logging.getLogger("app.stock")


def aggregate_allocation_status(statuses: Iterable[StockItemStatus]) -> StockItemStatus:
    """Derive an allocation's status from its item statuses.

    Precedence: all accepted, then all rejected, then any reviewed item makes the
    allocation partially accepted; otherwise it is still pending.
    """
    items = list(statuses)
    if all(status == StockItemStatus.ACCEPTED for status in items):
        return StockItemStatus.ACCEPTED
    if all(status == StockItemStatus.REJECTED for status in items):
        return StockItemStatus.REJECTED
    if any(status != StockItemStatus.PENDING for status in items):
        return StockItemStatus.PARTIALLY_ACCEPTED
    return StockItemStatus.PENDING


def can_review_item(caller: User, allocation: StockAllocation) -> bool:
    return allocation.user_id == caller.id or caller.role.at_least(ADMIN_TIER)


def _load_allocation(db: Session, allocation_id: str) -> StockAllocation | None:
    return db.scalar(
        select(StockAllocation)
        .where(StockAllocation.id == allocation_id)
        .options(selectinload(StockAllocation.items))
    )


def allocate(db: Session, caller: User, payload: StockAllocationCreate) -> StockAllocation:
    recipient = db.scalar(select(User).where(User.id == payload.user_id, User.org_id == caller.org_id))
    if recipient is None:
        raise NotFound("User not found.", code="USER_NOT_FOUND")

    allocation_date = payload.date or local_day()
    existing = db.scalar(
        select(StockAllocation.id).where(
            StockAllocation.user_id == recipient.id,
            StockAllocation.date == allocation_date,
        )
    )
    if existing is not None:
        raise Conflict("ALLOCATION_EXISTS", "Stock already allocated to this user for that date.")
    zone_id = require_zone(db, caller.org_id, payload.zone_id) or recipient.zone_id
    activity_id = require_activity(db, caller.org_id, payload.activity_id)

    allocation = StockAllocation(
        org_id=caller.org_id,
        user_id=recipient.id,
        zone_id=zone_id,
        activity_id=activity_id,
        date=allocation_date,
        notes=payload.notes,
        status=StockItemStatus.PENDING,
        created_by=caller.id,
    )
    allocation.items = [
        StockItem(
            position=index,
            product_name=item.product_name,
            sku=item.sku,
            category=item.category,
            unit=item.unit,
            quantity_allocated=item.quantity_allocated,
            status=StockItemStatus.PENDING,
        )
        for index, item in enumerate(payload.items)
    ]
    db.add(allocation)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("ALLOCATION_EXISTS", "Stock already allocated to this user for that date.") from exc
    db.refresh(allocation)
    logger.info(
        "stock_allocated",
        extra={
            "allocation_id": allocation.id,
            "user_id": recipient.id,
            "item_count": len(payload.items),
            "actor_id": caller.id,
        },
    )
    return allocation


def review_item(
    db: Session,
    caller: User,
    item_id: str,
    payload: StockItemReview,
    *,
    now: datetime | None = None,
) -> tuple[StockItem, StockAllocation]:
    item = db.get(StockItem, item_id)
    if item is None:
        raise NotFound("Stock item not found.", code="STOCK_ITEM_NOT_FOUND")

    allocation = _load_allocation(db, item.allocation_id)
    if allocation is None or allocation.org_id != caller.org_id:
        raise NotFound("Stock item not found.", code="STOCK_ITEM_NOT_FOUND")
    if not can_review_item(caller, allocation):
        raise Forbidden("Only the recipient or an administrator can review this item.")

    if payload.quantity_accepted is not None and payload.quantity_accepted > item.quantity_allocated:
        raise ValidationError(
            "QUANTITY_EXCEEDS_ALLOCATION",
            "Accepted quantity cannot exceed the allocated quantity.",
            details={"quantity_allocated": item.quantity_allocated},
        )

    item.status = StockItemStatus(payload.status)
    item.quantity_accepted = payload.quantity_accepted
    item.rejection_reason = payload.rejection_reason

    # The allocation status is always derived from the full item set.
    allocation.status = aggregate_allocation_status(entry.status for entry in allocation.items)
    allocation.reviewed_at = now or datetime.now(timezone.utc)
    db.commit()
    db.refresh(item)
    db.refresh(allocation)

    logger.info(
        "stock_item_reviewed",
        extra={
            "item_id": item.id,
            "allocation_id": allocation.id,
            "item_status": item.status.value,
            "allocation_status": allocation.status.value,
            "actor_id": caller.id,
        },
    )
    return item, allocation


def get_my_allocation(db: Session, user: User, *, day: date | None = None) -> StockAllocation | None:
    return db.scalar(
        select(StockAllocation)
        .where(
            StockAllocation.user_id == user.id,
            StockAllocation.date == (day or local_day()),
        )
        .options(selectinload(StockAllocation.items))
    )


def list_team_allocations(db: Session, caller: User, *, day: date | None = None) -> list[StockAllocation]:
    stmt = (
        select(StockAllocation)
        .where(
            StockAllocation.org_id == caller.org_id,
            StockAllocation.date == (day or local_day()),
        )
        .options(
            selectinload(StockAllocation.items),
            selectinload(StockAllocation.user),
        )
        .order_by(StockAllocation.created_at.desc())
    )
    stmt = restrict_to_team(stmt, StockAllocation.user_id, caller)
    return list(db.scalars(stmt).all())
