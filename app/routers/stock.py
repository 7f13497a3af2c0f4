from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.audit import audit_user_action
from app.db import get_db
from app.models import ADMIN_TIER, MANAGEMENT_TIER, User
from app.schemas import (
    StockAllocationCreate,
    StockAllocationRead,
    StockItemRead,
    StockItemReview,
    StockReviewResponse,
)
from app.security import get_current_user, require_role
from app.services.stock import allocate, get_my_allocation, list_team_allocations, review_item

router = APIRouter(tags=["stock"])


@router.get("/api/v1/stock/my", response_model=StockAllocationRead | None)
def my_allocation(
    day: date | None = Query(default=None, alias="date"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StockAllocationRead | None:
    allocation = get_my_allocation(db, user, day=day)
    if allocation is None:
        return None
    return StockAllocationRead.model_validate(allocation)


@router.post("/api/v1/stock/allocations", response_model=StockAllocationRead, status_code=201)
def create_allocation(
    payload: StockAllocationCreate,
    request: Request,
    caller: User = Depends(require_role(ADMIN_TIER)),
    db: Session = Depends(get_db),
) -> StockAllocationRead:
    allocation = allocate(db, caller, payload)
    audit_user_action(
        db,
        request,
        caller,
        action="STOCK_ALLOCATED",
        entity_type="stock_allocation",
        entity_id=allocation.id,
        details={"user_id": allocation.user_id, "item_count": len(payload.items)},
    )
    return StockAllocationRead.model_validate(allocation)


@router.get("/api/v1/stock/allocations", response_model=list[StockAllocationRead])
def team_allocations(
    day: date | None = Query(default=None, alias="date"),
    caller: User = Depends(require_role(MANAGEMENT_TIER)),
    db: Session = Depends(get_db),
) -> list[StockAllocationRead]:
    return [StockAllocationRead.model_validate(item) for item in list_team_allocations(db, caller, day=day)]


@router.patch("/api/v1/stock/items/{item_id}", response_model=StockReviewResponse)
def review_stock_item(
    item_id: str,
    payload: StockItemReview,
    request: Request,
    caller: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StockReviewResponse:
    item, allocation = review_item(db, caller, item_id, payload)
    audit_user_action(
        db,
        request,
        caller,
        action="STOCK_ITEM_REVIEWED",
        entity_type="stock_item",
        entity_id=item.id,
        details={"status": item.status.value, "allocation_status": allocation.status.value},
    )
    return StockReviewResponse(
        item=StockItemRead.model_validate(item),
        allocation_status=allocation.status,
        reviewed_at=allocation.reviewed_at,
    )
