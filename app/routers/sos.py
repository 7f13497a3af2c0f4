from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.audit import audit_user_action
from app.db import get_db
from app.models import MANAGEMENT_TIER, SosStatus, User
from app.schemas import SosRead, SosResolveRequest, SosTriggerRequest
from app.security import get_current_user, require_role
from app.services.sos import acknowledge_sos, list_sos, resolve_sos, trigger_sos

router = APIRouter(tags=["sos"])


@router.post("/api/v1/sos/trigger", response_model=SosRead, status_code=201)
def trigger(
    payload: SosTriggerRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SosRead:
    alert = trigger_sos(db, user, payload)
    audit_user_action(
        db,
        request,
        user,
        action="SOS_TRIGGERED",
        entity_type="sos_alert",
        entity_id=alert.id,
        details={"notified": len(alert.notified_user_ids or [])},
    )
    return SosRead.model_validate(alert)


@router.get("/api/v1/sos", response_model=list[SosRead])
def list_alerts(
    status: SosStatus | None = Query(default=None),
    caller: User = Depends(require_role(MANAGEMENT_TIER)),
    db: Session = Depends(get_db),
) -> list[SosRead]:
    return [SosRead.model_validate(alert) for alert in list_sos(db, caller, status=status)]


@router.patch("/api/v1/sos/{alert_id}/acknowledge", response_model=SosRead)
def acknowledge(
    alert_id: str,
    request: Request,
    caller: User = Depends(require_role(MANAGEMENT_TIER)),
    db: Session = Depends(get_db),
) -> SosRead:
    alert = acknowledge_sos(db, caller, alert_id)
    audit_user_action(db, request, caller, action="SOS_ACKNOWLEDGED", entity_type="sos_alert", entity_id=alert.id)
    return SosRead.model_validate(alert)


@router.patch("/api/v1/sos/{alert_id}/resolve", response_model=SosRead)
def resolve(
    alert_id: str,
    request: Request,
    payload: SosResolveRequest | None = None,
    caller: User = Depends(require_role(MANAGEMENT_TIER)),
    db: Session = Depends(get_db),
) -> SosRead:
    alert = resolve_sos(db, caller, alert_id, notes=payload.notes if payload is not None else None)
    audit_user_action(db, request, caller, action="SOS_RESOLVED", entity_type="sos_alert", entity_id=alert.id)
    return SosRead.model_validate(alert)
