import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.database.db import get_db
from app.models.users import User
from app.routes.deps import get_current_user, get_services
from app.schemas.events import (
    ApprovalHistoryOut,
    EventCreate,
    EventOut,
    EventPage,
    EventStatsOut,
    EventUpdate,
    ReminderLogOut,
    RevisionRequest,
)
from app.services import rules
from app.services.container import Services

router = APIRouter(prefix="/events", tags=["events"])


@router.post("", response_model=EventOut, status_code=201)
def create_event(
    payload: EventCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.events.create_event(db, payload, user)


@router.get("", response_model=EventPage)
def list_events(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
):
    events, total = services.events.list_events(db, status=status, page=page, limit=limit)
    return {"events": events, "total": total, "page": page, "total_pages": math.ceil(total / limit)}


@router.get("/pending", response_model=list[EventOut])
def pending_events(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.events.list_pending_approval(db, user)


@router.get("/mine", response_model=list[EventOut])
def my_events(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.events.list_user_events(db, user.id)


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: int, db: Session = Depends(get_db), services: Services = Depends(get_services)):
    return services.events.get_event(db, event_id)


@router.put("/{event_id}", response_model=EventOut)
def update_event(
    event_id: int,
    payload: EventUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.events.update_event(db, event_id, payload, user)


@router.delete("/{event_id}", status_code=204)
def delete_event(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    services.events.delete_event(db, event_id, user)


@router.post("/{event_id}/submit", response_model=EventOut)
def submit_event(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.approvals.submit_for_approval(db, event_id, user)


@router.post("/{event_id}/approve", response_model=EventOut)
def approve_event(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.approvals.approve_event(db, event_id, user)


@router.post("/{event_id}/request-revision", response_model=EventOut)
def request_revision(
    event_id: int,
    payload: RevisionRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.approvals.request_revision(db, event_id, user, payload.revision_comments)


@router.post("/{event_id}/publish", response_model=EventOut)
def publish_event(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.approvals.publish_event(db, event_id, user)


@router.post("/{event_id}/cancel", response_model=EventOut)
def cancel_event(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.approvals.cancel_event(db, event_id, user)


@router.get("/{event_id}/history", response_model=list[ApprovalHistoryOut])
def event_history(event_id: int, db: Session = Depends(get_db), services: Services = Depends(get_services)):
    services.events.get_event(db, event_id)
    return services.history.get_event_history(db, event_id)


@router.get("/{event_id}/stats", response_model=EventStatsOut)
def event_stats(event_id: int, db: Session = Depends(get_db), services: Services = Depends(get_services)):
    return services.registrations.get_event_registration_stats(db, event_id)


@router.get("/{event_id}/reminders", response_model=list[ReminderLogOut])
def event_reminders(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    if not rules.is_administrator(user.role):
        raise HTTPException(status_code=403, detail="Administrators only")
    services.events.get_event(db, event_id)
    return services.reminders.get_reminder_logs(db, event_id)
