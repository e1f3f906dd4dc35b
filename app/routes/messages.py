from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database.db import get_db
from app.models.users import User
from app.routes.deps import get_current_user, get_services
from app.schemas.messages import MessageCreate, MessageOut
from app.services.container import Services

router = APIRouter(prefix="/events/{event_id}/messages", tags=["messages"])


@router.post("", response_model=MessageOut, status_code=201)
def send_message(
    event_id: int,
    payload: MessageCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.messages.send_message_to_attendees(db, event_id, user, payload.subject, payload.message)


@router.get("", response_model=list[MessageOut])
def list_messages(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.messages.list_event_messages(db, event_id, user)
