from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database.db import get_db
from app.models.users import User
from app.routes.deps import get_current_user, get_services
from app.schemas.registrations import AttendeeOut, RegistrationOut, RegistrationStatusOut
from app.services.container import Services

router = APIRouter(tags=["registrations"])


@router.post("/events/{event_id}/register", response_model=RegistrationOut, status_code=201)
def register(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.registrations.register_for_event(db, event_id, user)


@router.delete("/events/{event_id}/register", response_model=RegistrationOut)
def unregister(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.registrations.unregister_from_event(db, event_id, user)


@router.get("/events/{event_id}/registration", response_model=RegistrationStatusOut)
def registration_status(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.registrations.get_registration_status(db, event_id, user.id)


@router.get("/events/{event_id}/registrations", response_model=list[RegistrationOut])
def event_registrations(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.registrations.list_event_registrations(db, event_id, user)


@router.get("/events/{event_id}/attendees", response_model=list[AttendeeOut])
def event_attendees(event_id: int, db: Session = Depends(get_db), services: Services = Depends(get_services)):
    return [
        {
            "id": reg.id,
            "user_id": reg.user_id,
            "user_name": reg.user.name,
            "registration_date": reg.registration_date,
        }
        for reg in services.registrations.list_event_attendees(db, event_id)
    ]


@router.get("/registrations/mine", response_model=list[RegistrationOut])
def my_registrations(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.registrations.list_user_registrations(db, user.id)
