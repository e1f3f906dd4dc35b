# Import every model so that relationships resolve and tables register with Base.metadata
from app.models.users import User, UserCategory, UserRole  # noqa: F401
from app.models.locations import Location  # noqa: F401
from app.models.events import Event, EventStatus  # noqa: F401
from app.models.registrations import EventRegistration, RegistrationStatus  # noqa: F401
from app.models.history import ApprovalAction, EventApprovalHistory  # noqa: F401
from app.models.reminders import ReminderLog, ReminderType  # noqa: F401
from app.models.messages import EventMessage  # noqa: F401
