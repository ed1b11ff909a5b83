from app.models.user import ProviderProfile, User, UserCreate, UserPublic, UserRole
from app.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentPublic,
    AppointmentStatus,
    AppointmentType,
)
from app.models.schedule import BlockedTimeSlot, DayAvailability, DayOfWeek
from app.models.notification import Notification, NotificationPublic, NotificationType

__all__ = [
    "User",
    "UserCreate",
    "UserPublic",
    "UserRole",
    "ProviderProfile",
    "Appointment",
    "AppointmentCreate",
    "AppointmentPublic",
    "AppointmentStatus",
    "AppointmentType",
    "BlockedTimeSlot",
    "DayAvailability",
    "DayOfWeek",
    "Notification",
    "NotificationPublic",
    "NotificationType",
]
