from enum import Enum
from typing import Optional
from datetime import date, datetime, timedelta
from sqlmodel import SQLModel, Field

from app.core import clock


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED_BY_CLIENT = "cancelled_by_client"
    CANCELLED_BY_ADMIN = "cancelled_by_admin"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class Appointment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    client_id: int = Field(foreign_key="user.id", index=True)
    # None = "any qualified specialist" at booking time
    specialist_id: Optional[int] = Field(default=None, foreign_key="specialist.id", index=True)
    service_id: int = Field(foreign_key="service.id", index=True)

    # naive UTC
    start_time: datetime = Field(index=True)

    # SNAPSHOT of the service duration
    duration_minutes: int

    status: str = Field(default=AppointmentStatus.PENDING.value, index=True)

    client_notes: Optional[str] = None
    admin_notes: Optional[str] = None

    created_at: datetime = Field(default_factory=clock.storage_now, index=True)

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration_minutes)


class AppointmentCreate(SQLModel):
    service_id: int
    specialist_id: Optional[int] = None
    start_time: datetime
    client_notes: Optional[str] = None


class AppointmentUpdate(SQLModel):
    client_id: Optional[int] = None
    specialist_id: Optional[int] = None
    service_id: Optional[int] = None
    start_time: Optional[datetime] = None
    status: Optional[AppointmentStatus] = None
    admin_notes: Optional[str] = None
    client_notes: Optional[str] = None


class AppointmentRead(SQLModel):
    id: int
    client_id: int
    specialist_id: Optional[int] = None
    service_id: int
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    status: str
    client_notes: Optional[str] = None
    admin_notes: Optional[str] = None

    service_name: Optional[str] = None
    service_price: Optional[float] = None
    client_name: Optional[str] = None
    specialist_name: Optional[str] = None


class AppointmentFilters(SQLModel):
    specialist_id: Optional[int] = None
    client_id: Optional[int] = None
    status: Optional[AppointmentStatus] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
