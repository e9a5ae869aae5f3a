from typing import Optional
from sqlmodel import SQLModel, Field


class Specialist(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # profile of a user with role="specialist"
    user_id: int = Field(foreign_key="user.id", index=True, unique=True)

    specialization: Optional[str] = None


class SpecialistService(SQLModel, table=True):
    specialist_id: int = Field(foreign_key="specialist.id", primary_key=True)
    service_id: int = Field(foreign_key="service.id", primary_key=True)
