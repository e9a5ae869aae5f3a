from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.config import Settings, get_settings
from app.core.security import get_current_client, get_current_staff, get_current_user
from app.database import get_session
from app.models.appointment import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentRead,
    AppointmentStatus,
    AppointmentUpdate,
)
from app.models.user import User
from app.services import lifecycle
from app.services.directory import Directory
from app.services.store import AppointmentStore


router = APIRouter(prefix="/appointments", tags=["appointments"])


def get_store(session: Session = Depends(get_session)) -> AppointmentStore:
    return AppointmentStore(session)


def get_directory(session: Session = Depends(get_session)) -> Directory:
    return Directory(session)


# =========================
# AVAILABLE SLOTS (service + day)
# GET /appointments/availability?service_id=1&date=2026-02-14
# =========================
@router.get("/availability")
def get_available_slots(
    service_id: int,
    date: date,
    specialist_id: Optional[int] = None,
    store: AppointmentStore = Depends(get_store),
    directory: Directory = Depends(get_directory),
    settings: Settings = Depends(get_settings),
):
    slots = lifecycle.get_availability(
        store, directory, settings, service_id, date, specialist_id=specialist_id
    )

    if isinstance(slots, list):
        return [s.isoformat() for s in slots]

    return {
        str(spec_id): [s.isoformat() for s in starts]
        for spec_id, starts in slots.items()
    }


# =========================
# CREATE APPOINTMENT (CLIENT)
# =========================
@router.post("/", status_code=status.HTTP_201_CREATED, response_model=AppointmentRead)
def create_appointment(
    appointment: AppointmentCreate,
    store: AppointmentStore = Depends(get_store),
    directory: Directory = Depends(get_directory),
    settings: Settings = Depends(get_settings),
    current_client: User = Depends(get_current_client),
):
    return lifecycle.create_appointment(store, directory, settings, current_client, appointment)


# =========================
# MY APPOINTMENTS (CLIENT)
# =========================
@router.get("/my", response_model=List[AppointmentRead])
def list_my_appointments(
    store: AppointmentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    current_client: User = Depends(get_current_client),
):
    return lifecycle.list_for_client(store, settings, current_client.id)


# =========================
# LIST APPOINTMENTS
# - admin: everything, free filters
# - specialist: only their own calendar
# =========================
@router.get("/", response_model=List[AppointmentRead])
def list_appointments(
    specialist_id: Optional[int] = None,
    client_id: Optional[int] = None,
    status: Optional[AppointmentStatus] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    store: AppointmentStore = Depends(get_store),
    directory: Directory = Depends(get_directory),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_staff),
):
    filters = AppointmentFilters(
        specialist_id=specialist_id,
        client_id=client_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
    )
    return lifecycle.list_filtered(store, directory, settings, current_user, filters)


# =========================
# GET ONE APPOINTMENT
# =========================
@router.get("/{appointment_id}", response_model=AppointmentRead)
def get_appointment(
    appointment_id: int,
    store: AppointmentStore = Depends(get_store),
    directory: Directory = Depends(get_directory),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    return lifecycle.get_by_id(store, directory, settings, appointment_id, current_user)


# =========================
# UPDATE APPOINTMENT
# - admin: any field
# - specialist: completed / no_show, admin notes
# - client: cancel own pending/confirmed appointment
# =========================
@router.put("/{appointment_id}")
def update_appointment(
    appointment_id: int,
    payload: AppointmentUpdate,
    store: AppointmentStore = Depends(get_store),
    directory: Directory = Depends(get_directory),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    return lifecycle.update_appointment(
        store, directory, settings, appointment_id, current_user, payload
    )
