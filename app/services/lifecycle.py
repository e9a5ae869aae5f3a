"""
Appointment lifecycle: booking, role-scoped reads, status transitions and
availability queries.

Every function receives its collaborators explicitly (store, directory,
settings) and re-reads current state inside a transaction before mutating.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from app.core import clock
from app.core.config import Settings
from app.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentRead,
    AppointmentStatus,
    AppointmentUpdate,
)
from app.models.user import Role, User
from app.services.directory import Directory
from app.services.overlap import has_conflict
from app.services.slots import generate_slots
from app.services.store import AppointmentRow, AppointmentStore

logger = logging.getLogger(__name__)


CLIENT_CANCELLABLE = (AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value)

# fields that may be omitted but never cleared
NON_NULLABLE_FIELDS = ("client_id", "service_id", "start_time", "status")


# =========================
# PATCH VARIANTS (one per role)
# =========================

class AdminPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    client_id: Optional[int] = None
    specialist_id: Optional[int] = None
    service_id: Optional[int] = None
    start_time: Optional[datetime] = None
    status: Optional[AppointmentStatus] = None
    admin_notes: Optional[str] = None
    client_notes: Optional[str] = None


class SpecialistStatusPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Optional[Literal[AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW]] = None
    admin_notes: Optional[str] = None


class ClientCancel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Literal[AppointmentStatus.CANCELLED_BY_CLIENT]


Patch = Union[AdminPatch, SpecialistStatusPatch, ClientCancel]


def authorize_patch(
    directory: Directory,
    requester: User,
    appt: Appointment,
    changes: dict,
) -> Patch:
    """Pick the patch variant the requester's role allows and build it.

    Fields or values the variant does not accept, and failed ownership or
    status preconditions, are a ForbiddenError.
    """
    denied = ForbiddenError("Not allowed to update this appointment or set this status")

    try:
        if requester.role == Role.ADMIN.value:
            return AdminPatch(**changes)

        if requester.role == Role.SPECIALIST.value:
            profile = directory.specialist_for_user(requester.id)
            if profile is None or appt.specialist_id != profile.id:
                raise denied
            return SpecialistStatusPatch(**changes)

        if requester.role == Role.CLIENT.value:
            if appt.client_id != requester.id:
                raise denied
            patch = ClientCancel(**changes)
            if appt.status not in CLIENT_CANCELLABLE:
                raise denied
            return patch
    except PydanticValidationError as exc:
        raise denied from exc

    raise denied


# =========================
# READ MODEL
# =========================

def _to_read(row: AppointmentRow, settings: Settings) -> AppointmentRead:
    appt, service, client_name, specialist_name = row
    start = clock.from_storage(appt.start_time, settings.tz)
    return AppointmentRead(
        id=appt.id,
        client_id=appt.client_id,
        specialist_id=appt.specialist_id,
        service_id=appt.service_id,
        start_time=start,
        end_time=start + timedelta(minutes=appt.duration_minutes),
        duration_minutes=appt.duration_minutes,
        status=appt.status,
        client_notes=appt.client_notes,
        admin_notes=appt.admin_notes,
        service_name=service.name,
        service_price=service.price,
        client_name=client_name,
        specialist_name=specialist_name,
    )


def _as_aware(value: datetime, settings: Settings) -> datetime:
    # naive input is business-local time
    if value.tzinfo is None:
        return value.replace(tzinfo=settings.tz)
    return value


# =========================
# CREATE (CLIENT)
# =========================

def create_appointment(
    store: AppointmentStore,
    directory: Directory,
    settings: Settings,
    client: User,
    body: AppointmentCreate,
    now: Optional[datetime] = None,
) -> AppointmentRead:
    now = now or clock.utcnow()

    if _as_aware(body.start_time, settings) <= now:
        raise ValidationError("Invalid appointment time. Bookings are only possible in the future.")

    start = clock.to_storage(body.start_time, settings.tz)

    with store.transaction():
        service = directory.get_service(body.service_id)
        if service is None:
            raise NotFoundError("Service not found or inactive")

        if body.specialist_id is not None:
            if not directory.specialist_provides(body.specialist_id, body.service_id):
                raise ValidationError("The selected specialist does not provide this service")
        else:
            if not settings.allow_unassigned_appointments:
                raise ValidationError("A specialist must be selected")
            if not directory.any_specialist_provides(body.service_id):
                raise ValidationError("No specialist currently provides this service")

        end = start + timedelta(minutes=service.duration_minutes)

        if body.specialist_id is not None:
            store.lock_specialist(body.specialist_id)
            if has_conflict(store, body.specialist_id, start, end, settings):
                raise ConflictError(
                    "The selected time is already taken for this specialist. Please choose another time."
                )

        appt = store.add(
            Appointment(
                client_id=client.id,
                specialist_id=body.specialist_id,
                service_id=body.service_id,
                start_time=start,
                duration_minutes=service.duration_minutes,
                status=AppointmentStatus.PENDING.value,
                client_notes=body.client_notes,
            )
        )
        result = _to_read(store.get_row(appt.id), settings)

    logger.info(
        f"Appointment {result.id} created for client {client.id} "
        f"(service={result.service_id}, specialist={result.specialist_id})"
    )
    return result


# =========================
# LIST / GET
# =========================

def list_for_client(store: AppointmentStore, settings: Settings, client_id: int) -> List[AppointmentRead]:
    return [_to_read(row, settings) for row in store.list_for_client(client_id)]


def list_filtered(
    store: AppointmentStore,
    directory: Directory,
    settings: Settings,
    requester: User,
    filters: AppointmentFilters,
) -> List[AppointmentRead]:
    """Admin sees everything; a specialist only their own calendar."""
    specialist_id = filters.specialist_id
    client_id = filters.client_id

    if requester.role == Role.SPECIALIST.value:
        profile = directory.specialist_for_user(requester.id)
        if profile is None:
            raise ForbiddenError("Specialist profile not found")
        specialist_id = profile.id
        client_id = None
    elif requester.role != Role.ADMIN.value:
        raise ForbiddenError("Not allowed to list appointments")

    start_from = start_before = None
    if filters.date_from is not None:
        start_from, _ = clock.day_bounds(filters.date_from, settings.tz)
    if filters.date_to is not None:
        _, start_before = clock.day_bounds(filters.date_to, settings.tz)

    rows = store.list_filtered(
        specialist_id=specialist_id,
        client_id=client_id,
        status=filters.status.value if filters.status else None,
        start_from=start_from,
        start_before=start_before,
    )
    return [_to_read(row, settings) for row in rows]


def get_by_id(
    store: AppointmentStore,
    directory: Directory,
    settings: Settings,
    appointment_id: int,
    requester: User,
) -> AppointmentRead:
    row = store.get_row(appointment_id)
    if row is None:
        raise NotFoundError("Appointment not found")
    appt = row[0]

    if requester.role == Role.ADMIN.value:
        return _to_read(row, settings)
    if requester.role == Role.CLIENT.value and appt.client_id == requester.id:
        return _to_read(row, settings)
    if requester.role == Role.SPECIALIST.value:
        profile = directory.specialist_for_user(requester.id)
        if profile is not None and appt.specialist_id == profile.id:
            return _to_read(row, settings)

    raise ForbiddenError("You do not have access to this appointment")


# =========================
# UPDATE (role-scoped)
# =========================

def _apply_admin_patch(
    directory: Directory,
    settings: Settings,
    appt: Appointment,
    patch: AdminPatch,
) -> None:
    fields = patch.model_fields_set

    if "client_id" in fields:
        client = directory.get_user(patch.client_id)
        if client is None or client.role != Role.CLIENT.value:
            raise ValidationError("Client not found")
        appt.client_id = patch.client_id

    if "service_id" in fields:
        service = directory.get_service(patch.service_id)
        if service is None:
            raise ValidationError("The selected service was not found or is inactive")
        appt.service_id = service.id
        appt.duration_minutes = service.duration_minutes

    if "specialist_id" in fields:
        if patch.specialist_id is None and not settings.allow_unassigned_appointments:
            raise ValidationError("A specialist must be assigned")
        appt.specialist_id = patch.specialist_id

    if fields & {"specialist_id", "service_id"} and appt.specialist_id is not None:
        if not directory.specialist_provides(appt.specialist_id, appt.service_id):
            raise ValidationError("The selected specialist does not provide the selected service")

    if "start_time" in fields:
        appt.start_time = clock.to_storage(patch.start_time, settings.tz)

    if "status" in fields:
        appt.status = patch.status.value

    if "admin_notes" in fields:
        appt.admin_notes = patch.admin_notes

    if "client_notes" in fields:
        appt.client_notes = patch.client_notes


def _render_updates(appt: Appointment, patch: Patch, settings: Settings) -> dict:
    keys = set(patch.model_fields_set)
    if "service_id" in keys:
        keys.add("duration_minutes")

    updated = {}
    for key in sorted(keys):
        value = getattr(appt, key)
        if key == "start_time":
            value = clock.from_storage(value, settings.tz).isoformat()
        updated[key] = value
    return updated


def update_appointment(
    store: AppointmentStore,
    directory: Directory,
    settings: Settings,
    appointment_id: int,
    requester: User,
    body: AppointmentUpdate,
) -> dict:
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("Nothing to update")

    for key in NON_NULLABLE_FIELDS:
        if key in changes and changes[key] is None:
            raise ValidationError(f"{key} cannot be null")

    occupying = settings.occupying_statuses

    with store.transaction():
        appt = store.get_for_update(appointment_id)
        if appt is None:
            raise NotFoundError("Appointment not found")

        patch = authorize_patch(directory, requester, appt, changes)

        original = {
            key: getattr(appt, key)
            for key in ("specialist_id", "start_time", "duration_minutes", "status")
        }

        if isinstance(patch, AdminPatch):
            _apply_admin_patch(directory, settings, appt, patch)
        elif isinstance(patch, SpecialistStatusPatch):
            if patch.status is not None:
                appt.status = patch.status.value
            if "admin_notes" in patch.model_fields_set:
                appt.admin_notes = patch.admin_notes
        else:
            appt.status = patch.status.value

        interval_changed = any(
            getattr(appt, key) != original[key]
            for key in ("specialist_id", "start_time", "duration_minutes")
        )
        reopened = original["status"] not in occupying
        if appt.specialist_id is not None and appt.status in occupying and (interval_changed or reopened):
            end = appt.start_time + timedelta(minutes=appt.duration_minutes)
            store.lock_specialist(appt.specialist_id)
            if has_conflict(
                store,
                appt.specialist_id,
                appt.start_time,
                end,
                settings,
                exclude_appointment_id=appt.id,
            ):
                raise ConflictError("The specialist is already booked for this time")

        store.save(appt)
        updated = _render_updates(appt, patch, settings)

    logger.info(f"Appointment {appointment_id} updated by user {requester.id}: {sorted(updated)}")
    return {"id": appointment_id, **updated}


# =========================
# AVAILABILITY
# =========================

def get_availability(
    store: AppointmentStore,
    directory: Directory,
    settings: Settings,
    service_id: int,
    day: date,
    specialist_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Union[Dict[int, List[datetime]], List[datetime]]:
    """Free start times per specialist, or a flat list when one was requested."""
    now = now or clock.utcnow()

    if day < clock.local_today(settings.tz, now):
        raise ValidationError("Invalid date. Availability can only be viewed for future dates.")

    service = directory.get_service(service_id)
    if service is None:
        raise NotFoundError("Service not found or inactive")

    if specialist_id is not None:
        if not directory.specialist_provides(specialist_id, service_id):
            raise NotFoundError("The selected specialist was not found or does not provide this service")
        specialist_ids = [specialist_id]
    else:
        specialist_ids = directory.list_specialists_for(service_id)

    slots = generate_slots(store, day, service.duration_minutes, specialist_ids, settings, now)

    if specialist_id is not None:
        return slots.get(specialist_id, [])
    return slots
