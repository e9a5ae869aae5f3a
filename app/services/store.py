"""
Appointment store: the transaction-scoped handle over a SQLModel session.

The lifecycle functions receive a store explicitly and run every
read-modify-write inside ``store.transaction()``.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterable, Iterator, List, NamedTuple, Optional, Tuple

from sqlalchemy import String, cast
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import aliased
from sqlmodel import Session, select

from app.core.errors import ConflictError, InternalError
from app.models.appointment import Appointment
from app.models.service import Service
from app.models.specialist import Specialist
from app.models.user import User

logger = logging.getLogger(__name__)

# (appointment, service, client name, specialist name)
AppointmentRow = Tuple[Appointment, Service, Optional[str], Optional[str]]


class BookedInterval(NamedTuple):
    """Calendar entry as stored. Fields are left unparsed so a corrupt row still loads."""

    id: int
    start_time: Any
    duration_minutes: Any


class AppointmentStore:
    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def transaction(self) -> Iterator["AppointmentStore"]:
        """Commit on success, roll back on any failure."""
        try:
            yield self
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            # appointment_no_overlap exclusion constraint (PostgreSQL)
            if "appointment_no_overlap" in str(exc.orig):
                logger.warning("Overlap rejected by database constraint")
                raise ConflictError(
                    "The selected time is already taken for this specialist"
                ) from exc
            logger.exception("Appointment store integrity error")
            raise InternalError("Internal server error") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Appointment store transaction failed")
            raise InternalError("Internal server error") from exc
        except Exception:
            self.session.rollback()
            raise

    def lock_specialist(self, specialist_id: int) -> Optional[Specialist]:
        """Serialize writers for one specialist's calendar (FOR UPDATE on PostgreSQL)."""
        return self.session.exec(
            select(Specialist).where(Specialist.id == specialist_id).with_for_update()
        ).first()

    def get_for_update(self, appointment_id: int) -> Optional[Appointment]:
        return self.session.exec(
            select(Appointment).where(Appointment.id == appointment_id).with_for_update()
        ).first()

    def get_row(self, appointment_id: int) -> Optional[AppointmentRow]:
        return self.session.exec(
            self._joined().where(Appointment.id == appointment_id)
        ).first()

    def occupying_for_specialist(
        self,
        specialist_id: int,
        ignored_statuses: Iterable[str],
        exclude_appointment_id: Optional[int] = None,
    ) -> List[BookedInterval]:
        query = self._intervals().where(
            Appointment.specialist_id == specialist_id,
            Appointment.status.not_in(list(ignored_statuses)),
        )
        if exclude_appointment_id is not None:
            query = query.where(Appointment.id != exclude_appointment_id)
        return [BookedInterval(*row) for row in self.session.exec(query).all()]

    def for_specialist_on_day(
        self,
        specialist_id: int,
        day_start: datetime,
        day_end: datetime,
        ignored_statuses: Iterable[str],
    ) -> List[BookedInterval]:
        query = self._intervals().where(
            Appointment.specialist_id == specialist_id,
            Appointment.start_time >= day_start,
            Appointment.start_time < day_end,
            Appointment.status.not_in(list(ignored_statuses)),
        )
        return [BookedInterval(*row) for row in self.session.exec(query).all()]

    def add(self, appointment: Appointment) -> Appointment:
        self.session.add(appointment)
        self.session.flush()
        self.session.refresh(appointment)
        return appointment

    def save(self, appointment: Appointment) -> None:
        self.session.add(appointment)
        self.session.flush()

    def list_for_client(self, client_id: int) -> List[AppointmentRow]:
        return list(
            self.session.exec(
                self._joined()
                .where(Appointment.client_id == client_id)
                .order_by(Appointment.start_time.desc())
            ).all()
        )

    def list_filtered(
        self,
        specialist_id: Optional[int] = None,
        client_id: Optional[int] = None,
        status: Optional[str] = None,
        start_from: Optional[datetime] = None,
        start_before: Optional[datetime] = None,
    ) -> List[AppointmentRow]:
        query = self._joined()
        if specialist_id is not None:
            query = query.where(Appointment.specialist_id == specialist_id)
        if client_id is not None:
            query = query.where(Appointment.client_id == client_id)
        if status is not None:
            query = query.where(Appointment.status == status)
        if start_from is not None:
            query = query.where(Appointment.start_time >= start_from)
        if start_before is not None:
            query = query.where(Appointment.start_time < start_before)
        return list(self.session.exec(query.order_by(Appointment.start_time.desc())).all())

    @staticmethod
    def _intervals():
        # start_time as text: the DateTime result processor raises on corrupt values
        return select(
            Appointment.id,
            cast(Appointment.start_time, String).label("start_time"),
            Appointment.duration_minutes,
        )

    @staticmethod
    def _joined():
        client = aliased(User)
        specialist_user = aliased(User)
        return (
            select(Appointment, Service, client.name, specialist_user.name)
            .join(Service, Service.id == Appointment.service_id)
            .join(client, client.id == Appointment.client_id)
            .outerjoin(Specialist, Specialist.id == Appointment.specialist_id)
            .outerjoin(specialist_user, specialist_user.id == Specialist.user_id)
        )
