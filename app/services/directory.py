"""
Read-only lookups over users, specialists and the service catalog.
"""

from typing import List, Optional

from sqlmodel import Session, func, select

from app.models.service import Service
from app.models.specialist import Specialist, SpecialistService
from app.models.user import Role, User


class Directory:
    def __init__(self, session: Session):
        self.session = session

    def get_user(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_service(self, service_id: int) -> Optional[Service]:
        """Active service or None."""
        service = self.session.get(Service, service_id)
        if not service or not service.active:
            return None
        return service

    def specialist_for_user(self, user_id: int) -> Optional[Specialist]:
        return self.session.exec(
            select(Specialist).where(Specialist.user_id == user_id)
        ).first()

    def specialist_provides(self, specialist_id: int, service_id: int) -> bool:
        row = self.session.exec(
            self._providers(service_id).where(SpecialistService.specialist_id == specialist_id)
        ).first()
        return row is not None

    def any_specialist_provides(self, service_id: int) -> bool:
        count = self.session.exec(
            select(func.count(func.distinct(SpecialistService.specialist_id)))
            .join(Specialist, Specialist.id == SpecialistService.specialist_id)
            .join(User, User.id == Specialist.user_id)
            .where(SpecialistService.service_id == service_id, User.role == Role.SPECIALIST.value)
        ).one()
        return count > 0

    def list_specialists_for(self, service_id: int) -> List[int]:
        return sorted(self.session.exec(self._providers(service_id)).all())

    @staticmethod
    def _providers(service_id: int):
        # only profiles whose user still holds the specialist role
        return (
            select(SpecialistService.specialist_id)
            .join(Specialist, Specialist.id == SpecialistService.specialist_id)
            .join(User, User.id == Specialist.user_id)
            .where(SpecialistService.service_id == service_id, User.role == Role.SPECIALIST.value)
        )
