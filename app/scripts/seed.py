from typing import Dict

from sqlmodel import Session, select

from app.database import create_db_and_tables, engine
from app.models.service import Service
from app.models.specialist import Specialist, SpecialistService
from app.models.user import Role, User


USERS = [
    ("Admin", "admin@wellness.test", Role.ADMIN),
    ("Olena Client", "olena@wellness.test", Role.CLIENT),
    ("Taras Client", "taras@wellness.test", Role.CLIENT),
    ("Iryna Masseuse", "iryna@wellness.test", Role.SPECIALIST),
    ("Petro Therapist", "petro@wellness.test", Role.SPECIALIST),
]

SPECIALISTS = {
    "iryna@wellness.test": "Massage",
    "petro@wellness.test": "Physiotherapy",
}

# name, duration, price, active, specialists
SERVICES = [
    ("Classic massage", 30, 600.0, True, ["iryna@wellness.test", "petro@wellness.test"]),
    ("Deep tissue massage", 60, 950.0, True, ["iryna@wellness.test"]),
    ("Rehabilitation session", 45, 800.0, True, ["petro@wellness.test"]),
    ("Hot stone therapy", 90, 1200.0, False, ["iryna@wellness.test"]),
    ("Aroma bath", 30, 400.0, True, []),
]


def seed_directory(session: Session) -> Dict[str, object]:
    """Create (or reuse) demo users, specialists and services.

    Returns every row keyed by email (users and specialist profiles use
    ``"<email>"`` and ``"specialist:<email>"``) or by service name.
    """
    rows: Dict[str, object] = {}

    # 1) users
    for name, email, role in USERS:
        user = session.exec(select(User).where(User.email == email)).first()
        if not user:
            user = User(name=name, email=email, role=role.value)
            session.add(user)
            session.flush()
        rows[email] = user

    # 2) specialist profiles
    for email, specialization in SPECIALISTS.items():
        user = rows[email]
        profile = session.exec(select(Specialist).where(Specialist.user_id == user.id)).first()
        if not profile:
            profile = Specialist(user_id=user.id, specialization=specialization)
            session.add(profile)
            session.flush()
        rows[f"specialist:{email}"] = profile

    # 3) services + assignments
    for name, duration, price, active, providers in SERVICES:
        service = session.exec(select(Service).where(Service.name == name)).first()
        if not service:
            service = Service(name=name, duration_minutes=duration, price=price, active=active)
            session.add(service)
            session.flush()
        rows[name] = service

        for email in providers:
            profile = rows[f"specialist:{email}"]
            link = session.get(SpecialistService, (profile.id, service.id))
            if not link:
                session.add(SpecialistService(specialist_id=profile.id, service_id=service.id))

    session.commit()
    return rows


def main():
    create_db_and_tables()
    with Session(engine) as session:
        rows = seed_directory(session)

        print("Seed complete!")
        for name, _, _, active, providers in SERVICES:
            service = rows[name]
            state = "active" if active else "inactive"
            print(f"Service {service.id}: {name} ({state}) -> {', '.join(providers) or 'nobody'}")


if __name__ == "__main__":
    main()
