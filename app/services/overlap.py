import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple, Union

from app.core.config import Settings
from app.models.appointment import Appointment
from app.services.store import BookedInterval

logger = logging.getLogger(__name__)

Interval = Tuple[datetime, datetime]
CalendarEntry = Union[Appointment, BookedInterval]


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """True if [a_start, a_end) overlaps [b_start, b_end); touching ends do not."""
    return a_start < b_end and b_start < a_end


def _parse_start(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def interval_of(appt: CalendarEntry) -> Optional[Interval]:
    """[start, end) of a stored appointment, or None for a corrupt row."""
    start = _parse_start(appt.start_time)
    duration = appt.duration_minutes
    if start is None:
        logger.warning(f"Skipping appointment {appt.id}: invalid start time {appt.start_time!r}")
        return None
    if not isinstance(duration, int) or isinstance(duration, bool) or duration <= 0:
        logger.warning(f"Skipping appointment {appt.id}: invalid duration {duration!r}")
        return None
    return start, start + timedelta(minutes=duration)


def busy_intervals(appointments: Iterable[CalendarEntry]) -> List[Interval]:
    busy = []
    for appt in appointments:
        interval = interval_of(appt)
        if interval is not None:
            busy.append(interval)
    return busy


def find_conflict(
    start: datetime,
    end: datetime,
    appointments: Iterable[CalendarEntry],
) -> Optional[CalendarEntry]:
    """First appointment whose interval intersects [start, end), if any."""
    for appt in appointments:
        interval = interval_of(appt)
        if interval is None:
            continue
        if overlaps(start, end, interval[0], interval[1]):
            return appt
    return None


def has_conflict(
    store,
    specialist_id: int,
    start: datetime,
    end: datetime,
    settings: Settings,
    exclude_appointment_id: Optional[int] = None,
) -> bool:
    """Check [start, end) (naive UTC) against the specialist's calendar.

    Must be called inside the transaction that performs the following write,
    after ``store.lock_specialist(specialist_id)``.
    """
    existing = store.occupying_for_specialist(
        specialist_id,
        settings.overlap_ignored_statuses,
        exclude_appointment_id=exclude_appointment_id,
    )
    conflict = find_conflict(start, end, existing)
    if conflict is not None:
        logger.warning(
            f"Specialist {specialist_id} already booked by appointment {conflict.id} "
            f"for {start.isoformat()}-{end.isoformat()}"
        )
        return True
    return False
