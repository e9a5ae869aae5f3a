"""
Bookable slot generation on the working-day grid.

The grid runs from ``work_start_hour`` to ``work_end_hour`` (business-local
time) in steps of ``slot_step_minutes``. A candidate survives when it fits
before closing time, does not intersect a busy interval and lies strictly in
the future.
"""

from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List

from app.core import clock
from app.core.config import Settings
from app.services.overlap import Interval, busy_intervals, overlaps


def candidate_starts(day: date, duration_minutes: int, settings: Settings) -> List[datetime]:
    """Every grid start on ``day`` whose slot ends no later than closing time."""
    tz = settings.tz
    midnight = datetime.combine(day, time(0, 0), tzinfo=tz)
    current = midnight + timedelta(hours=settings.work_start_hour)
    day_end = midnight + timedelta(hours=settings.work_end_hour)

    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=settings.slot_step_minutes)

    starts = []
    while current + duration <= day_end:
        starts.append(current)
        current += step
    return starts


def free_slots(
    day: date,
    duration_minutes: int,
    busy: Iterable[Interval],
    settings: Settings,
    now: datetime,
) -> List[datetime]:
    """Free start times for one specialist.

    ``busy`` holds naive UTC intervals as stored; ``now`` is aware. Returned
    datetimes are aware, in the business timezone, in chronological order.
    """
    busy = list(busy)
    duration = timedelta(minutes=duration_minutes)

    slots = []
    for start in candidate_starts(day, duration_minutes, settings):
        if start <= now:
            continue
        slot_start = clock.to_storage(start, settings.tz)
        slot_end = slot_start + duration
        if any(overlaps(slot_start, slot_end, b_start, b_end) for b_start, b_end in busy):
            continue
        slots.append(start)
    return slots


def generate_slots(
    store,
    day: date,
    duration_minutes: int,
    specialist_ids: Iterable[int],
    settings: Settings,
    now: datetime,
) -> Dict[int, List[datetime]]:
    """Map each specialist with at least one free slot to their start times."""
    day_start, day_end = clock.day_bounds(day, settings.tz)

    result: Dict[int, List[datetime]] = {}
    for specialist_id in specialist_ids:
        appointments = store.for_specialist_on_day(
            specialist_id, day_start, day_end, settings.slot_ignored_statuses
        )
        slots = free_slots(day, duration_minutes, busy_intervals(appointments), settings, now)
        if slots:
            result[specialist_id] = slots
    return result
