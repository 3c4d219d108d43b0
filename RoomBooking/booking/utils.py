import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from django.db import DatabaseError

from .exceptions import DependencyError, InvalidRange, InvalidTimeValue
from .lookups import SemesterCalendar
from .models import AcademicSchedule, AdHocSchedule, Reservation
from .timeutils import combine, dates_touched, day_of_week, overlaps

logger = logging.getLogger(__name__)


@contextmanager
def translate_store_errors(operation):
    """Surface ORM failures as DependencyError (server fault, not retried)."""
    try:
        yield
    except DatabaseError as exc:
        logger.error("Store failure during %s: %s", operation, exc)
        raise DependencyError(f"Store failure during {operation}.") from exc


@dataclass(frozen=True)
class Conflict:
    kind: str  # 'ad_hoc' | 'academic' | 'reservation'
    id: str
    start: datetime
    end: datetime

    def as_dict(self):
        return {
            'kind': self.kind,
            'id': self.id,
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
        }


class AvailabilityChecker:
    """Decides whether a room is free for an absolute ``[start, end)`` window.

    Three sources are consulted in order, stopping at the first hit when only
    a yes/no answer is wanted:

    1. ad-hoc schedules (materialized bookings) overlapping in absolute time;
    2. academic weekly rules whose weekday and semester match a date the
       window touches, overlapping once instantiated on that date;
    3. approved reservations on the touched dates, fetched coarsely by date
       and filtered precisely with ``combine`` + ``overlaps``.

    Pending and rejected reservations never block a room.
    """

    def __init__(self, calendar=None):
        self.calendar = calendar if calendar is not None else SemesterCalendar()

    def is_room_available(self, room_id, start, end, exclude_reservation_id=None):
        return not self.find_conflicts(
            room_id, start, end, exclude_reservation_id=exclude_reservation_id, first_only=True
        )

    def find_conflicts(self, room_id, start, end, exclude_reservation_id=None, first_only=False):
        if start is None or end is None:
            raise InvalidTimeValue('Availability check needs valid start and end instants.')
        if end <= start:
            raise InvalidRange()

        conflicts = []
        for source in (self._ad_hoc_conflicts, self._academic_conflicts, self._reservation_conflicts):
            for conflict in source(room_id, start, end, exclude_reservation_id):
                conflicts.append(conflict)
                if first_only:
                    return conflicts
        return conflicts

    # 1. Materialized bookings
    def _ad_hoc_conflicts(self, room_id, start, end, exclude_reservation_id):
        sessions = AdHocSchedule.objects.filter(
            room_id=room_id,
            start_at__lt=end,
            end_at__gt=start,
        )
        if exclude_reservation_id:
            sessions = sessions.exclude(reservation_id=exclude_reservation_id)
        for s in sessions.order_by('start_at').iterator():
            yield Conflict('ad_hoc', str(s.pk), s.start_at, s.end_at)

    # 2. Weekly academic rules
    def _academic_conflicts(self, room_id, start, end, exclude_reservation_id):
        days_by_weekday = {}
        for day in dates_touched(start, end):
            days_by_weekday.setdefault(day_of_week(day), []).append(day)

        rules = AcademicSchedule.objects.filter(
            room_id=room_id,
            day_of_week__in=list(days_by_weekday),
        ).order_by('start_time')
        for rule in rules.iterator():
            for day in days_by_weekday[rule.day_of_week]:
                if not self.calendar.applies(rule.semester_ordinal, day):
                    continue
                rule_start = combine(day, rule.start_time)
                rule_end = combine(day, rule.end_time)
                if overlaps(start, end, rule_start, rule_end):
                    yield Conflict('academic', str(rule.pk), rule_start, rule_end)

    # 3. Approved reservations
    def _reservation_conflicts(self, room_id, start, end, exclude_reservation_id):
        approved = Reservation.objects.filter(
            room_id=room_id,
            status=Reservation.APPROVED,
            reservation_date__in=dates_touched(start, end),
        )
        if exclude_reservation_id:
            approved = approved.exclude(pk=exclude_reservation_id)
        for res in approved.order_by('start_time').iterator():
            res_start = combine(res.reservation_date, res.start_time)
            res_end = combine(res.reservation_date, res.end_time)
            if res_start is None or res_end is None:
                raise InvalidTimeValue(f"Stored reservation {res.pk} has an invalid date/time.")
            if overlaps(start, end, res_start, res_end):
                yield Conflict('reservation', str(res.pk), res_start, res_end)
