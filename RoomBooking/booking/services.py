import logging
import uuid

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from .exceptions import (
    AlreadyProcessed,
    BookingValidationError,
    InvalidRange,
    InvalidStatus,
    InvalidTimeValue,
    PastStartTime,
    ReservationNotFound,
    RoomNotFound,
    ScheduleConflict,
    SlotUnavailable,
)
from .lookups import CourseCatalog, ProfileDirectory, RoomDirectory
from .models import AcademicSchedule, AdHocSchedule, Reservation, Room
from .timeutils import combine, now_to_minute, overlaps, parse_date, parse_time_of_day, semester_type
from .utils import AvailabilityChecker, translate_store_errors

logger = logging.getLogger(__name__)

MIN_SEMESTER_ORDINAL = 1
MAX_SEMESTER_ORDINAL = 14
RESERVED_LECTURER = 'Reserved User'


def _hms(value):
    return value.strftime('%H:%M:%S')


def _lock_room(room_id):
    """Row lock on the room for the rest of the current transaction."""
    return Room.objects.select_for_update().filter(pk=room_id).first()


# ============= RECORDS =============

def academic_schedule_record(schedule):
    return {
        'id': schedule.pk,
        'courseId': schedule.course_id,
        'roomId': schedule.room_id,
        'lecturerName': schedule.lecturer_name or None,
        'semesterOrdinal': schedule.semester_ordinal,
        'semesterType': schedule.semester_type,
        'dayOfWeek': schedule.day_of_week,
        'startTime': _hms(schedule.start_time),
        'endTime': _hms(schedule.end_time),
        'createdAt': schedule.created_at,
        'updatedAt': schedule.updated_at,
        'courseName': schedule.course.name if schedule.course_id else None,
        'courseCode': schedule.course.code if schedule.course_id else None,
        'roomCode': schedule.room.code if schedule.room_id else None,
        'roomName': schedule.room.name if schedule.room_id else None,
    }


def ad_hoc_schedule_record(schedule):
    return {
        'id': schedule.pk,
        'roomId': schedule.room_id,
        'roomCode': schedule.room.code,
        'roomName': schedule.room.name,
        'courseName': schedule.course.name,
        'courseCode': schedule.course.code,
        'lecturerName': schedule.lecturer_name,
        'startAt': schedule.start_at,
        'endAt': schedule.end_at,
        'reservationId': str(schedule.reservation_id) if schedule.reservation_id else None,
    }


def reservation_record(reservation, requesting_user, processed_by=None):
    room = reservation.room
    return {
        'id': str(reservation.pk),
        'roomCode': room.code if room else 'N/A',
        'roomName': room.name if room else 'N/A',
        'requestingUser': requesting_user.as_dict(),
        'purpose': reservation.purpose,
        'reservationDate': reservation.reservation_date.isoformat(),
        'startTime': _hms(reservation.start_time),
        'endTime': _hms(reservation.end_time),
        'status': reservation.status,
        'requestedAt': reservation.requested_at,
        'processedByAdmin': processed_by.as_dict() if processed_by else None,
        'processedAt': reservation.processed_at,
        'adminNotes': reservation.admin_notes,
    }


# ============= ACADEMIC SCHEDULE REGISTRY =============

class AcademicScheduleRegistry:
    """Standing weekly class rules, one room/day/semester/time range each."""

    def __init__(self, rooms=None, courses=None):
        self.rooms = rooms or RoomDirectory()
        self.courses = courses or CourseCatalog()

    def create_academic_schedule(self, course_name, course_code, room_code, lecturer_name,
                                 semester_ordinal, day_of_week, start_time, end_time):
        start = parse_time_of_day(start_time)
        end = parse_time_of_day(end_time)
        if start is None or end is None:
            raise InvalidTimeValue('Start and end time must be in HH:MM format.')
        if end <= start:
            raise InvalidRange()
        if not MIN_SEMESTER_ORDINAL <= semester_ordinal <= MAX_SEMESTER_ORDINAL:
            raise BookingValidationError(
                f"Semester ordinal must be between {MIN_SEMESTER_ORDINAL} and {MAX_SEMESTER_ORDINAL}."
            )
        if not 0 <= day_of_week <= 6:
            raise BookingValidationError('Day of week must be between 0 (Sunday) and 6 (Saturday).')

        window = (start.strftime('%H:%M'), end.strftime('%H:%M'))
        with translate_store_errors('create_academic_schedule'):
            room = self.rooms.get_by_code(room_code)
            if room is None:
                raise RoomNotFound(room_code)
            course = self.courses.get_or_create(course_code, course_name)

            try:
                with transaction.atomic():
                    _lock_room(room.pk)
                    if self.overlapping_rules(room.pk, day_of_week, semester_ordinal, start, end):
                        raise ScheduleConflict(room_code, day_of_week, semester_ordinal, *window)

                    schedule = AcademicSchedule.objects.create(
                        room=room,
                        course=course,
                        lecturer_name=lecturer_name,
                        semester_ordinal=semester_ordinal,
                        day_of_week=day_of_week,
                        start_time=start,
                        end_time=end,
                    )
            except ScheduleConflict:
                logger.warning(
                    "Rejected academic schedule %s for room %s day %s semester %s %s-%s: overlap",
                    course_code, room_code, day_of_week, semester_ordinal, *window,
                )
                raise
            except IntegrityError as exc:
                # Exact duplicate rule caught by the unique constraint
                raise ScheduleConflict(room_code, day_of_week, semester_ordinal, *window) from exc

        logger.info(
            "Created academic schedule %s for %s in room %s (semester %s, %s)",
            schedule.pk, course.code, room.code, semester_ordinal, semester_type(semester_ordinal),
        )
        return academic_schedule_record(schedule)

    @staticmethod
    def overlapping_rules(room_id, day_of_week, semester_ordinal, start, end, exclude_id=None):
        """Rules for the same room/day/semester whose time-of-day range overlaps."""
        same_slot = AcademicSchedule.objects.filter(
            room_id=room_id,
            day_of_week=day_of_week,
            semester_ordinal=semester_ordinal,
        )
        if exclude_id is not None:
            same_slot = same_slot.exclude(pk=exclude_id)
        return [rule for rule in same_slot if overlaps(start, end, rule.start_time, rule.end_time)]

    def list_academic_schedules(self, room_code=None, semester_ordinal=None):
        with translate_store_errors('list_academic_schedules'):
            schedules = AcademicSchedule.objects.select_related('course', 'room')
            if room_code:
                schedules = schedules.filter(room__code=room_code)
            if semester_ordinal is not None:
                schedules = schedules.filter(semester_ordinal=semester_ordinal)
            schedules = schedules.order_by('semester_ordinal', 'day_of_week', 'start_time')
            return [academic_schedule_record(s) for s in schedules]


# ============= AD-HOC SCHEDULE REGISTRY =============

class AdHocScheduleRegistry:
    """Dated one-off schedules materialized from approved reservations."""

    def __init__(self, courses=None):
        self.courses = courses or CourseCatalog()

    def course_code_for(self, reservation, full=False):
        prefix = getattr(settings, 'BOOKING_RESERVATION_CODE_PREFIX', 'RES')
        suffix = reservation.pk.hex if full else str(reservation.pk)[:8]
        return f"{prefix}-{suffix}"

    def materialize(self, reservation, start_at, end_at, lecturer_name=None):
        existing = AdHocSchedule.objects.filter(reservation=reservation).first()
        if existing is not None:
            return existing
        name = reservation.purpose[:200]
        course = self.courses.get_or_create(self.course_code_for(reservation), name)
        if course.name != name:
            # Short code already taken by another reservation's course
            course = self.courses.get_or_create(self.course_code_for(reservation, full=True), name)
        schedule = AdHocSchedule.objects.create(
            room_id=reservation.room_id,
            course=course,
            lecturer_name=lecturer_name or RESERVED_LECTURER,
            start_at=start_at,
            end_at=end_at,
            reservation=reservation,
        )
        logger.info("Materialized schedule %s from reservation %s", schedule.pk, reservation.pk)
        return schedule

    def list_ad_hoc_schedules(self, room_code=None):
        with translate_store_errors('list_ad_hoc_schedules'):
            schedules = AdHocSchedule.objects.select_related('course', 'room')
            if room_code:
                schedules = schedules.filter(room__code=room_code)
            return [ad_hoc_schedule_record(s) for s in schedules.order_by('start_at')]


# ============= RESERVATION LIFECYCLE =============

class ReservationService:
    """pending -> approved | rejected, decided once by an admin.

    Approval re-checks availability while holding row locks on the
    reservation and its room, so two approvals for the same room cannot
    interleave their check and write. The ad-hoc schedule is created after
    the approval commits; if that fails the approval stands and the failure
    is logged as CRITICAL for manual reconciliation.
    """

    def __init__(self, rooms=None, profiles=None, checker=None, ad_hoc=None, clock=None):
        self.rooms = rooms or RoomDirectory()
        self.profiles = profiles or ProfileDirectory()
        self.checker = checker or AvailabilityChecker()
        self.ad_hoc = ad_hoc or AdHocScheduleRegistry()
        self.clock = clock or timezone.now

    def check_availability(self, room_code, reservation_date, start_time, end_time):
        with translate_store_errors('check_availability'):
            room = self.rooms.get_by_code(room_code)
            if room is None:
                raise RoomNotFound(room_code)
            start_at, end_at = self._window(reservation_date, start_time, end_time)
            conflicts = self.checker.find_conflicts(room.pk, start_at, end_at)
        return {
            'roomCode': room.code,
            'start': start_at,
            'end': end_at,
            'available': not conflicts,
            'conflicts': [c.as_dict() for c in conflicts],
        }

    def create_reservation(self, user_id, room_code, purpose, reservation_date, start_time, end_time):
        with translate_store_errors('create_reservation'):
            room = self.rooms.get_by_code(room_code)
            if room is None:
                raise RoomNotFound(room_code)

            start_at, end_at = self._window(reservation_date, start_time, end_time)
            if start_at < now_to_minute(self.clock()):
                raise PastStartTime()

            if not self.checker.is_room_available(room.pk, start_at, end_at):
                logger.warning(
                    "Slot unavailable for room %s on %s %s-%s", room.code,
                    reservation_date, start_time, end_time,
                )
                raise SlotUnavailable()

            requester = self.profiles.get(user_id)
            reservation = Reservation.objects.create(
                room=room,
                user_id=user_id,
                purpose=purpose,
                reservation_date=parse_date(reservation_date),
                start_time=parse_time_of_day(start_time),
                end_time=parse_time_of_day(end_time),
                status=Reservation.PENDING,
            )

        logger.info("Reservation %s requested for room %s by user %s", reservation.pk, room.code, user_id)
        return reservation_record(reservation, requester)

    def update_reservation_status(self, reservation_id, admin_id, status, admin_notes=None):
        if status not in (Reservation.APPROVED, Reservation.REJECTED):
            raise InvalidStatus(
                f"Status must be one of: {Reservation.APPROVED}, {Reservation.REJECTED}"
            )
        pk = self._parse_id(reservation_id)

        with translate_store_errors('update_reservation_status'):
            with transaction.atomic():
                reservation = (
                    Reservation.objects.select_for_update()
                    .filter(pk=pk)
                    .first()
                )
                if reservation is None:
                    raise ReservationNotFound(reservation_id)
                if not reservation.is_pending:
                    raise AlreadyProcessed(reservation.status)

                start_at, end_at = self._window(
                    reservation.reservation_date, reservation.start_time, reservation.end_time
                )
                if status == Reservation.APPROVED:
                    _lock_room(reservation.room_id)
                    if not self.checker.is_room_available(
                        reservation.room_id, start_at, end_at, exclude_reservation_id=reservation.pk
                    ):
                        logger.warning("Approval of reservation %s blocked by a conflict", reservation.pk)
                        raise SlotUnavailable(
                            'The selected time slot for this room is no longer available '
                            'or conflicts with another approved booking/schedule.'
                        )

                reservation.status = status
                reservation.admin_notes = admin_notes
                reservation.processed_by_id = admin_id
                reservation.processed_at = self.clock()
                reservation.save(update_fields=['status', 'admin_notes', 'processed_by', 'processed_at'])

            reservation = Reservation.objects.select_related('room', 'user', 'processed_by').get(pk=pk)

        logger.info("Reservation %s %s by admin %s", reservation.pk, status, admin_id)
        requester = ProfileDirectory.from_user(reservation.user)
        if status == Reservation.APPROVED:
            self._materialize(reservation, start_at, end_at, reservation.user.get_full_name())
        return reservation_record(reservation, requester, self.profiles.get(admin_id))

    def get_reservation(self, reservation_id):
        pk = self._parse_id(reservation_id)
        with translate_store_errors('get_reservation'):
            reservation = self._joined().filter(pk=pk).first()
            if reservation is None:
                raise ReservationNotFound(reservation_id)
            return self._full_record(reservation)

    def find_my_reservations(self, user_id):
        with translate_store_errors('find_my_reservations'):
            requester = self.profiles.get(user_id)
            reservations = self._joined().filter(user_id=user_id).order_by('-requested_at')
            return [
                reservation_record(r, requester, self._processor(r)) for r in reservations
            ]

    def find_all_reservations_for_admin(self):
        with translate_store_errors('find_all_reservations_for_admin'):
            reservations = self._joined().order_by('-requested_at')
            return [self._full_record(r) for r in reservations]

    # ---- helpers ----

    def _materialize(self, reservation, start_at, end_at, lecturer_name):
        try:
            with transaction.atomic():
                self.ad_hoc.materialize(reservation, start_at, end_at, lecturer_name)
        except DatabaseError as exc:
            logger.critical(
                "Failed to create schedule after approving reservation %s; "
                "reservation stays approved, schedule row must be repaired: %s",
                reservation.pk, exc,
            )

    def _window(self, reservation_date, start_time, end_time):
        start_at = combine(reservation_date, start_time)
        end_at = combine(reservation_date, end_time)
        if start_at is None or end_at is None:
            raise InvalidTimeValue(
                f"Invalid reservation window: {reservation_date} {start_time}-{end_time}"
            )
        if end_at <= start_at:
            raise InvalidRange()
        return start_at, end_at

    @staticmethod
    def _parse_id(reservation_id):
        try:
            return uuid.UUID(str(reservation_id))
        except ValueError:
            raise ReservationNotFound(reservation_id) from None

    @staticmethod
    def _joined():
        return Reservation.objects.select_related('room', 'user', 'processed_by')

    @staticmethod
    def _processor(reservation):
        if reservation.processed_by is None:
            return None
        return ProfileDirectory.from_user(reservation.processed_by)

    def _full_record(self, reservation):
        return reservation_record(
            reservation, ProfileDirectory.from_user(reservation.user), self._processor(reservation)
        )
