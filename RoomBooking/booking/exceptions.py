"""Booking error taxonomy.

Every error carries the HTTP status the transport layer should answer with
and a stable machine readable ``code``.
"""


class BookingError(Exception):
    status_code = 500
    code = 'booking_error'

    def __init__(self, detail=None):
        self.detail = detail or self.default_detail()
        super().__init__(self.detail)

    def default_detail(self):
        return self.__class__.__name__

    def as_dict(self):
        return {'error': self.code, 'detail': self.detail}


# ============= VALIDATION (client fault) =============

class BookingValidationError(BookingError):
    status_code = 400
    code = 'validation_error'


class InvalidTimeValue(BookingValidationError):
    code = 'invalid_time_value'

    def default_detail(self):
        return 'Date or time value could not be parsed.'


class InvalidRange(BookingValidationError):
    code = 'invalid_range'

    def default_detail(self):
        return 'End time must be after start time.'


class PastStartTime(BookingValidationError):
    code = 'past_start_time'

    def default_detail(self):
        return 'Reservation start time cannot be in the past.'


class InvalidStatus(BookingValidationError):
    code = 'invalid_status'


# ============= NOT FOUND (client fault) =============

class NotFoundError(BookingError):
    status_code = 404
    code = 'not_found'


class RoomNotFound(NotFoundError):
    code = 'room_not_found'

    def __init__(self, room_code):
        self.room_code = room_code
        super().__init__(f"Room with code {room_code} not found.")


class ReservationNotFound(NotFoundError):
    code = 'reservation_not_found'

    def __init__(self, reservation_id):
        self.reservation_id = reservation_id
        super().__init__(f"Reservation with ID {reservation_id} not found.")


# ============= CONFLICT (client fault, retry with other parameters) =============

class ConflictError(BookingError):
    status_code = 409
    code = 'conflict'


class ScheduleConflict(ConflictError):
    code = 'schedule_conflict'

    def __init__(self, room_code, day_of_week, semester_ordinal, start_time, end_time):
        self.room_code = room_code
        self.day_of_week = day_of_week
        self.semester_ordinal = semester_ordinal
        self.window = (start_time, end_time)
        super().__init__(
            f"Academic schedule conflict detected: Room {room_code} on day {day_of_week} "
            f"for semester {semester_ordinal} already has an overlapping schedule "
            f"between {start_time}-{end_time}."
        )


class SlotUnavailable(ConflictError):
    code = 'slot_unavailable'

    def default_detail(self):
        return 'The selected time slot for this room is not available.'


class AlreadyProcessed(ConflictError):
    code = 'already_processed'

    def __init__(self, current_status):
        self.current_status = current_status
        super().__init__(
            f"Reservation has already been processed. Current status: {current_status}"
        )


# ============= DEPENDENCY (server fault, never retried here) =============

class DependencyError(BookingError):
    status_code = 500
    code = 'dependency_error'

    def default_detail(self):
        return 'The booking store could not complete the request.'
