from django import forms

from .models import AcademicSchedule, Reservation
from .services import AcademicScheduleRegistry


class TimeOfDayField(forms.RegexField):
    """``HH:MM`` (24h) at the boundary; kept as a string for the services."""

    def __init__(self, **kwargs):
        kwargs.setdefault('error_messages', {'invalid': 'Time must be in HH:MM format.'})
        super().__init__(regex=r'^([01]\d|2[0-3]):([0-5]\d)$', **kwargs)


class AcademicScheduleForm(forms.Form):
    courseName = forms.CharField(max_length=200)
    courseCode = forms.CharField(max_length=40)
    roomCode = forms.CharField(max_length=20)
    lecturerName = forms.CharField(max_length=200)
    semesterOrdinal = forms.IntegerField(
        min_value=1, max_value=14,
        error_messages={
            'min_value': 'Semester ordinal must be at least 1.',
            'max_value': 'Semester ordinal cannot be more than 14.',
        },
    )
    dayOfWeek = forms.TypedChoiceField(choices=AcademicSchedule.DAY_CHOICES, coerce=int)
    startTime = TimeOfDayField()
    endTime = TimeOfDayField()

    def clean(self):
        cleaned = super().clean()
        start, end = cleaned.get('startTime'), cleaned.get('endTime')
        if start and end and end <= start:
            raise forms.ValidationError('End time must be after start time.', code='invalid_range')
        return cleaned

    def to_kwargs(self):
        data = self.cleaned_data
        return {
            'course_name': data['courseName'],
            'course_code': data['courseCode'],
            'room_code': data['roomCode'],
            'lecturer_name': data['lecturerName'],
            'semester_ordinal': data['semesterOrdinal'],
            'day_of_week': data['dayOfWeek'],
            'start_time': data['startTime'],
            'end_time': data['endTime'],
        }


class ReservationForm(forms.Form):
    roomCode = forms.CharField(max_length=20)
    purpose = forms.CharField()
    reservationDate = forms.DateField(
        input_formats=['%Y-%m-%d'],
        error_messages={'invalid': 'Reservation date must be a valid date in YYYY-MM-DD format.'},
    )
    startTime = TimeOfDayField()
    endTime = TimeOfDayField()

    def to_kwargs(self):
        data = self.cleaned_data
        return {
            'room_code': data['roomCode'],
            'purpose': data['purpose'],
            'reservation_date': data['reservationDate'],
            'start_time': data['startTime'],
            'end_time': data['endTime'],
        }


class ReservationStatusForm(forms.Form):
    status = forms.ChoiceField(
        choices=[(Reservation.APPROVED, 'Approved'), (Reservation.REJECTED, 'Rejected')],
        error_messages={
            'invalid_choice': f"Status must be one of: {Reservation.APPROVED}, {Reservation.REJECTED}",
        },
    )
    adminNotes = forms.CharField(required=False)


class AvailabilityQueryForm(forms.Form):
    date = forms.DateField(input_formats=['%Y-%m-%d'])
    start = TimeOfDayField()
    end = TimeOfDayField()


class AcademicScheduleAdminForm(forms.ModelForm):
    """Admin form that applies the same overlap rule as the registry."""

    class Meta:
        model = AcademicSchedule
        fields = ['room', 'course', 'lecturer_name', 'semester_ordinal', 'day_of_week',
                  'start_time', 'end_time']

    def clean(self):
        cleaned = super().clean()
        room = cleaned.get('room')
        start, end = cleaned.get('start_time'), cleaned.get('end_time')
        day, ordinal = cleaned.get('day_of_week'), cleaned.get('semester_ordinal')
        if None in (room, start, end, day, ordinal):
            return cleaned
        if end <= start:
            raise forms.ValidationError('End time must be after start time.', code='invalid_range')
        if not 1 <= ordinal <= 14:
            raise forms.ValidationError('Semester ordinal must be between 1 and 14.', code='invalid')

        clashes = AcademicScheduleRegistry.overlapping_rules(
            room.pk, day, ordinal, start, end, exclude_id=self.instance.pk
        )
        if clashes:
            rule = clashes[0]
            raise forms.ValidationError(
                f"Overlaps {rule.course.code} ({rule.start_time:%H:%M}-{rule.end_time:%H:%M}) "
                f"in room {room.code} on the same day and semester.",
                code='schedule_conflict',
            )
        return cleaned
