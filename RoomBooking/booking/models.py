import uuid

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models

from .timeutils import semester_type


# ============= USER MODEL =============
class User(AbstractUser):
    ROLE_CHOICES = [('A', 'Admin'), ('U', 'User')]
    role = models.CharField(max_length=1, choices=ROLE_CHOICES, default='U')

    @property
    def is_booking_admin(self):
        return self.role == 'A'

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"


# ============= ROOM MODEL =============
class Room(models.Model):
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('empty', 'Empty'),
        ('maintenance', 'Maintenance'),
    ]

    code = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=100, blank=True)
    capacity = models.PositiveIntegerField(default=1)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='empty')
    # Comma separated, e.g. "Projector, AC"
    facilities = models.CharField(max_length=255, blank=True)

    @property
    def facility_list(self):
        return [f.strip() for f in self.facilities.split(',') if f.strip()]

    def __str__(self):
        return f"{self.code} - {self.name}" if self.name else self.code

    class Meta:
        ordering = ['code']


# ============= COURSE MODEL =============
class Course(models.Model):
    """Created lazily when a schedule names an unknown course code."""
    code = models.CharField(max_length=40, unique=True)
    name = models.CharField(max_length=200)

    def __str__(self):
        return f"{self.code} {self.name}"

    class Meta:
        ordering = ['code']


# ============= ACADEMIC SCHEDULE (recurring weekly rule) =============
class AcademicSchedule(models.Model):
    SEMESTER_TYPE_CHOICES = [
        ('odd', 'Ganjil (odd)'),
        ('even', 'Genap (even)'),
    ]
    DAY_CHOICES = [
        (0, 'Sunday'),
        (1, 'Monday'),
        (2, 'Tuesday'),
        (3, 'Wednesday'),
        (4, 'Thursday'),
        (5, 'Friday'),
        (6, 'Saturday'),
    ]

    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name='academic_schedules')
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name='academic_schedules')
    lecturer_name = models.CharField(max_length=200, blank=True)
    semester_ordinal = models.PositiveSmallIntegerField()
    semester_type = models.CharField(max_length=4, choices=SEMESTER_TYPE_CHOICES, editable=False)
    day_of_week = models.PositiveSmallIntegerField(choices=DAY_CHOICES)
    start_time = models.TimeField()
    end_time = models.TimeField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def save(self, *args, **kwargs):
        # Parity always follows the ordinal
        self.semester_type = semester_type(self.semester_ordinal)
        super().save(*args, **kwargs)

    def __str__(self):
        return (
            f"{self.course.code} - {self.get_day_of_week_display()} "
            f"{self.start_time:%H:%M}-{self.end_time:%H:%M} (sem {self.semester_ordinal})"
        )

    class Meta:
        ordering = ['semester_ordinal', 'day_of_week', 'start_time']
        constraints = [
            models.UniqueConstraint(
                fields=['room', 'day_of_week', 'semester_ordinal', 'start_time', 'end_time'],
                name='unique_academic_schedule_rule',
            ),
            models.CheckConstraint(
                condition=models.Q(start_time__lt=models.F('end_time')),
                name='academic_schedule_start_before_end',
            ),
        ]


# ============= RESERVATION =============
class Reservation(models.Model):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (APPROVED, 'Approved'),
        (REJECTED, 'Rejected'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name='reservations')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='reservations'
    )
    purpose = models.TextField()
    reservation_date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=PENDING)
    requested_at = models.DateTimeField(auto_now_add=True)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='processed_reservations',
    )
    processed_at = models.DateTimeField(null=True, blank=True)
    admin_notes = models.TextField(null=True, blank=True)

    @property
    def is_pending(self):
        return self.status == self.PENDING

    def __str__(self):
        return f"Reservation {self.room.code} {self.reservation_date} by {self.user.username} - {self.status}"

    class Meta:
        ordering = ['-requested_at']
        indexes = [
            models.Index(fields=['room', 'reservation_date', 'status'], name='idx_res_room_date_status'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(start_time__lt=models.F('end_time')),
                name='reservation_start_before_end',
            ),
        ]


# ============= AD-HOC SCHEDULE (materialized approved booking) =============
class AdHocSchedule(models.Model):
    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name='ad_hoc_schedules')
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name='ad_hoc_schedules')
    lecturer_name = models.CharField(max_length=200, blank=True)
    start_at = models.DateTimeField()
    end_at = models.DateTimeField()
    # One schedule per approved reservation
    reservation = models.OneToOneField(
        Reservation,
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name='ad_hoc_schedule',
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.course.name} - {self.room.code} ({self.start_at:%Y-%m-%d %H:%M}-{self.end_at:%H:%M})"

    class Meta:
        ordering = ['start_at']
        indexes = [
            models.Index(fields=['room', 'start_at'], name='idx_adhoc_room_start'),
        ]
