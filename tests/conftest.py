"""Shared fixtures for the booking tests."""

from datetime import datetime

import pytest
from django.utils import timezone

from booking.lookups import SemesterCalendar
from booking.models import Room, User
from booking.services import AcademicScheduleRegistry, ReservationService
from booking.utils import AvailabilityChecker


def local_dt(year, month, day, hour=0, minute=0, second=0):
    return timezone.make_aware(
        datetime(year, month, day, hour, minute, second), timezone.get_current_timezone()
    )


class FixedClock:
    """Callable clock the services can be handed instead of timezone.now."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    # 2025-06-01 is a Sunday; the scenario date 2025-06-10 is a Tuesday
    return FixedClock(local_dt(2025, 6, 1, 8, 0))


@pytest.fixture
def room(db):
    return Room.objects.create(code="R101", name="Classroom 1", capacity=40, status="active")


@pytest.fixture
def other_room(db):
    return Room.objects.create(code="R102", name="Classroom 2", capacity=40, status="active")


@pytest.fixture
def user(db):
    return User.objects.create_user(
        username="budi", password="pw-budi-123", first_name="Budi", last_name="Santoso", role="U"
    )


@pytest.fixture
def other_user(db):
    return User.objects.create_user(username="sari", password="pw-sari-123", role="U")


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        username="admin", password="pw-admin-123", first_name="Ani", last_name="Admin", role="A"
    )


@pytest.fixture
def checker():
    return AvailabilityChecker(calendar=SemesterCalendar(periods=[]))


@pytest.fixture
def service(clock, checker):
    return ReservationService(checker=checker, clock=clock)


@pytest.fixture
def registry(db):
    return AcademicScheduleRegistry()
