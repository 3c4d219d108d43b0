"""Collaborators the booking core calls into: rooms, courses, profiles and
the semester calendar. Each is a small object so services can be handed a
fake in tests instead of reaching for the ORM directly.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model

from .models import Course, Room
from .timeutils import parse_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserInfo:
    id: Optional[str]
    full_name: Optional[str]
    username: Optional[str]

    def as_dict(self):
        return {'id': self.id, 'fullName': self.full_name, 'username': self.username}


PLACEHOLDER_FULL_NAME = 'User'
PLACEHOLDER_USERNAME = 'unknown_user'


class RoomDirectory:
    def get_by_code(self, code) -> Optional[Room]:
        return Room.objects.filter(code=code).first()

    def get_by_id(self, room_id) -> Optional[Room]:
        return Room.objects.filter(pk=room_id).first()


class CourseCatalog:
    def get_or_create(self, code, name) -> Course:
        # Atomic insert-if-absent on the unique course code
        course, created = Course.objects.get_or_create(code=code, defaults={'name': name})
        if created:
            logger.info("Created course %s (%s)", code, name)
        return course


class ProfileDirectory:
    """Best-effort profile lookup; never blocks the calling operation."""

    def get(self, user_id) -> UserInfo:
        if user_id is None:
            return UserInfo(None, PLACEHOLDER_FULL_NAME, PLACEHOLDER_USERNAME)
        user = get_user_model().objects.filter(pk=user_id).first()
        if user is None:
            logger.warning("No profile found for user %s, using placeholder", user_id)
            return UserInfo(str(user_id), PLACEHOLDER_FULL_NAME, PLACEHOLDER_USERNAME)
        return self.from_user(user)

    @staticmethod
    def from_user(user) -> UserInfo:
        return UserInfo(
            str(user.pk),
            user.get_full_name() or PLACEHOLDER_FULL_NAME,
            user.username or PLACEHOLDER_USERNAME,
        )


class SemesterCalendar:
    """Which semester parity is running on a given date.

    ``periods`` is a list of ``{"parity": "odd"|"even", "start": "YYYY-MM-DD",
    "end": "YYYY-MM-DD"}`` with inclusive bounds. With no periods every
    academic rule applies all year.
    """

    def __init__(self, periods=None):
        if periods is None:
            periods = getattr(settings, 'BOOKING_SEMESTER_PERIODS', [])
        self.periods = []
        for period in periods:
            start = parse_date(period.get('start'))
            end = parse_date(period.get('end'))
            parity = period.get('parity')
            if start is None or end is None or parity not in ('odd', 'even'):
                raise ValueError(f"Invalid semester period: {period!r}")
            self.periods.append((parity, start, end))

    @property
    def configured(self):
        return bool(self.periods)

    def parity_on(self, day):
        """Return 'odd', 'even' or None (no semester running)."""
        for parity, start, end in self.periods:
            if start <= day <= end:
                return parity
        return None

    def applies(self, semester_ordinal, day):
        if not self.configured:
            return True
        parity = self.parity_on(day)
        if parity is None:
            return False
        return (semester_ordinal % 2 != 0) == (parity == 'odd')
