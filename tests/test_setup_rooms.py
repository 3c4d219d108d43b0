from io import StringIO

import pytest
from django.core.management import call_command

from booking.models import Room, User


@pytest.mark.django_db
def test_setup_rooms_is_idempotent():
    call_command("setup_rooms", "--admin-password", "s3cret-pass", stdout=StringIO())
    call_command("setup_rooms", stdout=StringIO())

    assert Room.objects.count() == 17
    assert Room.objects.get(code="R101").name == "Classroom 1"
    admin = User.objects.get(username="admin")
    assert admin.role == "A"
    assert admin.check_password("s3cret-pass")


@pytest.mark.django_db
def test_setup_rooms_leaves_existing_user_alone(user):
    out = StringIO()
    call_command("setup_rooms", "--admin-username", "budi", stdout=out)

    user.refresh_from_db()
    assert user.role == "U"
    assert "not a booking admin" in out.getvalue()
