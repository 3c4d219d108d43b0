"""Tests for the reservation lifecycle: request, approve/reject, listings."""

import logging
import uuid
from datetime import date, time

import pytest
from django.db import DatabaseError

from booking.exceptions import (
    AlreadyProcessed,
    InvalidRange,
    InvalidStatus,
    PastStartTime,
    ReservationNotFound,
    RoomNotFound,
    SlotUnavailable,
)
from booking.models import AcademicSchedule, AdHocSchedule, Course, Reservation
from booking.services import AdHocScheduleRegistry, ReservationService
from conftest import FixedClock, local_dt

DAY = "2025-06-10"


def book(service, user, start="09:00", end="10:00", room_code="R101", day=DAY, purpose="Thesis defense"):
    return service.create_reservation(user.pk, room_code, purpose, day, start, end)


@pytest.mark.django_db
class TestCreateReservation:
    def test_new_reservation_is_pending(self, service, room, user):
        record = book(service, user)

        assert record["status"] == Reservation.PENDING
        assert record["roomCode"] == "R101"
        assert record["roomName"] == "Classroom 1"
        assert record["reservationDate"] == DAY
        assert record["startTime"] == "09:00:00"
        assert record["endTime"] == "10:00:00"
        assert record["requestingUser"] == {"id": str(user.pk), "fullName": "Budi Santoso", "username": "budi"}
        assert record["processedByAdmin"] is None
        assert Reservation.objects.get(pk=record["id"]).user == user

    def test_pending_reservations_do_not_block_each_other(self, service, room, user, other_user):
        book(service, user, "09:00", "10:00")
        second = book(service, other_user, "09:30", "10:30")
        assert second["status"] == Reservation.PENDING

    def test_unknown_room(self, service, user):
        with pytest.raises(RoomNotFound):
            book(service, user, room_code="Z999")

    def test_end_before_start(self, service, room, user):
        with pytest.raises(InvalidRange):
            book(service, user, "10:00", "09:00")
        assert not Reservation.objects.exists()

    def test_start_in_the_past(self, room, user, checker):
        service = ReservationService(checker=checker, clock=FixedClock(local_dt(2025, 6, 10, 9, 30)))
        with pytest.raises(PastStartTime):
            book(service, user, "09:00", "10:00")

    def test_start_in_current_minute_is_accepted(self, room, user, checker):
        service = ReservationService(checker=checker, clock=FixedClock(local_dt(2025, 6, 10, 9, 0, 45)))
        assert book(service, user, "09:00", "10:00")["status"] == Reservation.PENDING

    def test_blocked_by_approved_reservation(self, service, room, user, other_user, admin_user):
        first = book(service, user)
        service.update_reservation_status(first["id"], admin_user.pk, Reservation.APPROVED)
        with pytest.raises(SlotUnavailable):
            book(service, other_user, "09:30", "10:30")

    def test_blocked_by_academic_rule(self, service, room, user):
        course = Course.objects.create(code="IF301", name="Algorithms")
        AcademicSchedule.objects.create(
            room=room, course=course, semester_ordinal=3, day_of_week=2,
            start_time=time(8), end_time=time(9, 30),
        )
        with pytest.raises(SlotUnavailable):
            book(service, user, "09:00", "10:00")
        assert book(service, user, "09:30", "10:30")["status"] == Reservation.PENDING

    def test_blocked_by_ad_hoc_schedule(self, service, room, user):
        course = Course.objects.create(code="WS-01", name="Workshop")
        AdHocSchedule.objects.create(
            room=room, course=course,
            start_at=local_dt(2025, 6, 10, 9, 45), end_at=local_dt(2025, 6, 10, 11),
        )
        with pytest.raises(SlotUnavailable):
            book(service, user, "09:00", "10:00")


@pytest.mark.django_db
class TestUpdateReservationStatus:
    def test_approve_creates_ad_hoc_schedule(self, service, checker, room, user, admin_user):
        record = book(service, user)
        approved = service.update_reservation_status(record["id"], admin_user.pk, Reservation.APPROVED, "OK")

        assert approved["status"] == Reservation.APPROVED
        assert approved["adminNotes"] == "OK"
        assert approved["processedByAdmin"]["fullName"] == "Ani Admin"
        assert approved["processedAt"] is not None

        schedule = AdHocSchedule.objects.get(reservation_id=record["id"])
        assert schedule.room == room
        assert schedule.start_at == local_dt(2025, 6, 10, 9)
        assert schedule.end_at == local_dt(2025, 6, 10, 10)
        assert schedule.lecturer_name == "Budi Santoso"
        assert schedule.course.code == f"RES-{record['id'][:8]}"
        assert schedule.course.name == "Thesis defense"

        assert not checker.is_room_available(room.pk, local_dt(2025, 6, 10, 9), local_dt(2025, 6, 10, 10))

    def test_lecturer_falls_back_when_user_has_no_name(self, service, room, other_user, admin_user):
        record = book(service, other_user)
        service.update_reservation_status(record["id"], admin_user.pk, Reservation.APPROVED)
        assert AdHocSchedule.objects.get(reservation_id=record["id"]).lecturer_name == "Reserved User"

    def test_second_overlapping_approval_fails(self, service, room, user, other_user, admin_user):
        first = book(service, user, "09:00", "10:00")
        second = book(service, other_user, "09:30", "10:30")
        service.update_reservation_status(first["id"], admin_user.pk, Reservation.APPROVED)

        with pytest.raises(SlotUnavailable, match="no longer available"):
            service.update_reservation_status(second["id"], admin_user.pk, Reservation.APPROVED)
        assert Reservation.objects.get(pk=second["id"]).status == Reservation.PENDING

    def test_overlapping_request_can_still_be_rejected(self, service, room, user, other_user, admin_user):
        first = book(service, user, "09:00", "10:00")
        second = book(service, other_user, "09:30", "10:30")
        service.update_reservation_status(first["id"], admin_user.pk, Reservation.APPROVED)

        rejected = service.update_reservation_status(second["id"], admin_user.pk, Reservation.REJECTED, "Taken")
        assert rejected["status"] == Reservation.REJECTED

    def test_reject_records_decision_without_schedule(self, service, room, user, admin_user):
        record = book(service, user)
        service.update_reservation_status(record["id"], admin_user.pk, Reservation.REJECTED, "Room closed")

        reservation = Reservation.objects.get(pk=record["id"])
        assert reservation.status == Reservation.REJECTED
        assert reservation.processed_by == admin_user
        assert reservation.processed_at == local_dt(2025, 6, 1, 8)
        assert reservation.admin_notes == "Room closed"
        assert not AdHocSchedule.objects.exists()

    def test_already_processed(self, service, room, user, admin_user):
        record = book(service, user)
        service.update_reservation_status(record["id"], admin_user.pk, Reservation.APPROVED, "first")

        with pytest.raises(AlreadyProcessed) as excinfo:
            service.update_reservation_status(record["id"], admin_user.pk, Reservation.REJECTED, "second")
        assert "approved" in excinfo.value.detail

        reservation = Reservation.objects.get(pk=record["id"])
        assert reservation.status == Reservation.APPROVED
        assert reservation.admin_notes == "first"
        assert AdHocSchedule.objects.count() == 1

    @pytest.mark.parametrize("reservation_id", [lambda: str(uuid.uuid4()), lambda: "abc"])
    def test_missing_reservation(self, service, admin_user, reservation_id):
        with pytest.raises(ReservationNotFound):
            service.update_reservation_status(reservation_id(), admin_user.pk, Reservation.APPROVED)

    def test_pending_is_not_a_decision(self, service, room, user, admin_user):
        record = book(service, user)
        with pytest.raises(InvalidStatus):
            service.update_reservation_status(record["id"], admin_user.pk, Reservation.PENDING)

    def test_schedule_failure_keeps_approval(self, room, user, admin_user, checker, clock, caplog):
        class BrokenAdHoc:
            def materialize(self, *args, **kwargs):
                raise DatabaseError("disk full")

        service = ReservationService(checker=checker, clock=clock, ad_hoc=BrokenAdHoc())
        record = book(service, user)

        with caplog.at_level(logging.CRITICAL, logger="booking"):
            approved = service.update_reservation_status(record["id"], admin_user.pk, Reservation.APPROVED)

        assert approved["status"] == Reservation.APPROVED
        assert Reservation.objects.get(pk=record["id"]).status == Reservation.APPROVED
        assert not AdHocSchedule.objects.exists()
        assert any(r.levelno == logging.CRITICAL and record["id"] in r.getMessage() for r in caplog.records)


@pytest.mark.django_db
class TestListings:
    def test_my_reservations_newest_first(self, service, room, user, other_user):
        older = book(service, user, "09:00", "10:00")
        newer = book(service, user, "11:00", "12:00")
        book(service, other_user, "13:00", "14:00")
        Reservation.objects.filter(pk=older["id"]).update(requested_at=local_dt(2025, 5, 1, 8))
        Reservation.objects.filter(pk=newer["id"]).update(requested_at=local_dt(2025, 5, 2, 8))

        mine = service.find_my_reservations(user.pk)
        assert [r["id"] for r in mine] == [newer["id"], older["id"]]
        assert all(r["requestingUser"]["username"] == "budi" for r in mine)

    def test_admin_sees_everyone_with_processor(self, service, room, user, other_user, admin_user):
        first = book(service, user, "09:00", "10:00")
        second = book(service, other_user, "11:00", "12:00")
        service.update_reservation_status(first["id"], admin_user.pk, Reservation.REJECTED)
        Reservation.objects.filter(pk=first["id"]).update(requested_at=local_dt(2025, 5, 3, 8))
        Reservation.objects.filter(pk=second["id"]).update(requested_at=local_dt(2025, 5, 1, 8))

        records = service.find_all_reservations_for_admin()
        assert [r["id"] for r in records] == [first["id"], second["id"]]
        assert records[0]["processedByAdmin"]["username"] == "admin"
        assert records[1]["processedByAdmin"] is None
        assert records[1]["requestingUser"]["fullName"] == "User"

    def test_get_reservation(self, service, room, user):
        record = book(service, user)
        fetched = service.get_reservation(record["id"])
        assert fetched["id"] == record["id"]
        assert fetched["purpose"] == "Thesis defense"

    def test_get_missing_reservation(self, service):
        with pytest.raises(ReservationNotFound):
            service.get_reservation(uuid.uuid4())

    def test_unknown_requester_gets_placeholder(self, service, db):
        assert service.find_my_reservations(9999) == []
        info = service.profiles.get(9999)
        assert info.full_name == "User"
        assert info.username == "unknown_user"


@pytest.mark.django_db
class TestCheckAvailability:
    def test_reports_conflicts(self, service, room, user, admin_user):
        record = book(service, user)
        service.update_reservation_status(record["id"], admin_user.pk, Reservation.APPROVED)

        result = service.check_availability("R101", date(2025, 6, 10), "09:30", "10:30")
        assert result["available"] is False
        assert {c["kind"] for c in result["conflicts"]} <= {"ad_hoc", "reservation"}
        assert result["conflicts"][0]["kind"] == "ad_hoc"

        free = service.check_availability("R101", DAY, "10:00", "11:00")
        assert free["available"] is True
        assert free["conflicts"] == []


@pytest.mark.django_db
class TestMaterialize:
    def reservation(self, room, user, pk, purpose):
        return Reservation.objects.create(
            id=pk, room=room, user=user, purpose=purpose, reservation_date=date(2025, 6, 10),
            start_time=time(9), end_time=time(10), status=Reservation.APPROVED,
        )

    def test_short_code_clash_uses_full_id(self, room, user):
        registry = AdHocScheduleRegistry()
        first = self.reservation(room, user, uuid.UUID("12345678-0000-0000-0000-000000000001"), "Seminar")
        second = self.reservation(room, user, uuid.UUID("12345678-0000-0000-0000-000000000002"), "Exam review")

        registry.materialize(first, local_dt(2025, 6, 10, 9), local_dt(2025, 6, 10, 10))
        schedule = registry.materialize(second, local_dt(2025, 6, 10, 9), local_dt(2025, 6, 10, 10))

        assert schedule.course.code == "RES-12345678000000000000000000000002"
        assert schedule.course.name == "Exam review"
        assert Course.objects.get(code="RES-12345678").name == "Seminar"

    def test_materialize_is_idempotent(self, room, user):
        registry = AdHocScheduleRegistry()
        res = self.reservation(room, user, uuid.uuid4(), "Seminar")

        first = registry.materialize(res, local_dt(2025, 6, 10, 9), local_dt(2025, 6, 10, 10), "Budi")
        again = registry.materialize(res, local_dt(2025, 6, 10, 9), local_dt(2025, 6, 10, 10), "Budi")

        assert first.pk == again.pk
        assert AdHocSchedule.objects.count() == 1
