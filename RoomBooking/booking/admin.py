from django.contrib import admin, messages
from django.contrib.auth.admin import UserAdmin

from .exceptions import BookingError
from .forms import AcademicScheduleAdminForm
from .models import AcademicSchedule, AdHocSchedule, Course, Reservation, Room, User
from .services import ReservationService


# ============= USER ADMIN =============
class CustomUserAdmin(UserAdmin):
    fieldsets = UserAdmin.fieldsets + (
        ('Booking', {'fields': ('role',)}),
    )
    list_display = ['username', 'email', 'first_name', 'last_name', 'role', 'is_staff']
    list_filter = ['role', 'is_staff']

admin.site.register(User, CustomUserAdmin)


# ============= ROOMS & COURSES =============
@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'capacity', 'status', 'facilities']
    list_filter = ['status']
    search_fields = ['code', 'name']


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ['code', 'name']
    search_fields = ['code', 'name']


# ============= SCHEDULES =============
@admin.register(AcademicSchedule)
class AcademicScheduleAdmin(admin.ModelAdmin):
    list_display = ['course', 'room', 'lecturer_name', 'semester_ordinal', 'semester_type',
                    'day_of_week', 'start_time', 'end_time']
    list_filter = ['semester_type', 'semester_ordinal', 'day_of_week', 'room']
    search_fields = ['course__code', 'course__name', 'lecturer_name']
    readonly_fields = ['semester_type']
    form = AcademicScheduleAdminForm


@admin.register(AdHocSchedule)
class AdHocScheduleAdmin(admin.ModelAdmin):
    list_display = ['course', 'room', 'lecturer_name', 'start_at', 'end_at', 'reservation']
    list_filter = ['room']

    # Rows are materialized from approved reservations only
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


# ============= RESERVATIONS =============
@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = ['user', 'room', 'reservation_date', 'start_time', 'end_time', 'status', 'requested_at']
    list_filter = ['status', 'room']
    readonly_fields = ['room', 'user', 'purpose', 'reservation_date', 'start_time', 'end_time',
                       'status', 'processed_by', 'processed_at', 'requested_at']
    actions = ['approve_requests', 'reject_requests']

    # Requests come in through the API, which checks availability
    def has_add_permission(self, request):
        return False

    def _process(self, request, queryset, status):
        # Each reservation goes through the lifecycle so conflicts are re-checked
        service = ReservationService()
        done = 0
        for reservation in queryset:
            try:
                service.update_reservation_status(reservation.pk, request.user.pk, status)
                done += 1
            except BookingError as exc:
                self.message_user(request, f"{reservation}: {exc.detail}", level=messages.WARNING)
        if done:
            self.message_user(request, f"{done} reservation(s) {status}.", level=messages.SUCCESS)

    def approve_requests(self, request, queryset):
        self._process(request, queryset, Reservation.APPROVED)
    approve_requests.short_description = "Approve selected requests"

    def reject_requests(self, request, queryset):
        self._process(request, queryset, Reservation.REJECTED)
    reject_requests.short_description = "Reject selected requests"
