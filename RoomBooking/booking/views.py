# ============= IMPORTS =============
# Django Core
from django.contrib.auth.decorators import login_required
from django.http import HttpResponse, JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET, require_http_methods, require_POST

# Python Standard Library
import json
import logging
from datetime import datetime
from functools import wraps

# Excel Library
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

# Local Imports
from .exceptions import BookingError
from .forms import AcademicScheduleForm, AvailabilityQueryForm, ReservationForm, ReservationStatusForm
from .models import Reservation
from .services import AcademicScheduleRegistry, AdHocScheduleRegistry, ReservationService

logger = logging.getLogger(__name__)


# ============= HELPERS =============

def booking_api(view):
    """Turn BookingError into a JSON error body with the matching status."""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except BookingError as exc:
            return JsonResponse(exc.as_dict(), status=exc.status_code)
    return wrapper


def _forbidden(detail='Admin access required.'):
    return JsonResponse({'error': 'forbidden', 'detail': detail}, status=403)


def admin_only(view):
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if request.user.role != 'A':
            return _forbidden()
        return view(request, *args, **kwargs)
    return wrapper


def _payload(request):
    if request.content_type == 'application/json':
        try:
            return json.loads(request.body or b'{}')
        except ValueError:
            return None
    return request.POST


def _invalid(form=None, detail=None):
    body = {'error': 'validation_error', 'detail': detail or 'Invalid request.'}
    if form is not None:
        body['fields'] = form.errors.get_json_data()
    return JsonResponse(body, status=400)


# ============= ACADEMIC SCHEDULES =============

@login_required
@require_http_methods(['GET', 'POST'])
@booking_api
def academic_schedules(request):
    registry = AcademicScheduleRegistry()

    if request.method == 'GET':
        semester = request.GET.get('semesterOrdinal')
        schedules = registry.list_academic_schedules(
            room_code=request.GET.get('roomCode'),
            semester_ordinal=int(semester) if semester and semester.isdigit() else None,
        )
        return JsonResponse(schedules, safe=False)

    # Only admins may create schedule rules
    if request.user.role != 'A':
        return _forbidden()

    data = _payload(request)
    if data is None:
        return _invalid(detail='Malformed JSON body.')
    form = AcademicScheduleForm(data)
    if not form.is_valid():
        return _invalid(form)

    record = registry.create_academic_schedule(**form.to_kwargs())
    return JsonResponse(record, status=201)


@login_required
@require_GET
@booking_api
def ad_hoc_schedules(request):
    schedules = AdHocScheduleRegistry().list_ad_hoc_schedules(room_code=request.GET.get('roomCode'))
    return JsonResponse(schedules, safe=False)


# ============= AVAILABILITY =============

@login_required
@require_GET
@booking_api
def room_availability(request, room_code):
    form = AvailabilityQueryForm(request.GET)
    if not form.is_valid():
        return _invalid(form)
    result = ReservationService().check_availability(
        room_code,
        form.cleaned_data['date'],
        form.cleaned_data['start'],
        form.cleaned_data['end'],
    )
    return JsonResponse(result)


# ============= RESERVATIONS =============

@login_required
@require_POST
@booking_api
def create_reservation(request):
    """A user asks for a room; the request starts as pending."""
    data = _payload(request)
    if data is None:
        return _invalid(detail='Malformed JSON body.')
    form = ReservationForm(data)
    if not form.is_valid():
        return _invalid(form)

    record = ReservationService().create_reservation(request.user.pk, **form.to_kwargs())
    return JsonResponse(record, status=201)


@login_required
@require_GET
@booking_api
def my_reservations(request):
    """The user's own reservation history, newest first."""
    return JsonResponse(ReservationService().find_my_reservations(request.user.pk), safe=False)


@login_required
@admin_only
@require_GET
@booking_api
def admin_reservations(request):
    return JsonResponse(ReservationService().find_all_reservations_for_admin(), safe=False)


@login_required
@require_GET
@booking_api
def reservation_detail(request, reservation_id):
    record = ReservationService().get_reservation(reservation_id)
    owner_id = record['requestingUser']['id']
    if request.user.role != 'A' and owner_id != str(request.user.pk):
        return _forbidden('Not your reservation.')
    return JsonResponse(record)


@login_required
@admin_only
@require_http_methods(['POST', 'PATCH'])
@booking_api
def update_reservation_status(request, reservation_id):
    """Approve or reject a pending reservation (single shot)."""
    data = _payload(request)
    if data is None:
        return _invalid(detail='Malformed JSON body.')
    form = ReservationStatusForm(data)
    if not form.is_valid():
        return _invalid(form)

    record = ReservationService().update_reservation_status(
        reservation_id,
        request.user.pk,
        form.cleaned_data['status'],
        form.cleaned_data['adminNotes'] or None,
    )
    return JsonResponse(record)


# ============= EXPORT =============

@login_required
@admin_only
@require_GET
@booking_api
def export_reservations_excel(request):
    """Export the admin reservation list as Excel"""
    records = ReservationService().find_all_reservations_for_admin()

    wb = Workbook()
    ws = wb.active
    ws.title = "Reservations"

    ws['A1'] = "ROOM RESERVATIONS"
    ws['A1'].font = Font(bold=True, size=16, color="366092")
    ws['A2'] = f"Generated: {timezone.localtime():%d/%m/%Y %H:%M}"
    ws['A3'] = f"Generated by: {request.user.get_full_name() or request.user.username}"

    headers = ["Room", "Requested by", "Purpose", "Date", "Start", "End", "Status",
               "Requested at", "Processed by", "Notes"]
    for col, header in enumerate(headers, start=1):
        cell = ws.cell(row=5, column=col)
        cell.value = header
        cell.font = Font(bold=True)
        cell.fill = PatternFill(start_color="5B9BD5", end_color="5B9BD5", fill_type="solid")
        cell.alignment = Alignment(horizontal='center')

    status_colors = {
        Reservation.PENDING: "FFF2CC",
        Reservation.APPROVED: "E2EFDA",
        Reservation.REJECTED: "F8CBAD",
    }

    row = 6
    for rec in records:
        processed_by = rec['processedByAdmin']
        values = [
            rec['roomCode'],
            rec['requestingUser']['fullName'],
            rec['purpose'],
            rec['reservationDate'],
            rec['startTime'][:5],
            rec['endTime'][:5],
            rec['status'],
            _excel_time(rec['requestedAt']),
            processed_by['fullName'] if processed_by else '',
            rec['adminNotes'] or '',
        ]
        fill_color = status_colors.get(rec['status'], "FFFFFF")
        for col, value in enumerate(values, start=1):
            cell = ws.cell(row=row, column=col, value=value)
            cell.fill = PatternFill(start_color=fill_color, end_color=fill_color, fill_type="solid")
        row += 1

    # Auto-adjust column widths
    for column in ws.columns:
        max_length = 0
        column_letter = column[0].column_letter
        for cell in column:
            if cell.value:
                max_length = max(max_length, len(str(cell.value)))
        ws.column_dimensions[column_letter].width = min(max_length + 2, 40)

    response = HttpResponse(content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
    response['Content-Disposition'] = 'attachment; filename="reservations.xlsx"'
    wb.save(response)
    return response


def _excel_time(value):
    # openpyxl rejects tz-aware datetimes
    if isinstance(value, datetime):
        return timezone.localtime(value).replace(tzinfo=None)
    return value
