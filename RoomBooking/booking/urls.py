from django.urls import path
from . import views

urlpatterns = [
    # Academic (recurring) and ad-hoc schedules
    path('academic-schedules/', views.academic_schedules, name='academic_schedules'),
    path('ad-hoc-schedules/', views.ad_hoc_schedules, name='ad_hoc_schedules'),

    # Availability
    path('rooms/<str:room_code>/availability/', views.room_availability, name='room_availability'),

    # Reservations
    path('reservations/', views.create_reservation, name='create_reservation'),
    path('reservations/my/', views.my_reservations, name='my_reservations'),
    path('reservations/admin/', views.admin_reservations, name='admin_reservations'),
    path('reservations/admin/export/', views.export_reservations_excel, name='export_reservations_excel'),
    path('reservations/<uuid:reservation_id>/', views.reservation_detail, name='reservation_detail'),
    path('reservations/<uuid:reservation_id>/status/', views.update_reservation_status, name='update_reservation_status'),
]
