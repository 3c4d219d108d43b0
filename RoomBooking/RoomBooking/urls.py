"""
URL configuration for the RoomBooking project.

The booking API lives under /api/ (see booking/urls.py). Staff sign in and
manage rooms and reservations through the Django admin, whose login page is
also the LOGIN_URL for the API.
"""
from django.contrib import admin
from django.urls import include, path


urlpatterns = [
    path('admin/', admin.site.urls),

    # Booking API
    path('api/', include('booking.urls')),
]
