"""
WSGI config for the RoomBooking project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'RoomBooking.settings')

application = get_wsgi_application()
