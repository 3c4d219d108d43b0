from django.core.management.base import BaseCommand
from django.db import transaction

from booking.models import Room, User


class Command(BaseCommand):
    help = 'Creates the bookable rooms and a booking admin account (idempotent)'

    def add_arguments(self, parser):
        parser.add_argument('--admin-username', default='admin')
        parser.add_argument('--admin-password', default=None,
                            help='Password for a newly created admin; unusable when omitted')

    def handle(self, *args, **options):
        self.stdout.write("Populating rooms...")

        with transaction.atomic():
            # 1. ROOMS
            rooms = []
            # Lecture halls
            for i in range(1, 5):
                rooms.append(('A%d' % (100 + i), f"Lecture Hall {i}", 150, "Projector, Sound system"))
            # Classrooms
            for i in range(1, 11):
                rooms.append(('R%d' % (100 + i), f"Classroom {i}", 40, "Projector"))
            # Labs
            for i in range(1, 4):
                rooms.append(('L%d' % (100 + i), f"Computer Lab {i}", 30, "Computers, Projector"))

            created_rooms = 0
            for code, name, capacity, facilities in rooms:
                _, created = Room.objects.get_or_create(
                    code=code,
                    defaults={'name': name, 'capacity': capacity, 'facilities': facilities, 'status': 'active'},
                )
                created_rooms += int(created)
            self.stdout.write(f"   {created_rooms} new room(s), {len(rooms) - created_rooms} already present.")

            # 2. ADMIN ACCOUNT
            admin, created = User.objects.get_or_create(
                username=options['admin_username'],
                defaults={'role': 'A', 'is_staff': True, 'first_name': 'Booking', 'last_name': 'Admin'},
            )
            if created:
                if options['admin_password']:
                    admin.set_password(options['admin_password'])
                else:
                    admin.set_unusable_password()
                admin.save()
                self.stdout.write(f"   Admin account '{admin.username}' created.")
            elif admin.role != 'A':
                self.stdout.write(self.style.WARNING(
                    f"   User '{admin.username}' exists but is not a booking admin; left unchanged."
                ))

        self.stdout.write(self.style.SUCCESS("Rooms and admin account ready."))
