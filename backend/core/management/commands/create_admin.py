from django.core.management.base import BaseCommand, CommandError
from django.contrib.auth import get_user_model

from backend.core.models import Role
from backend.core.permissions import DEFAULT_ROLES
from .seed_roles import seed_default_roles

User = get_user_model()


class Command(BaseCommand):
    help = 'Create (or promote) a Super Admin user'

    def add_arguments(self, parser):
        parser.add_argument('email', type=str)
        parser.add_argument('--password', type=str, required=True)
        parser.add_argument('--full-name', type=str, default='System Administrator')

    def handle(self, *args, **options):
        email = options['email'].strip().lower()
        if '@' not in email:
            raise CommandError(f'Invalid email: {email}')

        seed_default_roles()
        role = Role.objects.get(name=DEFAULT_ROLES['SUPER_ADMIN']['name'])

        user, created = User.objects.get_or_create(
            email=email,
            defaults={'username': email, 'full_name': options['full_name']},
        )
        user.role = role
        user.is_staff = True
        user.is_active = True
        user.set_password(options['password'])
        user.save()

        verb = 'Created' if created else 'Updated'
        self.stdout.write(self.style.SUCCESS(f'✓ {verb} Super Admin user: {email}'))
