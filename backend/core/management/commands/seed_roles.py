from django.core.management.base import BaseCommand

from backend.core.models import Role
from backend.core.permissions import DEFAULT_ROLES


def seed_default_roles():
    """Create or refresh the default roles; returns (created, updated) counts"""
    created_count = 0
    updated_count = 0
    for role_config in DEFAULT_ROLES.values():
        # Preserve declaration order while dropping duplicates from overlapping groups
        permissions = list(dict.fromkeys(role_config['permissions']))
        role, created = Role.objects.update_or_create(
            name=role_config['name'],
            defaults={
                'description': role_config['description'],
                'permissions': permissions,
            },
        )
        if created:
            created_count += 1
        else:
            updated_count += 1
    return created_count, updated_count


class Command(BaseCommand):
    help = 'Create or update the default roles: Super Admin, Admin, Sales Manager, Accountant, Sales Rep, Inventory Manager, Viewer'

    def handle(self, *args, **options):
        created_count, updated_count = seed_default_roles()
        for role in Role.objects.filter(name__in=[r['name'] for r in DEFAULT_ROLES.values()]):
            self.stdout.write(f'  {role.name}: {len(role.permissions)} permissions')
        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {created_count} roles created, {updated_count} roles updated'
        ))
