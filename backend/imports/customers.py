"""Customer import from the CUSTOMERS sheet layout"""
import logging

from django.contrib.auth import get_user_model

from backend.core.cache_signals import suspend_cache_signals
from backend.core.exceptions import ValidationFailed
from backend.locations.models import Location, team_for_location
from backend.parties.models import Customer
from .invoices import default_import_location
from .parsers import parse_date, clean_text
from .progress import ImportProgress

logger = logging.getLogger(__name__)

TEMPLATE_COLUMNS = [
    'CUSTOMER NAME',
    'RELATIONSHIP MANAGER',
    'LOCATION',
    'ADDRESS',
    'DATE OF ONBOARDING',
    'LAST ORDER DATE',
]


def _validate(name):
    errors = []
    if not name:
        errors.append("Customer name is required")
    elif len(name) > 255:
        errors.append("Customer name must be less than 255 characters")
    return errors


def _find_manager(full_name):
    if not full_name:
        return None
    User = get_user_model()
    return User.objects.filter(full_name__iexact=full_name, is_active=True).first()


def import_customers(rows, notify_user_id=None):
    """
    Create customers that do not exist yet (matched by name, case-insensitive).
    Returns ``{imported, skipped, errors: [{row, error, data}]}``.
    """
    if not rows:
        raise ValidationFailed("No customer rows provided")

    progress = ImportProgress(notify_user_id, 'Customer import', len(rows))
    imported = 0
    skipped = 0
    errors = []
    locations = {location.name.lower(): location for location in Location.objects.all()}

    with suspend_cache_signals():
        for index, row in enumerate(rows, 1):
            name = clean_text(row.get('CUSTOMER NAME'))
            problems = _validate(name)
            if problems:
                errors.append({'row': index, 'error': ', '.join(problems), 'data': row})
                skipped += 1
                progress.step(index)
                continue

            if Customer.objects.filter(name__iexact=name).exists():
                logger.debug(f"Customer '{name}' already exists, skipping")
                skipped += 1
                progress.step(index)
                continue

            try:
                location_name = clean_text(row.get('LOCATION'))
                location = locations.get(location_name.lower()) if location_name else None
                if location is None:
                    if location_name:
                        logger.warning(f"Unknown location '{location_name}' for customer {name}")
                    location = default_import_location()

                manager_name = clean_text(row.get('RELATIONSHIP MANAGER'))
                manager = _find_manager(manager_name)
                if manager_name and manager is None:
                    logger.warning(f"No user found for relationship manager: {manager_name}")

                Customer.objects.create(
                    name=name,
                    address=clean_text(row.get('ADDRESS')),
                    location=location,
                    team=team_for_location(location),
                    relationship_manager=manager,
                    onboarding_date=parse_date(row.get('DATE OF ONBOARDING')),
                    last_order_date=parse_date(row.get('LAST ORDER DATE')),
                )
                imported += 1
            except Exception as e:
                logger.error(f"Error importing customer row {index}: {str(e)}", exc_info=True)
                errors.append({'row': index, 'error': str(e), 'data': row})
                skipped += 1
            progress.step(index)

    progress.done(f"Imported {imported} customers, skipped {skipped}", {'imported': imported, 'skipped': skipped})
    return {'imported': imported, 'skipped': skipped, 'errors': errors}
