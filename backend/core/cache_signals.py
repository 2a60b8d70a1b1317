"""
Cache invalidation signals
Automatically invalidate report caches when the underlying data changes
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from .cache_utils import invalidate_report_caches

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()

WATCHED_MODELS = (
    'sales.Invoice',
    'sales.SalesReturn',
    'payments.CustomerPayment',
    'payments.Credit',
    'inventory.InventoryItem',
    'parties.Customer',
    'waybills.Waybill',
)


@contextmanager
def suspend_cache_signals():
    """
    Context manager to temporarily suspend cache invalidation signals.
    Useful for bulk imports to prevent clearing the cache once per row.
    Invalidates once when the block exits.
    """
    previous = is_suspended()
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = previous
        if not previous:
            invalidate_report_caches()


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


def _invalidate(sender, **kwargs):
    if is_suspended():
        return
    logger.debug(f"{sender.__name__} changed, invalidating report caches")
    invalidate_report_caches()


for _model in WATCHED_MODELS:
    receiver(post_save, sender=_model, dispatch_uid=f'cache_save_{_model}')(_invalidate)
    receiver(post_delete, sender=_model, dispatch_uid=f'cache_delete_{_model}')(_invalidate)
