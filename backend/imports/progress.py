import logging

from backend.core.notifications import send_notification, update_notification

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 10


class ImportProgress:
    """
    One progress notification per import run, updated in place every
    ``every`` rows and finished with a success or error message. A run
    without a user to notify only logs.
    """

    def __init__(self, user_id, title, total, every=PROGRESS_EVERY):
        self.user_id = user_id
        self.title = title
        self.total = total
        self.every = every
        self.notification_id = None
        if user_id is not None:
            self.notification_id = send_notification(
                user_id, 'progress', title, f"Starting import of {total} records",
                {'processed': 0, 'total': total, 'percent': 0}
            )

    def _update(self, notification_type, message, data):
        if self.notification_id is None:
            return
        update_notification(self.notification_id, self.user_id, notification_type, self.title, message, data)

    def step(self, processed):
        if processed % self.every and processed != self.total:
            return
        percent = int(processed * 100 / self.total) if self.total else 100
        logger.debug(f"{self.title}: {processed}/{self.total}")
        self._update('progress', f"Processed {processed} of {self.total}",
                     {'processed': processed, 'total': self.total, 'percent': percent})

    def done(self, message, data=None):
        logger.info(f"{self.title}: {message}")
        self._update('success', message, data)

    def failed(self, message):
        logger.error(f"{self.title} failed: {message}")
        self._update('error', message, {'error': message})
