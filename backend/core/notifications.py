"""
In-process notification broadcaster for Server-Sent Events.

Each connected user owns exactly one stream; reconnecting replaces the old
stream. Delivery is fire-and-forget: nothing is persisted and events sent to
a user with no open stream are dropped.
"""
import json
import logging
import queue
import random
import string
import threading
import time

from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = ('info', 'success', 'warning', 'error', 'progress')
BROADCAST_USER = 'all'

_CLOSE = object()


def format_sse(payload):
    """Frame a payload as one SSE ``data:`` event"""
    return f"data: {json.dumps(payload, cls=DjangoJSONEncoder)}\n\n"


def generate_notification_id():
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"notif-{int(time.time() * 1000)}-{suffix}"


class NotificationStream:
    """Per-connection FIFO of pending events"""

    def __init__(self, user_id):
        self.user_id = user_id
        self.connected_at = timezone.now()
        self._queue = queue.Queue()
        self.closed = False

    def put(self, payload):
        if not self.closed:
            self._queue.put(payload)

    def close(self):
        self.closed = True
        self._queue.put(_CLOSE)

    def frames(self, broadcaster, keepalive_seconds=30):
        """Yield SSE frames until the stream is closed or the client goes away"""
        try:
            yield format_sse({
                'type': 'connected',
                'message': 'Notification stream connected',
                'timestamp': timezone.now().isoformat(),
            })
            while not self.closed:
                try:
                    item = self._queue.get(timeout=keepalive_seconds)
                except queue.Empty:
                    yield ': keep-alive\n\n'
                    continue
                if item is _CLOSE:
                    break
                yield format_sse(item)
        finally:
            broadcaster.disconnect(self.user_id, self)


class NotificationBroadcaster:
    def __init__(self):
        self._lock = threading.Lock()
        self._streams = {}

    def connect(self, user_id):
        stream = NotificationStream(user_id)
        with self._lock:
            previous = self._streams.get(user_id)
            self._streams[user_id] = stream
        if previous is not None:
            previous.close()
            logger.info(f"Replaced existing notification stream for user {user_id}")
        logger.info(f"User {user_id} connected to notification stream. Total clients: {self.client_count}")
        return stream

    def disconnect(self, user_id, stream=None):
        with self._lock:
            current = self._streams.get(user_id)
            if current is None or (stream is not None and current is not stream):
                return
            del self._streams[user_id]
        current.closed = True
        logger.info(f"User {user_id} disconnected from notification stream. Total clients: {self.client_count}")

    @property
    def client_count(self):
        with self._lock:
            return len(self._streams)

    def is_connected(self, user_id):
        with self._lock:
            return user_id in self._streams

    def connected_user_ids(self):
        with self._lock:
            return list(self._streams.keys())

    def send(self, user_id, payload):
        with self._lock:
            stream = self._streams.get(user_id)
        if stream is None:
            logger.debug(f"User {user_id} not connected, notification {payload.get('id')} dropped")
            return False
        stream.put(payload)
        return True

    def broadcast(self, payload):
        with self._lock:
            streams = list(self._streams.values())
        for stream in streams:
            stream.put(payload)
        return len(streams)

    def reset(self):
        with self._lock:
            streams = list(self._streams.values())
            self._streams.clear()
        for stream in streams:
            stream.close()


broadcaster = NotificationBroadcaster()


def _build(user_id, notification_type, title, message, data=None, notification_id=None):
    if notification_type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {notification_type}")
    return {
        'id': notification_id or generate_notification_id(),
        'user_id': user_id,
        'type': notification_type,
        'title': title,
        'message': message,
        'data': data,
        'timestamp': timezone.now().isoformat(),
        'read': False,
    }


def send_notification(user_id, notification_type, title, message, data=None):
    """Send a notification to one user; returns the notification id"""
    payload = _build(user_id, notification_type, title, message, data)
    broadcaster.send(user_id, payload)
    return payload['id']


def update_notification(notification_id, user_id, notification_type, title, message, data=None):
    """Re-send a notification under the same id (e.g. progress updates)"""
    payload = _build(user_id, notification_type, title, message, data, notification_id=notification_id)
    payload['is_update'] = True
    broadcaster.send(user_id, payload)
    return notification_id


def broadcast_notification(notification_type, title, message, data=None):
    """Send a notification to every connected user"""
    payload = _build(BROADCAST_USER, notification_type, title, message, data)
    count = broadcaster.broadcast(payload)
    logger.info(f"Broadcast notification {payload['id']} to {count} clients")
    return payload['id']
