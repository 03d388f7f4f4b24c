"""
Connection registry for realtime pushes.

The transport layer (a websocket consumer, an SSE stream, a test) owns the
live connections and registers a sink per channel. The exchange core only
ever calls `send(channel, event)`.

Channels:
- `user_<id>`: notification events for one user
- `conversation_<id>`: chat message events for one conversation
"""

import logging
import threading
from functools import lru_cache

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


def user_channel(user_id):
    return f'user_{user_id}'


def conversation_channel(conversation_id):
    return f'conversation_{conversation_id}'


class BaseConnectionRegistry:
    """Interface every registry implementation provides."""

    def connect(self, channel, sink):
        raise NotImplementedError

    def disconnect(self, channel, sink):
        raise NotImplementedError

    def send(self, channel, event):
        """
        Deliver `event` to every sink on `channel`.

        Returns:
            int: Number of sinks the event was delivered to
        """
        raise NotImplementedError


class InMemoryConnectionRegistry(BaseConnectionRegistry):
    """
    Process-local registry mapping channel names to sinks.

    A sink is any callable accepting the event dict. Delivery is best-effort:
    a sink that raises is logged, detached and skipped.
    """

    def __init__(self):
        self._channels = {}
        self._lock = threading.Lock()

    def connect(self, channel, sink):
        with self._lock:
            self._channels.setdefault(channel, []).append(sink)
        logger.debug(f"Sink connected to channel {channel}")

    def disconnect(self, channel, sink):
        with self._lock:
            sinks = self._channels.get(channel, [])
            if sink in sinks:
                sinks.remove(sink)
            if not sinks:
                self._channels.pop(channel, None)
        logger.debug(f"Sink disconnected from channel {channel}")

    def is_connected(self, channel):
        with self._lock:
            return bool(self._channels.get(channel))

    def send(self, channel, event):
        with self._lock:
            sinks = list(self._channels.get(channel, []))

        if not sinks:
            logger.debug(
                f"No live connection on channel {channel}, "
                f"event {event.get('type', 'unknown')} not pushed"
            )
            return 0

        delivered = 0
        failed = []
        for sink in sinks:
            try:
                sink(event)
                delivered += 1
            except Exception as e:
                logger.warning(
                    f"Push to channel {channel} failed, dropping connection: {e}"
                )
                failed.append(sink)

        for sink in failed:
            self.disconnect(channel, sink)

        return delivered

    def clear(self):
        with self._lock:
            self._channels.clear()


@lru_cache(maxsize=None)
def get_registry():
    """Return the process-wide registry configured by EXCHANGE_REALTIME_REGISTRY."""
    registry_class = import_string(settings.EXCHANGE_REALTIME_REGISTRY)
    return registry_class()


def push(channel, event):
    """
    Send `event` on `channel`, swallowing delivery failures.

    Push is fire-and-forget: the persisted record is the source of truth.
    """
    try:
        return get_registry().send(channel, event)
    except Exception as e:
        logger.warning(f"Realtime push on channel {channel} failed: {e}", exc_info=True)
        return 0
