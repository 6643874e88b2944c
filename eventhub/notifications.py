# eventhub/notifications.py

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel

log = logging.getLogger("eventhub")


class Severity(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class Notification(BaseModel):
    message: str
    severity: Severity = Severity.SUCCESS
    persistent: bool = False


class Notifier:
    """
    Single transient-message slot. A new notification replaces the current
    one (last writer wins); non-persistent ones auto-dismiss after `ttl`.
    """

    def __init__(self, ttl: float = 3.0, on_change: Optional[Callable[[], None]] = None):
        self.ttl = ttl
        self.current: Optional[Notification] = None
        self._on_change = on_change
        self._timer: Optional[asyncio.TimerHandle] = None
        self._closed = False

    def show(
        self,
        message: str,
        severity: Severity = Severity.SUCCESS,
        persistent: bool = False,
    ) -> Optional[Notification]:
        if self._closed:
            return None

        self._cancel_timer()
        notification = Notification(message=message, severity=severity, persistent=persistent)
        self.current = notification
        log.info(f"[{severity.value}] {message}")

        if not persistent:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self.ttl, self.dismiss, notification)
        self._notify()
        return notification

    def dismiss(self, notification: Optional[Notification] = None):
        """Clears the slot; with an argument, only if it still shows that one."""
        if notification is not None and self.current is not notification:
            return
        if self.current is None:
            return
        self._cancel_timer()
        self.current = None
        self._notify()

    def close(self):
        self._cancel_timer()
        self._closed = True
        self.current = None

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _notify(self):
        if self._on_change is not None and not self._closed:
            self._on_change()
