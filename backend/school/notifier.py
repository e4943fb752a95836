"""Notification hook for school events (e.g. a child marked absent).

The default implementation only logs; an email/SMS gateway can be plugged in by
passing another `NotifierProtocol` implementation to the services.
"""
from __future__ import annotations

import hashlib
import logging
from typing import Protocol


class NotifierProtocol(Protocol):
    def notify(self, *, recipient: str, kind: str, message: str) -> None:
        ...


def recipient_ref(recipient: str) -> str:
    """Short stable pseudonym for a recipient address, safe to log."""
    return hashlib.sha256(recipient.strip().lower().encode("utf-8")).hexdigest()[:12]


class LoggingNotifier:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("schoolhub.notifier")

    def notify(self, *, recipient: str, kind: str, message: str) -> None:
        # Addresses and message bodies carry personal data; log a pseudonym only.
        self._logger.info("notify kind=%s recipient_ref=%s", kind, recipient_ref(recipient))


__all__ = ["NotifierProtocol", "LoggingNotifier", "recipient_ref"]
