"""Notification collaborator boundary for confirmation codes.

Transport (SMS, WhatsApp, email) lives outside this service. Delivery is
attempted only after the owning transaction has committed and a failure never
rolls the transition back.
"""

import logging
from datetime import datetime
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def send(self, confirmation_method: str, code: str, expires_at: datetime) -> None:
        ...


class LoggingNotifier:
    """Default notifier: records the dispatch without the code itself."""

    def send(self, confirmation_method: str, code: str, expires_at: datetime) -> None:
        logger.info("Confirmation code queued via %s, expires %s", confirmation_method, expires_at.isoformat())


_default_notifier = LoggingNotifier()


def get_notifier() -> Notifier:
    return _default_notifier


def deliver_confirmation(notifier: Notifier, link_request_id: str, method: str, code: str, expires_at: datetime) -> bool:
    try:
        notifier.send(method, code, expires_at)
    except Exception:
        logger.exception("Failed to deliver confirmation for link request %s via %s", link_request_id, method)
        return False
    return True
