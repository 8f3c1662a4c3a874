"""Notification sinks for dispatched alerts.

A sink is anything with ``send(alert) -> bool``. Delivery is at-most-once:
the engine calls ``send`` exactly once per alert and only logs a failure.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Protocol

import requests

from .models import Alert

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def send(self, alert: Alert) -> bool:
        ...


class LoggingNotificationSink:
    """Writes each alert to this module's logger."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def send(self, alert: Alert) -> bool:
        logger.log(
            self.level,
            "alert_notification",
            extra={
                "alert_id": alert.id,
                "alert_type": alert.type,
                "priority": alert.priority,
                "alert_message": alert.message,
            },
        )
        return True


class WebhookNotificationSink:
    """POSTs the alert as JSON; any non-2xx status or transport error is a failure."""

    def __init__(self, url: str, timeout: float = 5.0, headers: Optional[dict] = None) -> None:
        self.url = url
        self.timeout = timeout
        self.headers = headers or {"Content-Type": "application/json"}

    def send(self, alert: Alert) -> bool:
        try:
            r = requests.post(self.url, json=alert.to_dict(), headers=self.headers, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("webhook_send_failed", extra={"alert_id": alert.id, "error": str(exc)})
            return False
        if not r.ok:
            logger.warning("webhook_rejected", extra={"alert_id": alert.id, "status": r.status_code})
            return False
        return True


class NotificationManager:
    """Fans one alert out to every configured sink.

    Succeeds when at least one sink accepted the alert.
    """

    def __init__(self, sinks: Iterable[NotificationSink] = ()) -> None:
        self.sinks: List[NotificationSink] = list(sinks)

    def send(self, alert: Alert) -> bool:
        delivered = False
        for sink in self.sinks:
            try:
                ok = sink.send(alert)
            except Exception:
                logger.exception("notification_sink_failed", extra={"alert_id": alert.id, "sink": type(sink).__name__})
                continue
            delivered = delivered or bool(ok)
        return delivered


def build_notifier(settings) -> NotificationManager:
    """Sinks enabled by the ``notify_*`` settings flags."""

    sinks: List[NotificationSink] = []
    if settings.notify_log_enabled:
        sinks.append(LoggingNotificationSink())
    if settings.notify_webhook_enabled and settings.webhook_url:
        sinks.append(WebhookNotificationSink(settings.webhook_url, timeout=settings.webhook_timeout_seconds))
    return NotificationManager(sinks)
