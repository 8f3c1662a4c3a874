"""Rule-based alert generation, de-duplication and dispatch."""

from __future__ import annotations

import itertools
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .constants import sign_name
from .errors import ValidationError
from .models import EVENT_TYPES, PRIORITIES, Alert, TransitEvent
from .notifications import NotificationSink

logger = logging.getLogger(__name__)

_ids = itertools.count(1)


def new_alert_id() -> str:
    return f"alert_{next(_ids)}_{uuid.uuid4().hex[:12]}"


@dataclass
class AlertRule:
    """Event type (optionally narrowed by body/angle) -> base priority.

    ``threshold_days`` is the lead time: the rule fires for events between
    now and ``threshold_days`` ahead.
    """

    type: str
    priority: str
    threshold_days: float
    body: Optional[str] = None
    angle: Optional[int] = None
    enabled: bool = True

    def __post_init__(self) -> None:
        if self.type not in EVENT_TYPES:
            raise ValidationError(f"unknown event type {self.type!r}", field="type", value=self.type)
        if self.priority not in PRIORITIES:
            raise ValidationError(f"unknown priority {self.priority!r}", field="priority", value=self.priority)
        if self.threshold_days < 0:
            raise ValidationError("threshold_days must not be negative", field="threshold_days", value=self.threshold_days)

    def matches(self, event: TransitEvent) -> bool:
        if not self.enabled or event.kind != self.type:
            return False
        if self.body is not None and event.body != self.body:
            return False
        if self.angle is not None and event.angle != self.angle:
            return False
        return True

    def should_trigger(self, days_until: float) -> bool:
        return 0.0 <= days_until <= self.threshold_days

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "priority": self.priority,
            "threshold_days": self.threshold_days,
            "body": self.body,
            "angle": self.angle,
            "enabled": self.enabled,
        }


def default_rules() -> List[AlertRule]:
    return [
        AlertRule("sign_entry", "high", 30, body="Saturn"),
        AlertRule("sign_entry", "medium", 14, body="Jupiter"),
        AlertRule("aspect_formation", "high", 3, angle=90),
        AlertRule("aspect_formation", "critical", 3, angle=180),
        AlertRule("critical_period", "critical", 7),
    ]


@dataclass(frozen=True)
class AlertThresholds:
    """Days-until boundaries for the timing labels."""

    immediate: float = 1.0
    soon: float = 7.0
    upcoming: float = 30.0
    advance: float = 90.0

    def __post_init__(self) -> None:
        if not 0 <= self.immediate <= self.soon <= self.upcoming <= self.advance:
            raise ValidationError("alert thresholds must be non-negative and ascending", field="thresholds")

    def timing(self, days_until: float) -> str:
        if days_until <= self.immediate:
            return "immediate"
        if days_until <= self.soon:
            return "soon"
        if days_until <= self.upcoming:
            return "upcoming"
        if days_until <= self.advance:
            return "advance"
        return "distant"


def adjust_priority(base: str, days_until: float, thresholds: AlertThresholds) -> str:
    """Escalate inside the immediate window, demote beyond the upcoming one."""

    idx = PRIORITIES.index(base)
    if days_until <= thresholds.immediate:
        idx = min(idx + 1, len(PRIORITIES) - 1)
    elif days_until > thresholds.upcoming:
        idx = max(idx - 1, 0)
    return PRIORITIES[idx]


# Follow-ups offered with every alert.
ALERT_ACTIONS = (
    {"type": "view_details", "label": "View Details"},
    {"type": "schedule_remedies", "label": "Schedule Remedies"},
    {"type": "consult_astrologer", "label": "Consult Astrologer"},
)


def alert_message(event: TransitEvent) -> str:
    if event.kind == "sign_entry":
        return f"{event.body} is entering {sign_name(event.sign)} on {event.timestamp.date().isoformat()}"
    if event.kind == "sign_exit":
        return f"{event.body} is leaving {sign_name(event.sign)} on {event.timestamp.date().isoformat()}"
    if event.kind == "aspect_formation":
        return f"{event.body} is forming {event.angle}° aspect with natal {event.natal_body}"
    if event.kind == "aspect_separation":
        return f"{event.body} is separating from {event.angle}° aspect with natal {event.natal_body}"
    if event.kind == "critical_period":
        return f"Critical transit period starting: {event.body} transit"
    return f"Transit alert: {event.body}"


class AlertEngine:
    """Turns transit events into prioritized alerts and hands them to a sink.

    Dispatched events are remembered by identity so repeated polling does not
    alert twice. The identity is recorded before ``send`` so a failed delivery
    is not retried on the next poll.
    """

    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        rules: Optional[Iterable[AlertRule]] = None,
        thresholds: Optional[AlertThresholds] = None,
    ) -> None:
        self.sink = sink
        self.rules: List[AlertRule] = list(rules) if rules is not None else default_rules()
        self.thresholds = thresholds or AlertThresholds()
        self._delivered: Set[Tuple[Any, ...]] = set()
        self._active: Dict[str, Alert] = {}
        self._lock = threading.Lock()
        self.sent = 0
        self.failed = 0
        self.deduplicated = 0

    # Rules ---------------------------------------------------------------

    def add_rule(self, rule: AlertRule) -> None:
        with self._lock:
            self.rules.append(rule)
        logger.info("alert_rule_added", extra={"rule_type": rule.type, "body": rule.body})

    def remove_rule(self, rule_type: str, body: Optional[str] = None) -> int:
        """Drop rules of ``rule_type`` (only those for ``body`` if given)."""

        with self._lock:
            kept = [r for r in self.rules if not (r.type == rule_type and (body is None or r.body == body))]
            removed = len(self.rules) - len(kept)
            self.rules = kept
        logger.info("alert_rule_removed", extra={"rule_type": rule_type, "body": body, "removed": removed})
        return removed

    def _match(self, event: TransitEvent, days_until: float) -> Optional[AlertRule]:
        # Highest base priority wins when several rules fire for one event.
        with self._lock:
            rules = list(self.rules)
        hits = [r for r in rules if r.matches(event) and r.should_trigger(days_until)]
        if not hits:
            return None
        return max(hits, key=lambda r: PRIORITIES.index(r.priority))

    # Evaluation ----------------------------------------------------------

    def build_alert(self, event: TransitEvent, rule: AlertRule, now: datetime) -> Alert:
        days_until = (event.timestamp - now).total_seconds() / 86400.0
        return Alert(
            id=new_alert_id(),
            type=rule.type,
            priority=adjust_priority(rule.priority, days_until, self.thresholds),
            message=alert_message(event),
            timestamp=now,
            event=event,
            timing=self.thresholds.timing(days_until),
            actions=tuple(dict(a) for a in ALERT_ACTIONS),
        )

    def evaluate(self, events: Iterable[TransitEvent], now: datetime) -> List[Alert]:
        """Alerts the rules would raise for ``events``; nothing is sent or recorded."""

        alerts: List[Alert] = []
        for event in events:
            days_until = (event.timestamp - now).total_seconds() / 86400.0
            rule = self._match(event, days_until)
            if rule is not None:
                alerts.append(self.build_alert(event, rule, now))
        return alerts

    def process(self, events: Iterable[TransitEvent], now: datetime) -> List[Alert]:
        """Evaluate, de-duplicate and dispatch; returns the alerts actually sent."""

        dispatched: List[Alert] = []
        for alert in self.evaluate(events, now):
            identity = alert.event.identity
            with self._lock:
                if identity in self._delivered:
                    self.deduplicated += 1
                    continue
                self._delivered.add(identity)
                self._active[alert.id] = alert
            self._dispatch(alert)
            dispatched.append(alert)
        return dispatched

    def _dispatch(self, alert: Alert) -> None:
        if self.sink is None:
            logger.warning("no_notification_sink", extra={"alert_id": alert.id})
            return
        try:
            ok = self.sink.send(alert)
        except Exception:
            ok = False
            logger.exception("alert_dispatch_failed", extra={"alert_id": alert.id})
        with self._lock:
            if ok:
                self.sent += 1
            else:
                self.failed += 1
        if not ok:
            logger.warning("alert_not_delivered", extra={"alert_id": alert.id, "priority": alert.priority})

    # Registry ------------------------------------------------------------

    def active_alerts(self) -> List[Alert]:
        with self._lock:
            return list(self._active.values())

    def dismiss(self, alert_id: str) -> bool:
        with self._lock:
            found = self._active.pop(alert_id, None) is not None
        logger.debug("alert_dismissed", extra={"alert_id": alert_id, "found": found})
        return found

    def clear(self) -> None:
        with self._lock:
            self._active.clear()
        logger.info("alerts_cleared")

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            rules_by_type: Dict[str, int] = {}
            for r in self.rules:
                rules_by_type[r.type] = rules_by_type.get(r.type, 0) + 1
            by_priority: Dict[str, int] = {}
            for a in self._active.values():
                by_priority[a.priority] = by_priority.get(a.priority, 0) + 1
            return {
                "total_rules": len(self.rules),
                "active_alerts": len(self._active),
                "rules_by_type": rules_by_type,
                "alerts_by_priority": by_priority,
                "sent": self.sent,
                "failed": self.failed,
                "deduplicated": self.deduplicated,
            }
