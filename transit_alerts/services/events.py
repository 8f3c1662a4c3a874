"""Formation/separation detection over a sampled position series."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .aspects import DEFAULT_ORB, find_current_aspects
from .models import AspectMatch, EphemerisSnapshot, NatalChart, TransitEvent

AspectKey = Tuple[str, str, int]


def aspect_set(
    snapshot: EphemerisSnapshot,
    chart: NatalChart,
    orb: float = DEFAULT_ORB,
    bodies: Optional[Sequence[str]] = None,
    sidereal: bool = True,
) -> Dict[AspectKey, AspectMatch]:
    frame = snapshot.sidereal if sidereal else snapshot.tropical
    if bodies is not None:
        frame = {k: v for k, v in frame.items() if k in bodies}
    return {m.identity: m for m in find_current_aspects(frame, chart, orb)}


def _event(kind: str, match: AspectMatch, when: datetime) -> TransitEvent:
    return TransitEvent(
        kind=kind,
        timestamp=when,
        body=match.body_a,
        natal_body=match.body_b,
        angle=match.angle,
        intensity=round(match.strength, 2),
        payload={
            "aspect": match.name,
            "exactness": round(match.exactness, 4),
            "aspect_type": match.classification,
        },
    )


def diff_aspect_sets(
    previous: Mapping[AspectKey, AspectMatch],
    current: Mapping[AspectKey, AspectMatch],
    when: datetime,
) -> List[TransitEvent]:
    """Events for aspects that appeared or vanished between two samples.

    Only the (transiting, natal, angle) identity is compared; a change in
    exactness or strength alone is not an event.
    """

    events = [_event("aspect_formation", m, when) for key, m in current.items() if key not in previous]
    events += [_event("aspect_separation", m, when) for key, m in previous.items() if key not in current]
    return events


def detect_aspect_events(
    series: Iterable[EphemerisSnapshot],
    chart: NatalChart,
    orb: float = DEFAULT_ORB,
    bodies: Optional[Sequence[str]] = None,
    sidereal: bool = True,
) -> List[TransitEvent]:
    """Walk ``series`` once, diffing each sample's aspect set with the one before.

    Events are stamped with the later sample's time, so the detected moment
    trails the exact one by at most one sampling step.
    """

    events: List[TransitEvent] = []
    previous: Optional[Dict[AspectKey, AspectMatch]] = None
    for snap in series:
        current = aspect_set(snap, chart, orb, bodies, sidereal)
        if previous is not None:
            events.extend(diff_aspect_sets(previous, current, snap.timestamp))
        previous = current
    return events
