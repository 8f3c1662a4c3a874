"""Split sampled position series into sign-occupancy periods.

Boundaries are only as precise as the sampling step: a period starts at the
first sample seen in a sign, not at the true ingress instant.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .constants import sign_index_from_lon
from .models import EphemerisSnapshot, TransitEvent, TransitPeriod

Sample = Tuple[datetime, float]


def _close(body: str, group: List[Sample], end: datetime) -> TransitPeriod:
    # The middle sample stands for the whole stay.
    mid = group[len(group) // 2][1]
    return TransitPeriod(
        body=body,
        sign=sign_index_from_lon(group[0][1]),
        longitude=mid,
        start=group[0][0],
        end=end,
    )


def find_transit_periods(
    samples: Iterable[Sample],
    body: str,
    window_end: Optional[datetime] = None,
) -> List[TransitPeriod]:
    """Group consecutive ``(timestamp, longitude)`` samples by sign.

    Each period ends at the last sample inside it; the period still open when
    the samples run out is closed at ``window_end`` (or its last sample).
    """

    periods: List[TransitPeriod] = []
    group: List[Sample] = []
    current: Optional[int] = None
    for ts, lon in samples:
        sign = sign_index_from_lon(lon)
        if group and sign != current:
            periods.append(_close(body, group, group[-1][0]))
            group = []
        current = sign
        group.append((ts, lon))
    if group:
        end = group[-1][0]
        if window_end is not None and window_end > end:
            end = window_end
        periods.append(_close(body, group, end))
    return periods


def segment_series(
    series: Iterable[EphemerisSnapshot],
    bodies: Sequence[str],
    sidereal: bool = True,
    window_end: Optional[datetime] = None,
) -> Dict[str, List[TransitPeriod]]:
    """Run :func:`find_transit_periods` for several bodies in one pass over ``series``."""

    samples: Dict[str, List[Sample]] = {b: [] for b in bodies}
    for snap in series:
        frame = snap.sidereal if sidereal else snap.tropical
        for b in bodies:
            pos = frame.get(b)
            if pos is not None:
                samples[b].append((snap.timestamp, pos.longitude))
    return {b: find_transit_periods(samples[b], b, window_end) for b in bodies}


def sign_change_events(periods: Sequence[TransitPeriod]) -> List[TransitEvent]:
    """Exit/entry pairs at each boundary between consecutive periods of one body.

    Both events carry the first sample time in the new sign.
    """

    events: List[TransitEvent] = []
    for prev, nxt in zip(periods, periods[1:]):
        events.append(
            TransitEvent(
                kind="sign_exit",
                timestamp=nxt.start,
                body=prev.body,
                sign=prev.sign,
                payload={"longitude": round(prev.longitude, 4), "next_sign": nxt.sign},
            )
        )
        events.append(
            TransitEvent(
                kind="sign_entry",
                timestamp=nxt.start,
                body=nxt.body,
                sign=nxt.sign,
                payload={"longitude": round(nxt.longitude, 4), "previous_sign": prev.sign},
            )
        )
    return events
