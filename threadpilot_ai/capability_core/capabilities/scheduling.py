"""Interval arithmetic and slot ranking for the calendar capabilities.

All datetimes are handled in UTC; naive values are interpreted as UTC.
Working hours are 09:00-17:00 UTC on weekdays, candidate slots start on
30-minute boundaries.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..collaborators.interfaces import CalendarSource
from ..collaborators.models import NonMeetingWindow
from ..schemas.capabilities import CalendarAvailability, MeetingSlot, PreferredTimeRange, TimeInterval

WORKDAY_START = time(9, 0)
WORKDAY_END = time(17, 0)
SLOT_STEP_MINUTES = 30
MAX_SUGGESTIONS = 5

_PEAK_HOURS = (10, 14)
_GOOD_HOURS = (9, 11, 13, 15)

Span = Tuple[datetime, datetime]


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def merge(spans: Iterable[Span]) -> List[Span]:
    """Sort and merge overlapping or touching spans."""
    merged: List[Span] = []
    for start, end in sorted(spans):
        if end <= start:
            continue
        if merged and start <= merged[-1][1]:
            if end > merged[-1][1]:
                merged[-1] = (merged[-1][0], end)
        else:
            merged.append((start, end))
    return merged


def complement(busy: Sequence[Span], start: datetime, end: datetime) -> List[Span]:
    """Free spans inside ``[start, end)`` given merged busy spans."""
    free: List[Span] = []
    cursor = start
    for b_start, b_end in busy:
        if b_end <= cursor:
            continue
        if b_start >= end:
            break
        if b_start > cursor:
            free.append((cursor, b_start))
        cursor = max(cursor, b_end)
    if cursor < end:
        free.append((cursor, end))
    return free


async def availability(calendar: CalendarSource, user_id: str, start: datetime, end: datetime) -> CalendarAvailability:
    """Busy and free intervals of one user, clipped to ``[start, end)``."""
    start, end = to_utc(start), to_utc(end)
    raw = await calendar.free_busy(user_id, start, end)
    busy = merge((max(to_utc(i.start), start), min(to_utc(i.end), end)) for i in raw)
    free = complement(busy, start, end)
    return CalendarAvailability(
        user_id=user_id,
        start_date=start,
        end_date=end,
        busy=[TimeInterval(start=s, end=e) for s, e in busy],
        free=[TimeInterval(start=s, end=e) for s, e in free],
    )


def score_slot(start: datetime) -> float:
    if start.hour in _PEAK_HOURS:
        return 1.0
    if start.hour in _GOOD_HOURS:
        return 0.9
    return 0.7


def _part_of_day(start: datetime) -> str:
    return "morning" if start.hour < 12 else "afternoon"


def round_up_to_step(value: datetime) -> datetime:
    value = value.replace(second=0, microsecond=0)
    remainder = value.minute % SLOT_STEP_MINUTES
    if remainder:
        value += timedelta(minutes=SLOT_STEP_MINUTES - remainder)
    return value


def _in_windows(start: datetime, end: datetime, windows: Sequence[NonMeetingWindow]) -> bool:
    day_start = start.replace(hour=0, minute=0)
    s_min = int((start - day_start).total_seconds() // 60)
    e_min = int((end - day_start).total_seconds() // 60)
    for w in windows:
        if start.weekday() in w.days_of_week and s_min < w.end_minute and e_min > w.start_minute:
            return True
    return False


def _fits_preferred(start: datetime, end: datetime, preferred: Sequence[PreferredTimeRange]) -> bool:
    if not preferred:
        return True
    day_start = start.replace(hour=0, minute=0)
    s_min = int((start - day_start).total_seconds() // 60)
    e_min = int((end - day_start).total_seconds() // 60)
    return any(p.start_minute <= s_min and e_min <= p.end_minute for p in preferred)


def _overlaps(start: datetime, end: datetime, busy: Sequence[Span]) -> bool:
    return any(b_start < end and b_end > start for b_start, b_end in busy)


def rank_slots(
    participants: Sequence[str],
    duration_minutes: int,
    window_start: datetime,
    window_end: datetime,
    busy_by_user: Dict[str, Sequence[Span]],
    non_meeting_by_user: Dict[str, Sequence[NonMeetingWindow]],
    preferred: Optional[Sequence[PreferredTimeRange]] = None,
    limit: int = MAX_SUGGESTIONS,
) -> List[MeetingSlot]:
    """
    Rank candidate meeting slots free for every participant.

    A candidate is a ``duration_minutes`` span starting on a 30-minute step
    inside weekday working hours and inside ``[window_start, window_end)``. It
    is dropped if it overlaps any participant's busy span or declared
    non-meeting window, or falls outside every preferred range (when given).

    Returns:
        At most ``limit`` slots, best score first, then earliest first. An
        empty list when nothing satisfies the constraints.
    """
    window_start, window_end = to_utc(window_start), to_utc(window_end)
    all_busy = merge(span for spans in busy_by_user.values() for span in spans)
    all_windows = [w for windows in non_meeting_by_user.values() for w in windows]
    length = timedelta(minutes=duration_minutes)

    candidates: List[MeetingSlot] = []
    day = window_start.date()
    while day <= window_end.date():
        if day.weekday() < 5:
            start = datetime.combine(day, WORKDAY_START, tzinfo=timezone.utc)
            day_end = datetime.combine(day, WORKDAY_END, tzinfo=timezone.utc)
            while start + length <= day_end:
                end = start + length
                if (
                    start >= window_start
                    and end <= window_end
                    and not _overlaps(start, end, all_busy)
                    and not _in_windows(start, end, all_windows)
                    and _fits_preferred(start, end, preferred or ())
                ):
                    candidates.append(
                        MeetingSlot(
                            id=f"slot_{start:%Y%m%dT%H%M}",
                            start_time=start,
                            end_time=end,
                            participants=list(participants),
                            score=score_slot(start),
                            reasoning=(
                                f"All {len(participants)} participants are free; "
                                f"{_part_of_day(start)} slot on {start:%A}"
                            ),
                        )
                    )
                start += timedelta(minutes=SLOT_STEP_MINUTES)
        day += timedelta(days=1)

    candidates.sort(key=lambda s: (-s.score, s.start_time))
    return candidates[:limit]
