"""Expand a webinar's stored sessions into absolute UTC times."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Protocol
from zoneinfo import ZoneInfo

from app.utils.datetime_utils import ensure_utc


class SessionLike(Protocol):
    date: date
    start_time: object
    end_time: object


@dataclass(frozen=True)
class ExpandedSession:
    date: date
    start_time: datetime
    end_time: datetime


def expand_webinar_sessions(
    sessions: Iterable[SessionLike], tz_name: str
) -> list[ExpandedSession]:
    """Convert local date + wall-clock times to UTC, ordered by start.

    A session whose end time is not after its start runs past midnight.
    """
    tz = ZoneInfo(tz_name)
    expanded = []
    for session in sessions:
        start = datetime.combine(session.date, session.start_time, tzinfo=tz)
        end = datetime.combine(session.date, session.end_time, tzinfo=tz)
        if end <= start:
            end += timedelta(days=1)
        expanded.append(
            ExpandedSession(
                date=session.date,
                start_time=start.astimezone(timezone.utc),
                end_time=end.astimezone(timezone.utc),
            )
        )
    return sorted(expanded, key=lambda s: s.start_time)


def all_sessions_ended(sessions: list[ExpandedSession], now: datetime) -> bool:
    """True only when there is at least one session and every one has ended."""
    if not sessions:
        return False
    now = ensure_utc(now)
    return all(s.end_time < now for s in sessions)
