from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, List, Mapping, Optional

from codequest.core.constants import CALENDAR_DAYS, CALENDAR_LEVELS, KEY_CALENDAR
from codequest.core.storage import KeyValueStore, read_dict

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def day_key(moment: datetime) -> str:
    """Calendar key (YYYY-MM-DD) of ``moment`` in UTC."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date().isoformat()


@dataclass(frozen=True)
class CalendarBucket:
    date: str
    minutes: int
    level: int
    day_of_week: int  # 0 = Sunday
    is_today: bool

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "minutes": self.minutes,
            "level": self.level,
            "dayOfWeek": self.day_of_week,
            "isToday": self.is_today,
        }


def level_for(minutes: int) -> int:
    """Heatmap intensity: 0, 1-15, 16-30, 31-60, 61+."""
    for upper, level in CALENDAR_LEVELS:
        if minutes <= upper:
            return level
    return len(CALENDAR_LEVELS)


def compute_buckets(daily_minutes: Mapping[str, int], today: Optional[date] = None) -> List[CalendarBucket]:
    """Return the last 56 days ending with ``today``, oldest first."""
    today = today or utc_now().date()
    buckets: List[CalendarBucket] = []
    for offset in range(CALENDAR_DAYS - 1, -1, -1):
        day = today - timedelta(days=offset)
        key = day.isoformat()
        minutes = _coerce_minutes(daily_minutes.get(key, 0))
        buckets.append(
            CalendarBucket(
                date=key,
                minutes=minutes,
                level=level_for(minutes),
                day_of_week=(day.weekday() + 1) % 7,
                is_today=offset == 0,
            )
        )
    return buckets


def _coerce_minutes(value: object) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return max(0, int(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0


class CalendarAccumulator:
    """Minutes practised per calendar day. Values only ever grow."""

    def __init__(self, store: KeyValueStore, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock
        self._daily = self._load()

    def today(self) -> str:
        return day_key(self._clock())

    def minutes_for(self, day: str) -> int:
        return self._daily.get(day, 0)

    def today_minutes(self) -> int:
        return self.minutes_for(self.today())

    def daily_minutes(self) -> Dict[str, int]:
        return dict(self._daily)

    def add_minutes(self, day: str, delta: int) -> int:
        """Credit ``delta`` minutes to ``day`` and return the new total for that day."""
        current = self._daily.get(day, 0)
        if delta <= 0:
            if delta < 0:
                logger.warning("Ignoring negative calendar credit of %s minutes for %s", delta, day)
            return current
        total = current + int(delta)
        self._daily[day] = total
        self._store.set(KEY_CALENDAR, dict(self._daily))
        return total

    def add_today(self, delta: int) -> int:
        return self.add_minutes(self.today(), delta)

    def buckets(self) -> List[CalendarBucket]:
        return compute_buckets(self._daily, date.fromisoformat(self.today()))

    def _load(self) -> Dict[str, int]:
        daily: Dict[str, int] = {}
        for key, value in read_dict(self._store, KEY_CALENDAR).items():
            minutes = _coerce_minutes(value)
            if minutes:
                daily[str(key)] = minutes
        return daily