from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from PySide6.QtCore import QTimer

from codequest.core.calendar import CalendarAccumulator, Clock, utc_now
from codequest.core.constants import DISPLAY_TICK_MS, KEY_SESSION_STARTED_AT
from codequest.core.storage import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionState:
    running: bool
    started_at: Optional[str]
    today_minutes: int

    def to_dict(self) -> dict:
        data = {"running": self.running, "todayMinutes": self.today_minutes}
        if self.started_at is not None:
            data["startedAt"] = self.started_at
        return data


def round_minutes(seconds: float) -> int:
    """Whole minutes, halves rounded up, never negative."""
    return max(0, int(math.floor(seconds / 60.0 + 0.5)))


class SessionTimer:
    """Idle/Running work-session timer.

    While running, the start time is persisted so a restarted process resumes
    the same session instead of losing the elapsed time. Stopping credits the
    elapsed minutes to today's calendar entry.

    A one second display timer ticks ``on_tick`` with the elapsed seconds while
    the session runs. It never touches persisted state.
    """

    def __init__(
        self,
        store: KeyValueStore,
        calendar: CalendarAccumulator,
        clock: Clock = utc_now,
        on_tick: Optional[Callable[[int], None]] = None,
    ) -> None:
        self._store = store
        self._calendar = calendar
        self._clock = clock
        self._on_tick = on_tick
        self._started_at: Optional[datetime] = None

        self._display_timer = QTimer()
        self._display_timer.setInterval(DISPLAY_TICK_MS)
        self._display_timer.timeout.connect(self._tick)

        self._recover()

    @property
    def running(self) -> bool:
        return self._started_at is not None

    @property
    def started_at(self) -> Optional[datetime]:
        return self._started_at

    @property
    def display_active(self) -> bool:
        """True while the one second display timer is scheduled."""
        return self._display_timer.isActive()

    def set_tick_callback(self, on_tick: Optional[Callable[[int], None]]) -> None:
        self._on_tick = on_tick

    def today_minutes(self) -> int:
        return self._calendar.today_minutes()

    def elapsed_seconds(self) -> int:
        if self._started_at is None:
            return 0
        return max(0, int((self._clock() - self._started_at).total_seconds()))

    def state(self) -> SessionState:
        return SessionState(
            running=self.running,
            started_at=self._started_at.isoformat() if self._started_at else None,
            today_minutes=self.today_minutes(),
        )

    def start(self) -> bool:
        """Start a session. Returns False when one is already running."""
        if self._started_at is not None:
            return False
        self._started_at = self._clock()
        self._store.set(KEY_SESSION_STARTED_AT, self._started_at.isoformat())
        self._display_timer.start()
        logger.info("Session started at %s", self._started_at.isoformat())
        return True

    def stop(self) -> int:
        """End the running session and return the minutes credited (0 when idle)."""
        if self._started_at is None:
            return 0
        self._display_timer.stop()
        minutes = round_minutes((self._clock() - self._started_at).total_seconds())
        self._calendar.add_today(minutes)
        self._started_at = None
        self._store.set(KEY_SESSION_STARTED_AT, None)
        logger.info("Session ended, %d minutes credited", minutes)
        return minutes

    def dispose(self) -> None:
        """Stop the display timer. A running session stays persisted for the next start."""
        self._display_timer.stop()
        self._on_tick = None

    def _tick(self) -> None:
        if self._on_tick is not None:
            self._on_tick(self.elapsed_seconds())

    def _recover(self) -> None:
        marker = self._store.get(KEY_SESSION_STARTED_AT)
        if not marker:
            return
        try:
            started_at = datetime.fromisoformat(str(marker).replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Discarding unreadable session start marker: %r", marker)
            self._store.set(KEY_SESSION_STARTED_AT, None)
            return
        now = self._clock()
        if (started_at.tzinfo is None) != (now.tzinfo is None):
            logger.warning("Discarding session start marker with mismatched timezone: %r", marker)
            self._store.set(KEY_SESSION_STARTED_AT, None)
            return
        self._started_at = started_at
        self._display_timer.start()
        logger.info("Resumed session started at %s", marker)
