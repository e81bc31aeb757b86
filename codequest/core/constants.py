"""Fixed tuning values and persisted key names."""

from __future__ import annotations

from pathlib import Path

STATE_DIR = Path.home() / ".codequest"
STATE_FILE = STATE_DIR / "state.json"

SEGMENTS_PER_PATTERN = 20
CALENDAR_DAYS = 56
SOLVE_CREDIT_MINUTES = 5
REFRESH_DEBOUNCE_MS = 200
DISPLAY_TICK_MS = 1000

# (upper bound inclusive, level); anything above the last bound is level 4
CALENDAR_LEVELS = ((0, 0), (15, 1), (30, 2), (60, 3))

KEY_SOLVED_LEGACY = "cq.solved.v1"
KEY_SOLVED_CATALOG = "cq.solvedCatalog.v1"
KEY_CALENDAR = "cq.calendar.v1"
KEY_SESSION_STARTED_AT = "cq.session.startedAt"
KEY_INSTALLED_AT = "installedAt"
KEY_CATALOG_SNAPSHOT = "cq.catalog.cache.v1"

CATALOG_SNAPSHOT_VERSION = "1"
