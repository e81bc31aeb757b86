"""Synthetic dashboard states for inspecting the UI without touching real data."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from codequest.core.calendar import compute_buckets
from codequest.core.engine import NO_WORKSPACE, DashboardState
from codequest.core.problem_path import parse_problem_path
from codequest.core.session import SessionState
from codequest.core.solved import PatternStats

EMPTY_WORKSPACE = "Empty Workspace"
NO_FILE_OPEN = "No File Open"
DETECTED_PROBLEM = "Detected Problem"
SKELETON_LOADING = "Skeleton Loading"

_SAMPLE_PATHS = (
    "patterns/arrays-and-hashing/problem-001-two-sum/2025-07-15/homework.js",
    "patterns/arrays-and-hashing/problem-002-contains-duplicate/2025-07-16/homework.js",
    "patterns/two-pointers/problem-001-valid-palindrome/2025-07-17/homework.js",
)


def _base(installed_at: str, **overrides) -> DashboardState:
    state = DashboardState(
        workspace_path=NO_WORKSPACE,
        installed_at=installed_at,
        session=SessionState(running=False, started_at=None, today_minutes=0),
    )
    for name, value in overrides.items():
        setattr(state, name, value)
    if not state.calendar_buckets:
        state.calendar_buckets = compute_buckets(state.daily_minutes)
    return state


def _detected_problem(installed_at: str, workspace: str, now: datetime) -> DashboardState:
    problems = [p for p in (parse_problem_path(path) for path in _SAMPLE_PATHS) if p is not None]
    today = now.date()
    daily = {(today - timedelta(days=d)).isoformat(): m for d, m in ((2, 30), (1, 45), (0, 45))}
    return _base(
        installed_at,
        workspace_path=workspace,
        problem_count=3,
        current_problem=problems[0],
        problems=problems,
        solved_keys=[problems[1].key],
        pattern_stats=[
            PatternStats(pattern="Arrays And Hashing", solved=1, total=2),
            PatternStats(pattern="Two Pointers", solved=0, total=1),
        ],
        session=SessionState(
            running=True,
            started_at=(now - timedelta(minutes=25)).isoformat(),
            today_minutes=45,
        ),
        daily_minutes=daily,
        calendar_buckets=compute_buckets(daily, today),
    )


PreviewFactory = Callable[[str, str, datetime], DashboardState]

PRESETS: Dict[str, PreviewFactory] = {
    EMPTY_WORKSPACE: lambda installed_at, ws, now: _base(installed_at),
    NO_FILE_OPEN: lambda installed_at, ws, now: _base(installed_at, workspace_path=ws, problem_count=3),
    DETECTED_PROBLEM: _detected_problem,
    SKELETON_LOADING: lambda installed_at, ws, now: _base(installed_at, workspace_path="Loading…"),
}


def build_preview(name: str, installed_at: str, workspace_path: str, now: datetime) -> Optional[DashboardState]:
    """Return the named preview state, or None for an unknown name."""
    factory = PRESETS.get(name)
    if factory is None:
        return None
    return factory(installed_at, workspace_path, now)
