from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from codequest.core.calendar import CalendarAccumulator, CalendarBucket, Clock, utc_now
from codequest.core.catalog import CatalogStore
from codequest.core.constants import KEY_INSTALLED_AT
from codequest.core.errors import ItemNotFoundError
from codequest.core.metadata import MetadataProvider
from codequest.core.problem_path import ProblemIdentity, parse_problem_path
from codequest.core.segments import Segment, build_all_segments
from codequest.core.session import SessionState, SessionTimer
from codequest.core.solved import PatternStats, SolvedNamespace, SolvedStateTracker, compute_stats
from codequest.core.storage import KeyValueStore
from codequest.core.workspace import WorkspaceScanner, collect_problems

logger = logging.getLogger(__name__)

FILTERS = ("all", "unsolved", "solved")
NO_WORKSPACE = "No folder open"


@dataclass
class DashboardState:
    """Everything the dashboard renders. Derived on demand, never stored."""

    workspace_path: str
    installed_at: str
    session: SessionState
    filter: str = "all"
    problem_count: int = 0
    current_problem: Optional[ProblemIdentity] = None
    problems: List[ProblemIdentity] = field(default_factory=list)
    solved_keys: List[str] = field(default_factory=list)
    pattern_stats: List[PatternStats] = field(default_factory=list)
    segments: Dict[str, List[Segment]] = field(default_factory=dict)
    daily_minutes: Dict[str, int] = field(default_factory=dict)
    calendar_buckets: List[CalendarBucket] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "workspacePath": self.workspace_path,
            "problemCount": self.problem_count,
            "currentProblem": self.current_problem.to_dict() if self.current_problem else None,
            "problems": [p.to_dict() for p in self.problems],
            "solvedKeys": list(self.solved_keys),
            "filter": self.filter,
            "patternStats": [s.to_dict() for s in self.pattern_stats],
            "segments": {pattern: [s.to_dict() for s in segs] for pattern, segs in self.segments.items()},
            "installedAt": self.installed_at,
            "session": self.session.to_dict(),
            "calendar": {
                "dailyMinutes": dict(self.daily_minutes),
                "buckets": [b.to_dict() for b in self.calendar_buckets],
            },
        }


class TrackerEngine:
    """Owns every piece of tracker state. Build one per process and pass it around."""

    def __init__(
        self,
        store: KeyValueStore,
        provider: Optional[MetadataProvider] = None,
        scanner: Optional[WorkspaceScanner] = None,
        workspace_root: Optional[Path] = None,
        clock: Clock = utc_now,
        catalog: Optional[CatalogStore] = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.calendar = CalendarAccumulator(store, clock)
        self.catalog = catalog or CatalogStore(store, provider, clock=clock)
        self.solved = SolvedStateTracker(store, self.calendar, clock)
        self.session = SessionTimer(store, self.calendar, clock)
        self.scanner = scanner
        self.workspace_root = workspace_root
        self.filter = "all"
        self.problems: List[ProblemIdentity] = []
        self.current_problem: Optional[ProblemIdentity] = None
        self.installed_at = self._installed_at()

    def set_filter(self, value: str) -> None:
        if value not in FILTERS:
            raise ValueError(f"Unknown filter: {value!r}")
        self.filter = value

    def set_current_path(self, path: Optional[str]) -> Optional[ProblemIdentity]:
        """Track the file being edited; non-problem files clear the current problem."""
        self.current_problem = parse_problem_path(path)
        return self.current_problem

    def rescan_workspace(self) -> int:
        if self.scanner is None or self.workspace_root is None:
            self.problems = []
        else:
            self.problems = collect_problems(self.scanner, self.workspace_root)
        return len(self.problems)

    def mark_solved(self, pattern: str, slug: str) -> bool:
        """Toggle a catalog item. Raises ItemNotFoundError when it is not in the catalog."""
        if not pattern or not slug or self.catalog.get_catalog().find(pattern, slug) is None:
            raise ItemNotFoundError(pattern, slug)
        return self.solved.toggle_solved(f"{pattern}/{slug}", SolvedNamespace.CATALOG)

    def toggle_current_problem(self) -> Optional[bool]:
        """Toggle the legacy problem being edited; None when no problem file is open."""
        if self.current_problem is None:
            return None
        return self.solved.toggle_solved(self.current_problem.key, SolvedNamespace.LEGACY)

    def next_unsolved(self) -> Optional[ProblemIdentity]:
        for problem in self.problems:
            if not self.solved.is_solved(problem.key):
                return problem
        return None

    def build_dashboard_state(self) -> DashboardState:
        catalog = self.catalog.get_catalog()
        keys = self.solved.solved_keys()
        combined = keys.combined()
        return DashboardState(
            workspace_path=str(self.workspace_root) if self.workspace_root else NO_WORKSPACE,
            installed_at=self.installed_at,
            session=self.session.state(),
            filter=self.filter,
            problem_count=len(self.problems),
            current_problem=self.current_problem,
            problems=list(self.problems),
            solved_keys=sorted(keys.legacy | keys.catalog),
            pattern_stats=compute_stats(catalog, keys),
            segments=build_all_segments(catalog, combined),
            daily_minutes=self.calendar.daily_minutes(),
            calendar_buckets=self.calendar.buckets(),
        )

    def dispose(self) -> None:
        self.session.dispose()

    def _installed_at(self) -> str:
        installed_at = self.store.get(KEY_INSTALLED_AT)
        if not installed_at or not isinstance(installed_at, str):
            installed_at = self.clock().isoformat()
            self.store.set(KEY_INSTALLED_AT, installed_at)
        return installed_at
