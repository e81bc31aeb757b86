from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from codequest.core.calendar import CalendarAccumulator, Clock, utc_now
from codequest.core.catalog import PatternCatalog
from codequest.core.constants import KEY_SOLVED_CATALOG, KEY_SOLVED_LEGACY, SOLVE_CREDIT_MINUTES
from codequest.core.problem_path import parse_problem_path
from codequest.core.storage import KeyValueStore, read_dict

logger = logging.getLogger(__name__)


class SolvedNamespace(Enum):
    LEGACY = "legacy"  # workspace file paths
    CATALOG = "catalog"  # "pattern/slug"


@dataclass(frozen=True)
class SolvedKeys:
    legacy: FrozenSet[str] = frozenset()
    catalog: FrozenSet[str] = frozenset()

    def combined(self) -> FrozenSet[str]:
        """Union of both namespaces. Legacy paths also count under their ``pattern/slug`` form."""
        keys = set(self.catalog) | set(self.legacy)
        for path in self.legacy:
            problem = parse_problem_path(path)
            if problem is not None:
                keys.add(problem.catalog_key)
        return frozenset(keys)


@dataclass(frozen=True)
class PatternStats:
    pattern: str
    solved: int
    total: int

    def to_dict(self) -> dict:
        return {"pattern": self.pattern, "solved": self.solved, "total": self.total}


def compute_stats(catalog: PatternCatalog, solved_keys: SolvedKeys) -> List[PatternStats]:
    combined = solved_keys.combined()
    stats = []
    for pattern in catalog.patterns():
        items = catalog.items(pattern)
        solved = sum(1 for item in items if f"{pattern}/{item.slug}" in combined)
        stats.append(PatternStats(pattern=pattern, solved=solved, total=len(items)))
    return stats


def namespace_for(key: str) -> SolvedNamespace:
    return SolvedNamespace.LEGACY if parse_problem_path(key) is not None else SolvedNamespace.CATALOG


class SolvedStateTracker:
    """Solved status in two namespaces, each persisted under its own key."""

    def __init__(self, store: KeyValueStore, calendar: CalendarAccumulator, clock: Clock = utc_now) -> None:
        self._store = store
        self._calendar = calendar
        self._clock = clock
        self._legacy = self._load_legacy()
        self._catalog = self._load_catalog()

    def solved_keys(self) -> SolvedKeys:
        return SolvedKeys(legacy=frozenset(self._legacy), catalog=frozenset(self._catalog))

    def is_solved(self, key: str) -> bool:
        return key in self._legacy or key in self._catalog

    def solved_at(self, key: str) -> Optional[str]:
        if key in self._catalog:
            return self._catalog[key]
        return self._legacy.get(key)

    def toggle_solved(self, key: str, namespace: Optional[SolvedNamespace] = None) -> bool:
        """Flip ``key`` in its namespace and return whether it is now solved.

        Marking something solved credits SOLVE_CREDIT_MINUTES to today's calendar.
        """
        namespace = namespace or namespace_for(key)
        entries = self._legacy if namespace is SolvedNamespace.LEGACY else self._catalog
        if key in entries:
            del entries[key]
            solved = False
        else:
            entries[key] = self._clock().isoformat()
            solved = True
        self._persist(namespace)
        if solved:
            self._calendar.add_today(SOLVE_CREDIT_MINUTES)
        logger.info("%s %s (%s)", "Solved" if solved else "Unsolved", key, namespace.value)
        return solved

    def _persist(self, namespace: SolvedNamespace) -> None:
        if namespace is SolvedNamespace.LEGACY:
            self._store.set(KEY_SOLVED_LEGACY, {key: {"solvedAt": at} for key, at in self._legacy.items()})
        else:
            self._store.set(KEY_SOLVED_CATALOG, dict(self._catalog))

    def _load_legacy(self) -> Dict[str, str]:
        legacy: Dict[str, str] = {}
        for key, info in read_dict(self._store, KEY_SOLVED_LEGACY).items():
            solved_at = info.get("solvedAt") if isinstance(info, dict) else None
            legacy[str(key)] = str(solved_at or "")
        return legacy

    def _load_catalog(self) -> Dict[str, str]:
        return {str(key): str(at or "") for key, at in read_dict(self._store, KEY_SOLVED_CATALOG).items()}
