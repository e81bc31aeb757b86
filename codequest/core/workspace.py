from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List

from codequest.core.problem_path import LEGACY_FILENAME, ProblemIdentity, parse_problem_path

logger = logging.getLogger(__name__)


class WorkspaceScanner(ABC):
    """Enumerates legacy problem files below a workspace root."""

    @abstractmethod
    def scan(self, root: Path) -> List[str]:
        ...


class PatternsWorkspaceScanner(WorkspaceScanner):
    """Finds ``patterns/*/problem-*/*/homework.js`` files (filename matched case-insensitively)."""

    def scan(self, root: Path) -> List[str]:
        base = root / "patterns"
        if not base.is_dir():
            return []
        found = []
        try:
            for candidate in base.glob("*/problem-*/*/*"):
                if candidate.is_file() and candidate.name.lower() == LEGACY_FILENAME:
                    found.append(candidate.relative_to(root).as_posix())
        except OSError as e:
            logger.warning("Could not scan %s: %s", base, e)
        return sorted(found)


def collect_problems(scanner: WorkspaceScanner, root: Path) -> List[ProblemIdentity]:
    """Parse every scanned path; paths that do not parse are dropped."""
    problems = []
    for path in scanner.scan(root):
        problem = parse_problem_path(path)
        if problem is not None:
            problems.append(problem)
    return sorted(problems, key=lambda p: p.key)
