"""Parsing of legacy workspace paths: patterns/<pattern>/problem-<n>-<name>/<date>/homework.js."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

LEGACY_FILENAME = "homework.js"

EASY_PATTERNS = frozenset({"arrays-and-hashing", "two-pointers"})

_PATH_RE = re.compile(
    r".*patterns/([^/]+)/problem-(\d+)-([^/]+)/(\d{4}-\d{2}-\d{2})/homework\.js$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ProblemIdentity:
    pattern: str
    number: str
    name: str
    date: str
    difficulty: str
    key: str
    pattern_slug: str
    name_slug: str

    @property
    def catalog_key(self) -> str:
        """The same problem expressed as a catalog solved key (``pattern/slug``)."""
        return f"{self.pattern_slug}/{self.name_slug}"

    def to_dict(self) -> dict:
        return {
            "pattern": self.pattern,
            "number": self.number,
            "name": self.name,
            "date": self.date,
            "difficulty": self.difficulty,
            "key": self.key,
        }


def parse_problem_path(file_path: Optional[str]) -> Optional[ProblemIdentity]:
    """Return the identity encoded in ``file_path`` or None when it does not match."""
    if not file_path or not isinstance(file_path, str):
        return None
    normalized = file_path.replace("\\", "/")
    m = _PATH_RE.match(normalized)
    if not m:
        return None
    pattern_slug, num, name_slug, date = m.groups()
    return ProblemIdentity(
        pattern=slug_to_name(pattern_slug),
        number=num,
        name=slug_to_name(name_slug),
        date=date,
        difficulty=infer_difficulty(pattern_slug, int(num)),
        key=f"patterns/{pattern_slug}/problem-{num}-{name_slug}/{date}/{LEGACY_FILENAME}",
        pattern_slug=pattern_slug,
        name_slug=name_slug,
    )


def slug_to_name(slug: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in slug.split("-"))


def infer_difficulty(pattern_slug: str, num: int) -> str:
    if pattern_slug in EASY_PATTERNS:
        if num <= 3:
            return "Easy"
        if num <= 7:
            return "Medium"
        return "Hard"
    # Hard is never inferred for the remaining patterns
    if num <= 2:
        return "Easy"
    return "Medium"
