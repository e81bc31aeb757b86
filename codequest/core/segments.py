"""Fixed-size progress bar segments per pattern."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Dict, List

from codequest.core.catalog import DIFFICULTIES, CatalogItem, PatternCatalog
from codequest.core.constants import SEGMENTS_PER_PATTERN
from codequest.core.problem_path import slug_to_name

_DIFFICULTY_RANK = {name: rank for rank, name in enumerate(DIFFICULTIES)}


@dataclass(frozen=True)
class Segment:
    index: int
    slug: str
    title: str
    difficulty: str
    solved: bool
    is_variant: bool = False
    is_generated: bool = False

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "slug": self.slug,
            "title": self.title,
            "difficulty": self.difficulty,
            "solved": self.solved,
            "isVariant": self.is_variant,
            "isGenerated": self.is_generated,
        }


@dataclass(frozen=True)
class _Slot:
    slug: str
    title: str
    difficulty: str
    is_variant: bool = False
    is_generated: bool = False


def normalize_difficulty(value: str) -> str:
    name = (value or "").strip().capitalize()
    return name if name in _DIFFICULTY_RANK else "Medium"


def sort_for_segments(items: List[CatalogItem]) -> List[CatalogItem]:
    """Easy before Medium before Hard, then title ignoring case, then slug."""
    return sorted(
        items,
        key=lambda item: (
            _DIFFICULTY_RANK[normalize_difficulty(item.difficulty)],
            item.title.casefold(),
            item.title,
            item.slug,
        ),
    )


def build_segments(pattern_key: str, catalog: PatternCatalog, solved_keys: AbstractSet[str]) -> List[Segment]:
    """Return exactly SEGMENTS_PER_PATTERN segments for ``pattern_key``.

    Short patterns are padded by cycling the sorted items as variants; a pattern
    with no items gets generated placeholders. ``solved_keys`` holds combined
    ``pattern/slug`` keys.
    """
    base = [
        _Slot(slug=item.slug, title=item.title, difficulty=normalize_difficulty(item.difficulty))
        for item in sort_for_segments(catalog.items(pattern_key))
    ]
    slots = list(base)

    while base and len(slots) < SEGMENTS_PER_PATTERN:
        source = base[len(slots) % len(base)]
        n = len(slots) // len(base) + 1
        slots.append(
            _Slot(
                slug=f"{source.slug}-variant-{n}",
                title=f"{source.title} (Variant {n})",
                difficulty=source.difficulty,
                is_variant=True,
            )
        )

    if not slots:
        name = slug_to_name(pattern_key)
        for i in range(SEGMENTS_PER_PATTERN):
            slots.append(
                _Slot(
                    slug=f"{pattern_key}-problem-{i + 1}",
                    title=f"{name} Problem {i + 1}",
                    difficulty=DIFFICULTIES[i % len(DIFFICULTIES)],
                    is_generated=True,
                )
            )

    return [
        Segment(
            index=i,
            slug=slot.slug,
            title=slot.title,
            difficulty=slot.difficulty,
            solved=f"{pattern_key}/{slot.slug}" in solved_keys,
            is_variant=slot.is_variant,
            is_generated=slot.is_generated,
        )
        for i, slot in enumerate(slots[:SEGMENTS_PER_PATTERN])
    ]


def build_all_segments(catalog: PatternCatalog, solved_keys: AbstractSet[str]) -> Dict[str, List[Segment]]:
    return {pattern: build_segments(pattern, catalog, solved_keys) for pattern in catalog.patterns()}
