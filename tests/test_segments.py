"""Tests for codequest.core.segments – the 20-slot progress bar per pattern."""

from __future__ import annotations

import pytest

from codequest.core.catalog import CatalogItem, PatternCatalog, band_to_difficulty
from codequest.core.segments import Segment, build_all_segments, build_segments, sort_for_segments


def _item(slug: str, title: str, band: int = 1, pattern: str = "arrays") -> CatalogItem:
    return CatalogItem(
        slug=slug,
        title=title,
        url=f"https://leetcode.com/problems/{slug}/",
        difficulty=band_to_difficulty(band),
        band=band,
        pattern=pattern,
    )


def _catalog(count: int, pattern: str = "arrays") -> PatternCatalog:
    return PatternCatalog(
        _item(f"p-{i:02d}", f"Problem {i:02d}", band=1 + i % 5, pattern=pattern) for i in range(count)
    )


# ---------------------------------------------------------------------------
# Always twenty
# ---------------------------------------------------------------------------

class TestSegmentCount:
    @pytest.mark.parametrize("count", [0, 1, 2, 7, 19, 20, 21, 45])
    def test_exactly_twenty(self, count):
        segments = build_segments("arrays", _catalog(count), frozenset())
        assert len(segments) == 20
        assert [s.index for s in segments] == list(range(20))

    def test_unknown_pattern(self):
        segments = build_segments("nope", _catalog(5), frozenset())
        assert len(segments) == 20
        assert all(s.is_generated for s in segments)

    def test_overfull_truncated_not_variant(self):
        segments = build_segments("arrays", _catalog(45), frozenset())
        assert not any(s.is_variant or s.is_generated for s in segments)


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------

class TestOrdering:
    def test_difficulty_then_title_then_slug(self):
        items = [
            _item("h", "Alpha", band=5),
            _item("m", "Alpha", band=3),
            _item("e2", "Beta", band=1),
            _item("e1b", "Alpha", band=2),
            _item("e1a", "Alpha", band=1),
        ]
        assert [i.slug for i in sort_for_segments(items)] == ["e1a", "e1b", "e2", "m", "h"]

    def test_title_order_ignores_case(self):
        items = [_item("banana", "Banana"), _item("apple-lower", "apple"), _item("apple-upper", "Apple")]
        assert [i.slug for i in sort_for_segments(items)] == ["apple-upper", "apple-lower", "banana"]

    def test_order_independent_of_input_order(self):
        items = [_item("b", "B"), _item("a", "A", band=3), _item("c", "C", band=5)]
        forward = build_segments("arrays", PatternCatalog(items), frozenset())
        backward = build_segments("arrays", PatternCatalog(reversed(items)), frozenset())
        assert forward == backward

    def test_deterministic_output(self):
        catalog = _catalog(7)
        solved = frozenset({"arrays/p-03"})
        first = [s.to_dict() for s in build_segments("arrays", catalog, solved)]
        second = [s.to_dict() for s in build_segments("arrays", catalog, solved)]
        assert first == second


# ---------------------------------------------------------------------------
# Variants and placeholders
# ---------------------------------------------------------------------------

class TestPadding:
    def test_single_item_scenario(self):
        catalog = PatternCatalog([_item("two-sum", "Two Sum")])
        segments = build_segments("arrays", catalog, frozenset())
        assert segments[0] == Segment(index=0, slug="two-sum", title="Two Sum", difficulty="Easy", solved=False)
        rest = segments[1:]
        assert len(rest) == 19
        assert all(s.is_variant for s in rest)
        assert all(s.slug.startswith("two-sum-variant-") for s in rest)
        assert rest[0].slug == "two-sum-variant-2"
        assert rest[0].title == "Two Sum (Variant 2)"
        assert rest[-1].slug == "two-sum-variant-20"

    def test_cycles_sorted_list(self):
        catalog = PatternCatalog([_item("b", "B", band=3), _item("a", "A", band=1)])
        segments = build_segments("arrays", catalog, frozenset())
        assert [s.slug for s in segments[:5]] == ["a", "b", "a-variant-2", "b-variant-2", "a-variant-3"]
        assert segments[3].difficulty == "Medium"

    def test_empty_pattern_placeholders(self):
        segments = build_segments("two-pointers", PatternCatalog(), frozenset())
        assert [s.difficulty for s in segments[:4]] == ["Easy", "Medium", "Hard", "Easy"]
        assert segments[0].slug == "two-pointers-problem-1"
        assert segments[0].title == "Two Pointers Problem 1"
        assert segments[19].slug == "two-pointers-problem-20"
        assert all(s.is_generated and not s.is_variant and not s.solved for s in segments)


# ---------------------------------------------------------------------------
# Solved flags
# ---------------------------------------------------------------------------

class TestSolvedFlags:
    def test_marks_by_pattern_slug(self):
        catalog = PatternCatalog([_item("two-sum", "Two Sum"), _item("three-sum", "Three Sum")])
        segments = build_segments("arrays", catalog, frozenset({"arrays/two-sum"}))
        by_slug = {s.slug: s for s in segments}
        assert by_slug["two-sum"].solved
        assert not by_slug["three-sum"].solved
        assert not by_slug["two-sum-variant-2"].solved

    def test_other_pattern_key_ignored(self):
        catalog = PatternCatalog([_item("two-sum", "Two Sum")])
        segments = build_segments("arrays", catalog, frozenset({"stack/two-sum", "two-sum"}))
        assert not any(s.solved for s in segments)


class TestBuildAll:
    def test_every_pattern(self):
        catalog = PatternCatalog([_item("a", "A"), _item("s", "S", pattern="stack")])
        result = build_all_segments(catalog, frozenset())
        assert sorted(result) == ["arrays", "stack"]
        assert all(len(v) == 20 for v in result.values())
