from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import yaml

from codequest.core.calendar import Clock, utc_now
from codequest.core.constants import CATALOG_SNAPSHOT_VERSION, KEY_CATALOG_SNAPSHOT
from codequest.core.errors import CatalogFetchError, RefreshInProgressError
from codequest.core.metadata import MetadataProvider
from codequest.core.storage import KeyValueStore

logger = logging.getLogger(__name__)

BANDS: Tuple[int, ...] = (1, 2, 3, 4, 5)
DIFFICULTIES: Tuple[str, ...] = ("Easy", "Medium", "Hard")
DIFFICULTY_BANDS: Dict[str, int] = {"Easy": 1, "Medium": 3, "Hard": 5}
LEVEL_DIFFICULTIES: Dict[int, str] = {1: "Easy", 2: "Medium", 3: "Hard"}

DEFAULT_PATTERN = "arrays-and-hashing"

# First match wins; order matters.
TITLE_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("arrays-and-hashing", ("array", "sum", "duplicate")),
    ("two-pointers", ("palindrome", "pointer")),
    ("sliding-window", ("window", "substring")),
    ("stack", ("parentheses", "stack", "bracket")),
    ("binary-search", ("search", "binary", "sorted")),
    ("dynamic-programming", ("climb", "house", "coin", "path")),
    ("graph", ("island", "graph", "course", "clone")),
)

TAG_PATTERNS: Dict[str, Tuple[str, ...]] = {
    "arrays-and-hashing": ("Array", "Hash Table"),
    "two-pointers": ("Two Pointers",),
    "sliding-window": ("Sliding Window",),
    "stack": ("Stack",),
    "binary-search": ("Binary Search",),
    "dynamic-programming": ("Dynamic Programming",),
    "graph": ("Graph",),
}

BUNDLED_CATALOG = Path(__file__).resolve().parent.parent / "data" / "catalog.yaml"


@dataclass(frozen=True)
class CatalogItem:
    slug: str
    title: str
    url: str
    difficulty: str
    band: int
    pattern: str
    tags: frozenset = field(default_factory=frozenset)
    paid_only: bool = False

    def to_dict(self) -> dict:
        return {
            "slug": self.slug,
            "title": self.title,
            "url": self.url,
            "difficulty": self.difficulty,
            "band": self.band,
            "pattern": self.pattern,
            "tags": sorted(self.tags),
            "paidOnly": self.paid_only,
        }


class PatternCatalog:
    """Read-only pattern -> band -> items mapping. Build a new one instead of mutating."""

    def __init__(self, items: Iterable[CatalogItem] = ()) -> None:
        grouped: Dict[str, Dict[int, List[CatalogItem]]] = {}
        for item in items:
            bands = grouped.setdefault(item.pattern, {band: [] for band in BANDS})
            bands[item.band].append(item)
        self._patterns: Dict[str, Dict[int, Tuple[CatalogItem, ...]]] = {
            pattern: {band: tuple(bucket) for band, bucket in bands.items()}
            for pattern, bands in grouped.items()
        }

    def patterns(self) -> List[str]:
        return sorted(self._patterns)

    def band(self, pattern: str, band: int) -> Tuple[CatalogItem, ...]:
        return self._patterns.get(pattern, {}).get(band, ())

    def items(self, pattern: str) -> List[CatalogItem]:
        """All items of ``pattern`` across every band, band 1 first."""
        bands = self._patterns.get(pattern, {})
        return [item for band in BANDS for item in bands.get(band, ())]

    def find(self, pattern: str, slug: str) -> Optional[CatalogItem]:
        for item in self.items(pattern):
            if item.slug == slug:
                return item
        return None

    def is_empty(self) -> bool:
        return len(self) == 0

    def to_dict(self) -> dict:
        return {
            pattern: {str(band): [item.to_dict() for item in self.band(pattern, band)] for band in BANDS}
            for pattern in self.patterns()
        }

    def __len__(self) -> int:
        return sum(len(bucket) for bands in self._patterns.values() for bucket in bands.values())

    def __iter__(self) -> Iterator[CatalogItem]:
        for pattern in self.patterns():
            yield from self.items(pattern)

    def __contains__(self, pattern: object) -> bool:
        return pattern in self._patterns


def band_to_difficulty(band: int) -> str:
    if band <= 2:
        return "Easy"
    if band <= 4:
        return "Medium"
    return "Hard"


def infer_pattern_from_title(title: str) -> str:
    lowered = title.lower()
    for pattern, keywords in TITLE_KEYWORDS:
        if any(word in lowered for word in keywords):
            return pattern
    return DEFAULT_PATTERN


def pattern_from_tags(tags: Iterable[str]) -> Optional[str]:
    tag_set = set(tags)
    for pattern, pattern_tags in TAG_PATTERNS.items():
        if tag_set.intersection(pattern_tags):
            return pattern
    return None


def _raw_tags(raw: Mapping) -> List[str]:
    tags = raw.get("tags") or raw.get("topicTags") or []
    names = []
    for tag in tags:
        if isinstance(tag, Mapping):
            tag = tag.get("name")
        if tag:
            names.append(str(tag))
    return names


def process_raw_item(raw: Mapping) -> Optional[CatalogItem]:
    """Convert one provider record into a CatalogItem, or None when it cannot be used."""
    stat = raw.get("stat")
    if isinstance(stat, Mapping):
        slug = stat.get("question_title_slug")
        title = stat.get("question_title")
        level = (raw.get("difficulty") or {}).get("level")
        difficulty = LEVEL_DIFFICULTIES.get(level)
        paid_only = bool(raw.get("paid_only", False))
    else:
        slug = raw.get("slug")
        title = raw.get("title")
        difficulty = str(raw.get("difficulty", "")).capitalize() or None
        if difficulty not in DIFFICULTY_BANDS:
            difficulty = None
        paid_only = bool(raw.get("paidOnly", raw.get("paid_only", False)))

    if not slug or not title:
        logger.warning("Skipping catalog entry without slug/title: %r", raw)
        return None
    if difficulty is None:
        logger.warning("Unknown difficulty for %s", slug)
        return None

    tags = _raw_tags(raw)
    pattern = raw.get("pattern") or pattern_from_tags(tags) or infer_pattern_from_title(str(title))
    return CatalogItem(
        slug=str(slug),
        title=str(title),
        url=str(raw.get("url") or f"https://leetcode.com/problems/{slug}/"),
        difficulty=difficulty,
        band=DIFFICULTY_BANDS[difficulty],
        pattern=str(pattern),
        tags=frozenset(tags),
        paid_only=paid_only,
    )


def process_raw_items(raw_items: Iterable[Mapping]) -> List[CatalogItem]:
    processed: List[CatalogItem] = []
    for raw in raw_items:
        if not isinstance(raw, Mapping):
            logger.warning("Skipping malformed catalog entry: %r", raw)
            continue
        try:
            item = process_raw_item(raw)
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed catalog entry %r: %s", raw, e)
            continue
        if item is not None:
            processed.append(item)
    return processed


def _item_from_snapshot(entry: Mapping) -> Optional[CatalogItem]:
    try:
        band = int(entry["band"])
        if band not in BANDS:
            raise ValueError(f"band out of range: {band}")
        difficulty = entry.get("difficulty") or band_to_difficulty(band)
        if difficulty not in DIFFICULTY_BANDS:
            raise ValueError(f"unknown difficulty: {difficulty}")
        return CatalogItem(
            slug=str(entry["slug"]),
            title=str(entry["title"]),
            url=str(entry.get("url") or f"https://leetcode.com/problems/{entry['slug']}/"),
            difficulty=difficulty,
            band=band,
            pattern=str(entry["pattern"]),
            tags=frozenset(str(t) for t in entry.get("tags") or ()),
            paid_only=bool(entry.get("paidOnly", False)),
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.warning("Skipping malformed catalog entry %r: %s", entry, e)
        return None


def _items_from_entries(entries: object) -> List[CatalogItem]:
    if not isinstance(entries, list):
        return []
    items = (_item_from_snapshot(e) for e in entries if isinstance(e, Mapping))
    return [item for item in items if item is not None]


def fetch_catalog_items(provider: MetadataProvider) -> List[CatalogItem]:
    """Fetch and convert provider records. Touches no shared state, so it may run off the event thread."""
    try:
        return process_raw_items(provider.fetch_items())
    except CatalogFetchError:
        raise
    except Exception as e:
        raise CatalogFetchError(f"Metadata fetch failed: {e}") from e


def load_bundled_items(path: Path = BUNDLED_CATALOG) -> List[CatalogItem]:
    """Read the catalog snapshot shipped with the package."""
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Could not load bundled catalog from %s: %s", path, e)
        return []
    if not raw or not isinstance(raw, dict):
        logger.warning("%s: expected YAML with 'version' and 'problems'", path.name)
        return []
    return _items_from_entries(raw.get("problems"))


class CatalogStore:
    """Caches the pattern catalog. Remote snapshot first, bundled snapshot second."""

    def __init__(
        self,
        store: KeyValueStore,
        provider: Optional[MetadataProvider] = None,
        bundled_path: Path = BUNDLED_CATALOG,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._provider = provider
        self._bundled_path = bundled_path
        self._clock = clock
        self._cached: Optional[PatternCatalog] = None
        self._refreshing = False

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    def get_catalog(self) -> PatternCatalog:
        if self._cached is None:
            items = self._load_snapshot_items()
            if not items:
                items = load_bundled_items(self._bundled_path)
            self._cached = PatternCatalog(items)
            logger.info("Catalog loaded: %d problems in %d patterns", len(self._cached), len(self._cached.patterns()))
        return self._cached

    def refresh(self) -> int:
        """Fetch fresh metadata, persist it and drop the in-memory catalog.

        Blocks until the provider answers. Returns the number of problems stored.
        Raises RefreshInProgressError when called while another refresh runs and
        CatalogFetchError when the provider fails; in both cases the current
        catalog is left as it was.
        """
        provider = self.begin_refresh()
        try:
            return self.complete_refresh(fetch_catalog_items(provider))
        finally:
            self._refreshing = False

    def begin_refresh(self) -> MetadataProvider:
        """Take the refresh latch and return the provider to fetch from.

        The latch stays held until complete_refresh() or abort_refresh().
        """
        if self._refreshing:
            raise RefreshInProgressError()
        if self._provider is None:
            raise CatalogFetchError("No metadata provider configured")
        self._refreshing = True
        return self._provider

    def complete_refresh(self, items: List[CatalogItem]) -> int:
        try:
            now = self._clock().isoformat()
            self._store.set(
                KEY_CATALOG_SNAPSHOT,
                {
                    "version": CATALOG_SNAPSHOT_VERSION,
                    "createdAt": now,
                    "lastIndexedAt": now,
                    "problems": [item.to_dict() for item in items],
                },
            )
            self._cached = None
            logger.info("Indexed %d problems", len(items))
            return len(items)
        finally:
            self._refreshing = False

    def abort_refresh(self) -> None:
        self._refreshing = False

    def invalidate(self) -> None:
        self._cached = None

    def cache_info(self) -> dict:
        snapshot = self._read_snapshot()
        if snapshot is None:
            return {"exists": False}
        problems = snapshot.get("problems")
        return {
            "exists": True,
            "createdAt": snapshot.get("createdAt"),
            "problemCount": len(problems) if isinstance(problems, list) else 0,
        }

    def _read_snapshot(self) -> Optional[dict]:
        snapshot = self._store.get(KEY_CATALOG_SNAPSHOT)
        if snapshot is None:
            return None
        if not isinstance(snapshot, dict) or snapshot.get("version") != CATALOG_SNAPSHOT_VERSION:
            logger.warning("Catalog snapshot version mismatch, ignoring it")
            return None
        return snapshot

    def _load_snapshot_items(self) -> List[CatalogItem]:
        snapshot = self._read_snapshot()
        if snapshot is None:
            return []
        return _items_from_entries(snapshot.get("problems"))
