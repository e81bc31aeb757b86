from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List

import requests

from codequest.core.errors import CatalogFetchError

logger = logging.getLogger(__name__)

LEETCODE_PROBLEMS_URL = "https://leetcode.com/api/problems/all/"


class MetadataProvider(ABC):
    """Source of raw problem metadata used to rebuild the catalog."""

    @abstractmethod
    def fetch_items(self) -> List[dict]:
        """Return raw problem records. Raise CatalogFetchError on failure."""


class LeetCodeMetadataProvider(MetadataProvider):
    """Reads titles, slugs and difficulty levels from LeetCode's public problem list.
    No problem statements are downloaded."""

    def __init__(self, url: str = LEETCODE_PROBLEMS_URL, timeout: float = 15.0) -> None:
        self._url = url
        self._timeout = timeout

    def fetch_items(self) -> List[dict]:
        try:
            resp = requests.get(self._url, timeout=self._timeout)
            resp.raise_for_status()
            payload = resp.json()
        except requests.exceptions.RequestException as e:
            logger.warning("Failed to fetch problem metadata: %s", e)
            raise CatalogFetchError(f"Network error: {e}") from e
        except ValueError as e:
            raise CatalogFetchError(f"Invalid metadata payload: {e}") from e
        if not isinstance(payload, dict):
            raise CatalogFetchError("Invalid metadata payload: expected an object")
        pairs = payload.get("stat_status_pairs") or []
        return [pair for pair in pairs if isinstance(pair, dict)]
