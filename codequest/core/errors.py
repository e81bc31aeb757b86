from __future__ import annotations


class CodeQuestError(Exception):
    """Base class for errors raised by the tracker engine."""


class CatalogFetchError(CodeQuestError):
    """The metadata provider could not deliver a catalog."""


class RefreshInProgressError(CodeQuestError):
    """A catalog refresh was requested while another one is still running."""

    def __init__(self) -> None:
        super().__init__("Catalog refresh already in progress")


class ItemNotFoundError(CodeQuestError):
    """A pattern/slug pair does not resolve to a catalog item."""

    def __init__(self, pattern: str, slug: str) -> None:
        super().__init__(f"Problem not found in catalog: {pattern}/{slug}")
        self.pattern = pattern
        self.slug = slug


class UnknownCommandError(CodeQuestError):
    """An inbound message names a command the channel does not handle."""
