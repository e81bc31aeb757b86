"""Messages exchanged with the dashboard surface."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping

from codequest.core.errors import UnknownCommandError


class InboundKind(Enum):
    GET_INITIAL_STATE = "get-initial-state"
    SET_FILTER = "set-filter"
    MARK_SOLVED = "mark-solved"
    OPEN_ITEM = "open-item"
    REFRESH = "refresh"
    REQUEST_LIVE_STATE = "request-live-state"
    START_SESSION = "start-session"
    END_SESSION = "end-session"
    ACTIVE_FILE_CHANGED = "active-file-changed"
    TOGGLE_CURRENT_PROBLEM = "toggle-current-problem"
    OPEN_NEXT_UNSOLVED = "open-next-unsolved"
    GET_CATALOG = "get-catalog"
    REFRESH_CATALOG = "refresh-catalog"


class OutboundKind(Enum):
    STATE_SNAPSHOT = "state-snapshot"
    PREVIEW_MODE_TOGGLE = "preview-mode-toggle"
    COMMAND_RESULT = "command-result"
    CATALOG_DATA = "catalog-data"


# Command names older dashboard builds still send.
COMMAND_ALIASES: Dict[str, InboundKind] = {
    "getInitialState": InboundKind.GET_INITIAL_STATE,
    "markSolved": InboundKind.MARK_SOLVED,
    "codequest.markSolved": InboundKind.TOGGLE_CURRENT_PROBLEM,
    "codequest.openNextUnsolved": InboundKind.OPEN_NEXT_UNSOLVED,
    "codequest.getCatalog": InboundKind.GET_CATALOG,
    "codequest.buildCatalog": InboundKind.REFRESH_CATALOG,
    "codequest.refreshCatalog": InboundKind.REFRESH_CATALOG,
    "codequest.setFilter": InboundKind.SET_FILTER,
    "codequest.openProblem": InboundKind.OPEN_ITEM,
    "codequest.refreshProblems": InboundKind.REFRESH,
    "codequest.requestLiveState": InboundKind.REQUEST_LIVE_STATE,
    "codequest.startSession": InboundKind.START_SESSION,
    "codequest.endSession": InboundKind.END_SESSION,
}


@dataclass(frozen=True)
class InboundMessage:
    kind: InboundKind
    pattern: str = ""
    slug: str = ""
    key: str = ""
    filter: str = ""
    path: str = ""


@dataclass(frozen=True)
class OutboundMessage:
    kind: OutboundKind
    data: Any

    def to_dict(self) -> dict:
        return {"type": self.kind.value, "data": self.data}


def _text(payload: Mapping, name: str) -> str:
    value = payload.get(name)
    return value if isinstance(value, str) else ""


def resolve_kind(command: object) -> InboundKind:
    if not isinstance(command, str):
        raise UnknownCommandError(f"Missing command: {command!r}")
    if command in COMMAND_ALIASES:
        return COMMAND_ALIASES[command]
    try:
        return InboundKind(command)
    except ValueError:
        raise UnknownCommandError(f"Unknown command: {command}") from None


def parse_inbound(payload: Mapping) -> InboundMessage:
    """Turn a raw ``{"command": ..., ...}`` mapping into an InboundMessage.

    Raises UnknownCommandError for anything that does not name a known command.
    Payload fields of the wrong type read as empty strings.
    """
    if not isinstance(payload, Mapping):
        raise UnknownCommandError(f"Malformed message: {payload!r}")
    return InboundMessage(
        kind=resolve_kind(payload.get("command")),
        pattern=_text(payload, "pattern"),
        slug=_text(payload, "slug"),
        key=_text(payload, "key"),
        filter=_text(payload, "filter"),
        path=_text(payload, "path"),
    )


def state_snapshot(state: dict) -> OutboundMessage:
    return OutboundMessage(OutboundKind.STATE_SNAPSHOT, state)


def preview_mode_toggle(enabled: bool, label: str = "") -> OutboundMessage:
    return OutboundMessage(OutboundKind.PREVIEW_MODE_TOGGLE, {"enabled": enabled, "label": label})


def command_result(message: str, level: str = "info") -> OutboundMessage:
    return OutboundMessage(OutboundKind.COMMAND_RESULT, {"message": message, "level": level})


def catalog_data(catalog: dict, cache: dict) -> OutboundMessage:
    return OutboundMessage(OutboundKind.CATALOG_DATA, {"catalog": catalog, "cache": cache})
