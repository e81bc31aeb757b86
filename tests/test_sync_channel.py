"""Tests for codequest.ui.sync_channel – dashboard message routing and refresh coalescing."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import List

import pytest
import yaml
from PySide6.QtTest import QTest

from codequest.core.catalog import CatalogStore
from codequest.core.engine import TrackerEngine
from codequest.core.metadata import MetadataProvider
from codequest.core.problem_path import parse_problem_path
from codequest.ui.messages import InboundKind
from codequest.ui.preview import DETECTED_PROBLEM, EMPTY_WORKSPACE, PRESETS
from codequest.ui.sync_channel import DebounceTimer, SyncChannel

TWO_SUM_PATH = "patterns/arrays-and-hashing/problem-001-two-sum/2025-01-15/homework.js"


class Recorder:
    def __init__(self) -> None:
        self.messages: List[dict] = []

    def __call__(self, message: dict) -> None:
        self.messages.append(message)

    def of_type(self, kind: str) -> List[dict]:
        return [m for m in self.messages if m["type"] == kind]

    @property
    def snapshots(self) -> List[dict]:
        return self.of_type("state-snapshot")

    @property
    def results(self) -> List[dict]:
        return [m["data"] for m in self.of_type("command-result")]


class StaticProvider(MetadataProvider):
    def fetch_items(self):
        return [{"slug": "valid-parentheses", "title": "Valid Parentheses", "difficulty": "easy", "pattern": "stack"}]


class StaticListProvider(MetadataProvider):
    def __init__(self, items: List[dict]) -> None:
        self.items = items

    def fetch_items(self):
        return self.items


@pytest.fixture()
def bundled(tmp_path: Path) -> Path:
    path = tmp_path / "catalog.yaml"
    path.write_text(yaml.dump({"version": "1", "problems": [
        {"pattern": "arrays", "band": 1, "slug": "two-sum", "title": "Two Sum", "url": ""},
    ]}), encoding="utf-8")
    return path


@pytest.fixture()
def engine(store, clock, bundled):
    return TrackerEngine(
        store, clock=clock, catalog=CatalogStore(store, StaticProvider(), bundled_path=bundled, clock=clock)
    )


@pytest.fixture()
def sink() -> Recorder:
    return Recorder()


@pytest.fixture()
def channel(engine, sink):
    c = SyncChannel(engine, sink, debounce_ms=50)
    yield c
    c.dispose()


def _count_builds(monkeypatch, engine) -> List[int]:
    calls = []
    original = engine.build_dashboard_state

    def counted():
        calls.append(1)
        return original()

    monkeypatch.setattr(engine, "build_dashboard_state", counted)
    return calls


# ---------------------------------------------------------------------------
# DebounceTimer
# ---------------------------------------------------------------------------

class TestDebounceTimer:
    def test_restart_coalesces(self):
        fired = []
        timer = DebounceTimer(50, lambda: fired.append(1))
        for _ in range(5):
            timer.schedule()
            QTest.qWait(10)
        assert timer.pending
        QTest.qWait(150)
        assert fired == [1]
        assert not timer.pending

    def test_cancel(self):
        fired = []
        timer = DebounceTimer(30, lambda: fired.append(1))
        timer.schedule()
        timer.cancel()
        QTest.qWait(80)
        assert fired == []


# ---------------------------------------------------------------------------
# Handler table
# ---------------------------------------------------------------------------

class TestDispatch:
    def test_every_kind_handled(self, channel):
        assert set(channel._handlers) == set(InboundKind)

    def test_initial_state(self, channel, sink):
        channel.handle_message({"command": "get-initial-state"})
        assert len(sink.snapshots) == 1
        assert sink.snapshots[0]["data"]["workspacePath"] == "No folder open"

    def test_unknown_command_warns(self, channel, sink):
        channel.handle_message({"command": "explode"})
        assert sink.snapshots == []
        assert sink.results[0]["level"] == "warning"

    def test_unexpected_error_reported(self, channel, sink, monkeypatch):
        def boom():
            raise RuntimeError("boom")

        monkeypatch.setattr(channel.engine, "build_dashboard_state", boom)
        channel.handle_message({"command": "get-initial-state"})
        assert sink.results == [{"message": "Failed to handle get-initial-state", "level": "error"}]


# ---------------------------------------------------------------------------
# mark-solved
# ---------------------------------------------------------------------------

class TestMarkSolved:
    def test_one_snapshot_then_result(self, channel, sink):
        channel.handle_message({"command": "mark-solved", "pattern": "arrays", "slug": "two-sum"})
        assert [m["type"] for m in sink.messages] == ["state-snapshot", "command-result"]
        stats = sink.snapshots[0]["data"]["patternStats"]
        assert stats == [{"pattern": "arrays", "solved": 1, "total": 1}]
        assert sink.results[0]["message"] == "Problem marked as solved"

    def test_unmark(self, channel, sink):
        channel.handle_message({"command": "mark-solved", "pattern": "arrays", "slug": "two-sum"})
        channel.handle_message({"command": "mark-solved", "pattern": "arrays", "slug": "two-sum"})
        assert sink.results[-1]["message"] == "Problem unmarked as solved"

    def test_missing_item_warns_without_snapshot(self, channel, sink):
        channel.handle_message({"command": "mark-solved", "pattern": "arrays", "slug": "missing"})
        assert sink.snapshots == []
        assert sink.results[0]["level"] == "warning"
        assert channel.engine.solved.solved_keys().catalog == frozenset()


# ---------------------------------------------------------------------------
# set-filter / open-item
# ---------------------------------------------------------------------------

class TestSimpleCommands:
    def test_set_filter(self, channel, sink):
        channel.handle_message({"command": "set-filter", "filter": "solved"})
        assert sink.snapshots[-1]["data"]["filter"] == "solved"

    def test_bad_filter(self, channel, sink):
        channel.handle_message({"command": "set-filter", "filter": "weird"})
        assert sink.snapshots == []
        assert sink.results[0]["level"] == "warning"

    def test_open_item_calls_back(self, engine, sink):
        opened = []
        c = SyncChannel(engine, sink, on_open_item=opened.append)
        try:
            c.handle_message({"command": "open-item", "key": "arrays/two-sum"})
            assert opened == ["arrays/two-sum"]
            assert sink.results == [{"message": "Open requested for arrays/two-sum", "level": "info"}]
        finally:
            c.dispose()

    def test_open_item_without_handler_warns(self, channel, sink):
        channel.handle_message({"command": "open-item", "key": "arrays/two-sum"})
        assert sink.results == [{"message": "Cannot open arrays/two-sum", "level": "warning"}]

    def test_open_item_without_key(self, channel, sink):
        channel.handle_message({"command": "open-item"})
        assert sink.results[0]["level"] == "warning"


# ---------------------------------------------------------------------------
# Current problem file
# ---------------------------------------------------------------------------

class TestCurrentProblem:
    def test_active_file_changed(self, channel, sink):
        channel.handle_message({"command": "active-file-changed", "path": "/ws/" + TWO_SUM_PATH})
        current = sink.snapshots[-1]["data"]["currentProblem"]
        assert current["key"] == TWO_SUM_PATH
        assert current["name"] == "Two Sum"

    def test_non_problem_file_clears(self, channel, sink):
        channel.handle_message({"command": "active-file-changed", "path": TWO_SUM_PATH})
        channel.handle_message({"command": "active-file-changed", "path": "README.md"})
        assert sink.snapshots[-1]["data"]["currentProblem"] is None

    def test_toggle_current_problem(self, channel, sink):
        channel.handle_message({"command": "active-file-changed", "path": TWO_SUM_PATH})
        channel.handle_message({"command": "codequest.markSolved"})
        assert sink.snapshots[-1]["data"]["solvedKeys"] == [TWO_SUM_PATH]
        assert sink.results[-1]["message"] == "Problem marked as solved"
        assert channel.engine.solved.solved_keys().legacy == frozenset({TWO_SUM_PATH})

    def test_toggle_without_open_file(self, channel, sink):
        channel.handle_message({"command": "toggle-current-problem"})
        assert sink.snapshots == []
        assert sink.results == [{"message": "No problem file is currently open", "level": "warning"}]

    def test_open_next_unsolved(self, engine, sink):
        opened = []
        engine.problems = [parse_problem_path(TWO_SUM_PATH)]
        c = SyncChannel(engine, sink, on_open_item=opened.append)
        try:
            c.handle_message({"command": "open-next-unsolved"})
            assert opened == [TWO_SUM_PATH]
            engine.solved.toggle_solved(TWO_SUM_PATH)
            c.handle_message({"command": "codequest.openNextUnsolved"})
            assert opened == [TWO_SUM_PATH]
            assert sink.results[-1]["message"] == "All problems are solved! Great work!"
        finally:
            c.dispose()


# ---------------------------------------------------------------------------
# Refresh coalescing
# ---------------------------------------------------------------------------

class TestRefresh:
    def test_burst_yields_one_snapshot(self, channel, sink, monkeypatch):
        builds = _count_builds(monkeypatch, channel.engine)
        for _ in range(10):
            channel.handle_message({"command": "refresh"})
        assert sink.snapshots == []
        assert channel.refresh_pending
        QTest.qWait(200)
        assert len(builds) == 1
        assert len(sink.snapshots) == 1

    def test_separate_windows(self, channel, sink):
        channel.request_refresh()
        QTest.qWait(150)
        channel.request_refresh()
        QTest.qWait(150)
        assert len(sink.snapshots) == 2

    def test_dispose_cancels_pending(self, channel, sink):
        channel.request_refresh()
        channel.dispose()
        QTest.qWait(150)
        assert sink.messages == []



# ---------------------------------------------------------------------------
# Background catalog refresh
# ---------------------------------------------------------------------------

class BlockingProvider(MetadataProvider):
    """Holds the fetch open until the test releases it."""

    def __init__(self, items: List[dict]) -> None:
        self.items = items
        self.started = threading.Event()
        self.release = threading.Event()

    def fetch_items(self):
        self.started.set()
        self.release.wait(5)
        return self.items


class FailingProvider(MetadataProvider):
    def fetch_items(self):
        raise RuntimeError("connection reset")


def _wait_until(predicate, timeout_ms: int = 3000) -> bool:
    waited = 0
    while not predicate() and waited < timeout_ms:
        QTest.qWait(20)
        waited += 20
    return predicate()


def _stat(slug: str, title: str, difficulty=None) -> dict:
    return {
        "stat": {"question_title": title, "question_title_slug": slug},
        "difficulty": {"level": 1} if difficulty is None else difficulty,
    }


@pytest.fixture()
def make_channel(store, clock, bundled, sink):
    channels = []

    def make(provider=None) -> SyncChannel:
        catalog = CatalogStore(store, provider, bundled_path=bundled, clock=clock)
        c = SyncChannel(TrackerEngine(store, clock=clock, catalog=catalog), sink, debounce_ms=50)
        channels.append(c)
        return c

    yield make
    for c in channels:
        c.dispose()


class TestCatalogRefresh:
    def test_refresh_catalog(self, channel, sink):
        assert channel.refresh_catalog() is True
        assert _wait_until(lambda: sink.results)
        assert sink.results[0]["message"] == "Indexed 1 problems"
        assert _wait_until(lambda: sink.snapshots)
        assert sink.snapshots[-1]["data"]["patternStats"] == [{"pattern": "stack", "solved": 0, "total": 1}]
        assert not channel.engine.catalog.is_refreshing

    def test_second_request_while_fetching_warns(self, make_channel, sink):
        provider = BlockingProvider([_stat("two-sum", "Two Sum")])
        channel = make_channel(provider)
        try:
            assert channel.refresh_catalog() is True
            assert provider.started.wait(2)
            assert channel.engine.catalog.is_refreshing
            assert channel.refresh_catalog() is False
            assert sink.results[-1]["level"] == "warning"
            assert "already in progress" in sink.results[-1]["message"]
        finally:
            provider.release.set()
        assert _wait_until(lambda: not channel.catalog_fetch_pending)
        assert sink.results[-1]["message"] == "Indexed 1 problems"
        assert not channel.engine.catalog.is_refreshing

    def test_event_loop_runs_during_fetch(self, make_channel, sink):
        provider = BlockingProvider([_stat("two-sum", "Two Sum")])
        channel = make_channel(provider)
        try:
            channel.refresh_catalog()
            assert provider.started.wait(2)
            channel.request_refresh()
            assert _wait_until(lambda: sink.snapshots, timeout_ms=1000)
            assert channel.catalog_fetch_pending
        finally:
            provider.release.set()
        assert _wait_until(lambda: not channel.catalog_fetch_pending)

    def test_dispose_during_fetch(self, make_channel, sink):
        provider = BlockingProvider([_stat("two-sum", "Two Sum")])
        channel = make_channel(provider)
        try:
            channel.refresh_catalog()
            assert provider.started.wait(2)
            channel.dispose()
        finally:
            provider.release.set()
        assert _wait_until(lambda: not channel.catalog_fetch_pending)
        assert sink.messages == []
        assert not channel.engine.catalog.is_refreshing

    def test_malformed_record_skipped(self, make_channel, sink):
        channel = make_channel(StaticListProvider([_stat("two-sum", "Two Sum"), _stat("odd", "Odd", difficulty=2)]))
        assert channel.refresh_catalog() is True
        assert _wait_until(lambda: sink.results)
        assert sink.results[0] == {"message": "Indexed 1 problems", "level": "info"}

    def test_provider_failure_warns_and_releases(self, make_channel, sink):
        channel = make_channel(FailingProvider())
        assert channel.refresh_catalog() is True
        assert _wait_until(lambda: sink.results)
        assert sink.results[0]["level"] == "warning"
        assert "connection reset" in sink.results[0]["message"]
        assert not channel.engine.catalog.is_refreshing

    def test_no_provider(self, make_channel, sink):
        channel = make_channel()
        assert channel.refresh_catalog() is False
        assert sink.results[0]["level"] == "warning"

    def test_inbound_alias(self, channel, sink):
        channel.handle_message({"command": "codequest.refreshCatalog"})
        assert _wait_until(lambda: sink.results)
        assert sink.results[0]["message"] == "Indexed 1 problems"

    def test_get_catalog(self, channel, sink):
        channel.handle_message({"command": "get-catalog"})
        (message,) = sink.of_type("catalog-data")
        assert list(message["data"]["catalog"]) == ["arrays"]
        assert message["data"]["cache"] == {"exists": False}


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

class TestSessionCommands:
    def test_start_and_end(self, channel, sink, clock):
        channel.handle_message({"command": "start-session"})
        assert sink.snapshots[-1]["data"]["session"]["running"] is True
        clock.advance(minutes=20)
        channel.handle_message({"command": "end-session"})
        assert sink.snapshots[-1]["data"]["session"] == {"running": False, "todayMinutes": 20}
        assert sink.results[-1]["message"] == "Session ended (20 min)"

    def test_start_twice_emits_once(self, channel, sink):
        channel.start_session()
        channel.start_session()
        assert len(sink.snapshots) == 1

    def test_end_when_idle_silent(self, channel, sink):
        channel.end_session()
        assert sink.messages == []


# ---------------------------------------------------------------------------
# Preview mode
# ---------------------------------------------------------------------------

class TestPreview:
    def test_push_preview(self, channel, sink):
        assert channel.push_preview(EMPTY_WORKSPACE)
        assert [m["type"] for m in sink.messages] == ["state-snapshot", "preview-mode-toggle"]
        assert sink.messages[1]["data"] == {"enabled": True, "label": EMPTY_WORKSPACE}
        assert channel.preview_active

    def test_unknown_preset(self, channel, sink):
        assert channel.push_preview("Nope") is False
        assert sink.messages == []

    def test_state_requests_resend_preview(self, channel, sink):
        channel.push_preview(DETECTED_PROBLEM)
        preview = sink.snapshots[0]["data"]
        channel.handle_message({"command": "mark-solved", "pattern": "arrays", "slug": "two-sum"})
        assert sink.snapshots[-1]["data"] == preview

    def test_exit_preview(self, channel, sink):
        channel.push_preview(DETECTED_PROBLEM)
        channel.handle_message({"command": "request-live-state"})
        assert sink.messages[-1]["data"] == {"enabled": False, "label": ""}
        assert sink.snapshots[-1]["data"]["workspacePath"] == "No folder open"
        assert not channel.preview_active

    @pytest.mark.parametrize("name", sorted(PRESETS))
    def test_every_preset_renders(self, channel, sink, name):
        assert channel.push_preview(name)
        data = sink.snapshots[0]["data"]
        assert len(data["calendar"]["buckets"]) == 56


# ---------------------------------------------------------------------------
# Disposal
# ---------------------------------------------------------------------------

class TestDispose:
    def test_no_messages_after_dispose(self, channel, sink):
        channel.dispose()
        channel.handle_message({"command": "get-initial-state"})
        channel.post_state()
        channel.notify("hello")
        assert sink.messages == []
        assert channel.disposed

    def test_dispose_stops_session_display(self, channel):
        channel.start_session()
        channel.dispose()
        assert not channel.engine.session.display_active

    def test_dispose_twice(self, channel):
        channel.dispose()
        channel.dispose()
        assert channel.disposed
