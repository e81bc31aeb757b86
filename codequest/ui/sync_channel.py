from __future__ import annotations

import logging
from typing import Callable, Dict, List, Mapping, Optional

from PySide6.QtCore import QObject, QRunnable, QThreadPool, QTimer, Signal, Slot

from codequest.core.catalog import CatalogItem, fetch_catalog_items
from codequest.core.constants import REFRESH_DEBOUNCE_MS
from codequest.core.engine import NO_WORKSPACE, TrackerEngine
from codequest.core.errors import CatalogFetchError, CodeQuestError, ItemNotFoundError, UnknownCommandError
from codequest.core.metadata import MetadataProvider
from codequest.ui.messages import (
    InboundKind,
    InboundMessage,
    OutboundMessage,
    catalog_data,
    command_result,
    parse_inbound,
    preview_mode_toggle,
    state_snapshot,
)
from codequest.ui.preview import build_preview

logger = logging.getLogger(__name__)

Sink = Callable[[dict], None]


class DebounceTimer:
    """Single-shot timer where every ``schedule()`` restarts the countdown.

    At most one callback is ever pending.
    """

    def __init__(self, interval_ms: int, callback: Callable[[], None]) -> None:
        self._callback = callback
        self._timer = QTimer()
        self._timer.setSingleShot(True)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self._fire)

    @property
    def pending(self) -> bool:
        return self._timer.isActive()

    def schedule(self) -> None:
        self._timer.start()

    def cancel(self) -> None:
        self._timer.stop()

    def _fire(self) -> None:
        self._callback()


class CatalogFetchSignals(QObject):
    fetched = Signal(object)
    failed = Signal(object)


class CatalogFetchTask(QRunnable):
    """Fetches catalog metadata on a pool thread and reports back through signals."""

    def __init__(self, provider: MetadataProvider) -> None:
        super().__init__()
        self.setAutoDelete(False)
        self.signals = CatalogFetchSignals()
        self._provider = provider

    def run(self) -> None:
        try:
            items = fetch_catalog_items(self._provider)
        except CatalogFetchError as e:
            self.signals.failed.emit(e)
            return
        self.signals.fetched.emit(items)


class SyncChannel(QObject):
    """Keeps the dashboard surface in step with the engine.

    Inbound dashboard messages go through ``handle_message``; every logical
    mutation produces exactly one outbound ``state-snapshot``. Bursts of
    refresh triggers are coalesced by a 200 ms debounce timer. Catalog
    fetches run on a worker thread so the event loop never waits on the network.
    """

    def __init__(
        self,
        engine: TrackerEngine,
        sink: Optional[Sink] = None,
        on_open_item: Optional[Callable[[str], None]] = None,
        debounce_ms: int = REFRESH_DEBOUNCE_MS,
    ) -> None:
        super().__init__()
        self._engine = engine
        self._sink = sink
        self._on_open_item = on_open_item
        self._refresh_timer = DebounceTimer(debounce_ms, self._run_refresh)
        self._pool = QThreadPool()
        self._pool.setMaxThreadCount(1)
        self._fetch_task: Optional[CatalogFetchTask] = None
        self._preview: Optional[dict] = None
        self._preview_label = ""
        self._disposed = False

        self._handlers: Dict[InboundKind, Callable[[InboundMessage], None]] = {
            InboundKind.GET_INITIAL_STATE: lambda msg: self.post_state(),
            InboundKind.SET_FILTER: self._handle_set_filter,
            InboundKind.MARK_SOLVED: self._handle_mark_solved,
            InboundKind.OPEN_ITEM: lambda msg: self.open_item(msg.key),
            InboundKind.REFRESH: lambda msg: self.request_refresh(),
            InboundKind.REQUEST_LIVE_STATE: lambda msg: self.exit_preview(),
            InboundKind.START_SESSION: lambda msg: self.start_session(),
            InboundKind.END_SESSION: lambda msg: self.end_session(),
            InboundKind.ACTIVE_FILE_CHANGED: self._handle_active_file_changed,
            InboundKind.TOGGLE_CURRENT_PROBLEM: lambda msg: self.toggle_current_problem(),
            InboundKind.OPEN_NEXT_UNSOLVED: lambda msg: self.open_next_unsolved(),
            InboundKind.GET_CATALOG: lambda msg: self.send_catalog(),
            InboundKind.REFRESH_CATALOG: lambda msg: self.refresh_catalog(),
        }
        missing = set(InboundKind) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for inbound kinds: {sorted(k.value for k in missing)}")

    @property
    def engine(self) -> TrackerEngine:
        return self._engine

    @property
    def preview_active(self) -> bool:
        return self._preview is not None

    @property
    def preview_label(self) -> str:
        return self._preview_label

    @property
    def refresh_pending(self) -> bool:
        return self._refresh_timer.pending

    @property
    def catalog_fetch_pending(self) -> bool:
        return self._fetch_task is not None

    @property
    def disposed(self) -> bool:
        return self._disposed

    def attach(self, sink: Sink) -> None:
        self._sink = sink

    def detach(self) -> None:
        self._sink = None

    # ---------- Inbound ----------

    def handle_message(self, payload: Mapping) -> None:
        if self._disposed:
            return
        try:
            message = parse_inbound(payload)
        except UnknownCommandError as e:
            logger.warning("Ignoring dashboard message: %s", e)
            self._emit(command_result(str(e), "warning"))
            return
        try:
            self._handlers[message.kind](message)
        except CodeQuestError as e:
            logger.warning("%s failed: %s", message.kind.value, e)
            self._emit(command_result(str(e), "warning"))
        except Exception:
            logger.exception("Unexpected failure handling %s", message.kind.value)
            self._emit(command_result(f"Failed to handle {message.kind.value}", "error"))

    def _handle_set_filter(self, message: InboundMessage) -> None:
        try:
            self._engine.set_filter(message.filter)
        except ValueError as e:
            logger.warning("%s", e)
            self._emit(command_result(str(e), "warning"))
            return
        self.post_state()

    def _handle_mark_solved(self, message: InboundMessage) -> None:
        try:
            solved = self._engine.mark_solved(message.pattern, message.slug)
        except ItemNotFoundError as e:
            logger.warning("%s", e)
            self._emit(command_result(str(e), "warning"))
            return
        self.post_state()
        self._emit(command_result(f"Problem {'marked' if solved else 'unmarked'} as solved"))

    def _handle_active_file_changed(self, message: InboundMessage) -> None:
        problem = self._engine.set_current_path(message.path)
        if problem is not None:
            logger.info("Detected problem %s: %s", problem.pattern, problem.name)
        self.post_state()

    def toggle_current_problem(self) -> None:
        solved = self._engine.toggle_current_problem()
        if solved is None:
            self._emit(command_result("No problem file is currently open", "warning"))
            return
        self.post_state()
        self._emit(command_result(f"Problem {'marked' if solved else 'unmarked'} as solved"))

    def open_item(self, key: str) -> None:
        if not key:
            self._emit(command_result("Invalid problem reference", "warning"))
            return
        if self._on_open_item is None:
            logger.warning("No handler to open %s", key)
            self._emit(command_result(f"Cannot open {key}", "warning"))
            return
        self._on_open_item(key)
        self._emit(command_result(f"Open requested for {key}"))

    def open_next_unsolved(self) -> None:
        problem = self._engine.next_unsolved()
        if problem is None:
            self.notify("All problems are solved! Great work!")
            return
        self.open_item(problem.key)

    def send_catalog(self) -> None:
        catalog = self._engine.catalog
        self._emit(catalog_data(catalog.get_catalog().to_dict(), catalog.cache_info()))

    # ---------- Outbound ----------

    def post_state(self) -> None:
        """Send one snapshot. While previewing, the preview state is re-sent instead."""
        if self._preview is not None:
            self._emit(state_snapshot(self._preview))
            return
        self._emit(state_snapshot(self._engine.build_dashboard_state().to_dict()))

    def notify(self, text: str) -> None:
        self._emit(command_result(text))

    def request_refresh(self) -> None:
        """Schedule a recompute; repeated calls inside the window collapse into one."""
        if self._disposed:
            return
        self._refresh_timer.schedule()

    def _run_refresh(self) -> None:
        if self._disposed:
            return
        try:
            count = self._engine.rescan_workspace()
        except OSError as e:
            logger.warning("Workspace scan failed: %s", e)
            count = len(self._engine.problems)
        logger.debug("Refreshed dashboard, %d legacy problems", count)
        self.post_state()

    # ---------- Session ----------

    def start_session(self) -> None:
        if self._engine.session.start():
            self.post_state()
            self._emit(command_result("Session started"))

    def end_session(self) -> None:
        if not self._engine.session.running:
            return
        minutes = self._engine.session.stop()
        self.post_state()
        self._emit(command_result(f"Session ended ({minutes} min)"))

    # ---------- Catalog ----------

    def refresh_catalog(self) -> bool:
        """Start rebuilding the catalog in the background. Returns False when it could not start.

        The refresh latch stays held until the worker reports back.
        """
        if self._disposed:
            return False
        try:
            provider = self._engine.catalog.begin_refresh()
        except CodeQuestError as e:
            logger.warning("Catalog refresh failed: %s", e)
            self._emit(command_result(f"Failed to refresh catalog: {e}", "warning"))
            return False
        task = CatalogFetchTask(provider)
        task.signals.fetched.connect(self._on_catalog_fetched)
        task.signals.failed.connect(self._on_catalog_failed)
        self._fetch_task = task
        self._pool.start(task)
        return True

    @Slot(object)
    def _on_catalog_fetched(self, items: List[CatalogItem]) -> None:
        self._fetch_task = None
        if self._disposed:
            self._engine.catalog.abort_refresh()
            return
        count = self._engine.catalog.complete_refresh(items)
        self._emit(command_result(f"Indexed {count} problems"))
        self.request_refresh()

    @Slot(object)
    def _on_catalog_failed(self, error: CatalogFetchError) -> None:
        self._fetch_task = None
        self._engine.catalog.abort_refresh()
        logger.warning("Catalog refresh failed: %s", error)
        self._emit(command_result(f"Failed to refresh catalog: {error}", "warning"))

    # ---------- Preview ----------

    def push_preview(self, name: str) -> bool:
        preview = build_preview(
            name,
            installed_at=self._engine.installed_at,
            workspace_path=str(self._engine.workspace_root or NO_WORKSPACE),
            now=self._engine.clock(),
        )
        if preview is None:
            logger.warning("Unknown preview state: %s", name)
            return False
        self._preview = preview.to_dict()
        self._preview_label = name
        self._emit(state_snapshot(self._preview))
        self._emit(preview_mode_toggle(True, name))
        return True

    def exit_preview(self) -> None:
        self._preview = None
        self._preview_label = ""
        self.post_state()
        self._emit(preview_mode_toggle(False, ""))

    # ---------- Lifecycle ----------

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._refresh_timer.cancel()
        self._pool.clear()
        self._engine.dispose()
        self.detach()
        self._on_open_item = None

    def _emit(self, message: OutboundMessage) -> None:
        if self._disposed or self._sink is None:
            return
        self._sink(message.to_dict())
