"""Application entry point and setup for the CodeQuest progress tracker."""

import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QCoreApplication, QSocketNotifier

from codequest.core.engine import TrackerEngine
from codequest.core.metadata import LeetCodeMetadataProvider
from codequest.core.storage import JsonFileStore
from codequest.core.workspace import PatternsWorkspaceScanner
from codequest.ui.sync_channel import SyncChannel
from codequest.ui.workspace_watcher import WorkspaceWatcher


def configure_logging() -> None:
    """Configure application-wide logging with a standard format."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def write_message(message: dict) -> None:
    """Dashboard sink: one JSON document per line on stdout."""
    sys.stdout.write(json.dumps(message) + "\n")
    sys.stdout.flush()


def parse_args(argv: list) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="codequest", description="Practice progress tracker")
    parser.add_argument("--workspace", type=Path, default=None, help="folder holding legacy patterns/ problems")
    parser.add_argument("--state-file", type=Path, default=None, help="override ~/.codequest/state.json")
    parser.add_argument("--refresh-catalog", action="store_true", help="rebuild the catalog from LeetCode first")
    parser.add_argument("--preview", default=None, help="push a named preview state instead of live data")
    return parser.parse_args(argv)


def run(argv: Optional[list] = None) -> None:
    """Wire the engine to a JSON-lines channel on stdin/stdout and run the event loop."""
    configure_logging()
    args = parse_args(sys.argv[1:] if argv is None else argv)
    app = QCoreApplication(sys.argv[:1])
    app.setApplicationName("CodeQuest")

    store = JsonFileStore(args.state_file)
    engine = TrackerEngine(
        store,
        provider=LeetCodeMetadataProvider(),
        scanner=PatternsWorkspaceScanner(),
        workspace_root=args.workspace,
    )
    channel = SyncChannel(
        engine,
        sink=write_message,
        on_open_item=lambda key: logging.info("Open requested: %s", key),
    )
    engine.session.set_tick_callback(
        lambda seconds: logging.debug("Session running for %d s", seconds)
    )

    if args.refresh_catalog:
        channel.refresh_catalog()
    if args.preview:
        channel.push_preview(args.preview)
    else:
        channel.request_refresh()

    if args.workspace is not None:
        watcher = WorkspaceWatcher(args.workspace, channel.request_refresh)
        app.aboutToQuit.connect(watcher.dispose)

    def read_inbound() -> None:
        line = sys.stdin.readline()
        if not line:
            notifier.setEnabled(False)
            app.quit()
            return
        line = line.strip()
        if not line:
            return
        try:
            payload = json.loads(line)
        except json.JSONDecodeError as e:
            logging.warning("Ignoring malformed inbound line: %s", e)
            return
        channel.handle_message(payload)

    notifier = QSocketNotifier(sys.stdin.fileno(), QSocketNotifier.Type.Read)
    notifier.activated.connect(read_inbound)

    signal.signal(signal.SIGINT, lambda *_: app.quit())
    app.aboutToQuit.connect(channel.dispose)

    sys.exit(app.exec())


if __name__ == "__main__":
    run()
