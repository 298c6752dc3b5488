# groovelib/notifier.py
import asyncio
import json
import os
from typing import Awaitable, Callable, List, NamedTuple, Optional

from watchfiles import awatch

from groovelib.config import Settings
from groovelib.logs import get_request_id, log_event, serialize_error
from groovelib.paths import workspace_poll_targets, workspace_watch_targets

EVENTS_ROUTE = "api.groove.events"
EVENT_KIND = "filesystem"
KEEPALIVE_COMMENT = ": keepalive\n\n"
DISCONNECT_CHECK_INTERVAL = 0.5


class SnapshotEntry(NamedTuple):
    exists: bool
    mtime_ns: int


def take_snapshot(path: str) -> SnapshotEntry:
    try:
        st = os.stat(path)
    except OSError:
        return SnapshotEntry(False, 0)
    return SnapshotEntry(True, st.st_mtime_ns)


def format_sse_event(event_type: str, payload) -> str:
    return f"event: {event_type}\ndata: {json.dumps(payload, separators=(',', ':'))}\n\n"


class WorkspaceChangeStream:
    """One server-push connection watching a resolved workspace root.

    Two producers feed a single queue: one native watch (watchfiles) over
    every existing target and a snapshot poller. A heartbeat task writes
    keepalive comments into the same queue. All state lives on the instance
    and is released by close(). Passing watcher=None leaves the polling
    channel as the only producer.
    """

    def __init__(
        self,
        workspace_root: str,
        known_worktrees=(),
        request_id: Optional[str] = None,
        settings: Optional[Settings] = None,
        watcher=awatch,
        route: str = EVENTS_ROUTE,
    ):
        self.workspace_root = workspace_root
        self.known_worktrees = list(known_worktrees)
        self.request_id = request_id or get_request_id()
        self.settings = settings or Settings()
        self.route = route
        self._watcher = watcher

        self.watch_targets = workspace_watch_targets(workspace_root, self.known_worktrees)
        self.poll_targets = workspace_poll_targets(workspace_root, self.known_worktrees)

        self.closed = False
        self.close_reason: Optional[str] = None
        self.event_counter = 0
        self.watcher_setup_success_count = 0
        self.watcher_setup_failure_count = 0
        self.watcher_error_count = 0
        self.poll_change_count = 0
        self.fallback_event_count = 0

        self._queue: asyncio.Queue = asyncio.Queue()
        self._snapshots = {}
        self._watched = []
        self._tasks: List[asyncio.Task] = []
        self._teardown: List[Callable[[], None]] = []
        self._stop_event = asyncio.Event()
        self._teardown.append(self._stop_event.set)

    def _log(self, level, event, **details):
        log_event(level, self.route, self.request_id, event, **details)

    def add_teardown(self, callback: Callable[[], None]) -> None:
        self._teardown.append(callback)

    def _spawn(self, coro, name):
        task = asyncio.get_running_loop().create_task(coro, name=name)
        task.add_done_callback(self._on_task_done)
        self._tasks.append(task)
        self._teardown.append(task.cancel)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._log("error", "stream.task.failed", task=task.get_name(), error=serialize_error(error))
            self.close("internal-error")

    def emit(self, source: str) -> None:
        """Queue one workspace-change event; a no-op once the stream is closed."""
        if self.closed:
            return
        self.event_counter += 1
        self._queue.put_nowait(
            format_sse_event(
                "workspace-change",
                {"index": self.event_counter, "source": source, "kind": EVENT_KIND},
            )
        )
        if self.event_counter <= 3 or self.event_counter % 25 == 0:
            self._log("debug", "stream.event.emitted", source=source, eventCounter=self.event_counter)

    async def start(self, is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None) -> None:
        """Announce the root and launch heartbeat, watchers, poller and disconnect listener."""
        self._log(
            "info",
            "stream.open",
            workspaceRoot=self.workspace_root,
            watchTargets=len(self.watch_targets),
            pollTargets=len(self.poll_targets),
        )
        self._queue.put_nowait(
            format_sse_event(
                "ready",
                {"requestId": self.request_id, "workspaceRoot": self.workspace_root, "kind": EVENT_KIND},
            )
        )

        self._spawn(self._keepalive_loop(), "keepalive")

        if self._watcher is not None:
            self._watched = [t for t in self.watch_targets if self._register_watch(t)]
            if self._watched:
                self._spawn(self._watch(), "watch")

        self.snapshot_all()
        self._spawn(self._poll_loop(), "poll")

        if is_disconnected is not None:
            if await is_disconnected():
                self.close("already-aborted")
                return
            self._spawn(self._listen_for_disconnect(is_disconnected), "disconnect-listener")

    def _register_watch(self, target) -> bool:
        # Watching a missing path fails; that target then relies on polling.
        if not os.path.exists(target.path):
            self.watcher_setup_failure_count += 1
            self._log(
                "warn",
                "watcher.setup.failed",
                label=target.label,
                targetPath=target.path,
                filterName=target.filter_name,
                mode="watchfiles",
                error={"name": "FileNotFoundError", "message": f"no such path: {target.path}"},
            )
            return False
        self.watcher_setup_success_count += 1
        self._log(
            "debug",
            "watcher.setup",
            label=target.label,
            targetPath=target.path,
            filterName=target.filter_name,
            mode="watchfiles",
        )
        return True

    def labels_for_change(self, path: str) -> List[str]:
        """Labels of the registered targets a changed path belongs to."""
        parent, name = os.path.split(path)
        labels = []
        for target in self._watched:
            if target.path == parent:
                if target.filter_name is None or target.filter_name == name:
                    labels.append(target.label)
            elif target.path == path and target.filter_name is None:
                labels.append(target.label)
        return labels

    def _watch_filter(self, change, path) -> bool:
        return bool(self.labels_for_change(path))

    async def _watch(self) -> None:
        paths = list(dict.fromkeys(target.path for target in self._watched))
        try:
            async for changes in self._watcher(
                *paths,
                watch_filter=self._watch_filter,
                stop_event=self._stop_event,
                recursive=False,
            ):
                for change, path in sorted(changes, key=lambda c: c[1]):
                    for label in self.labels_for_change(path):
                        self.emit(f"{label}:{change.name}")
        except Exception as e:
            self.watcher_error_count += 1
            self._log("warn", "watcher.error", targetPaths=paths, error=serialize_error(e))
            for label in dict.fromkeys(target.label for target in self._watched):
                self.fallback_event_count += 1
                self.emit(f"{label}:watch-error")

    def snapshot_all(self) -> None:
        for target in self.poll_targets:
            self._snapshots[target] = take_snapshot(target)

    def poll_once(self) -> int:
        """Re-snapshot every poll target; emit one event per changed target."""
        changed = 0
        for target in self.poll_targets:
            if self.closed:
                break
            previous = self._snapshots.get(target, SnapshotEntry(False, 0))
            current = take_snapshot(target)
            if current != previous:
                self._snapshots[target] = current
                changed += 1
                self.poll_change_count += 1
                self.fallback_event_count += 1
                self._log(
                    "debug",
                    "poll.change-detected",
                    target=os.path.basename(target),
                    pollChangeCount=self.poll_change_count,
                )
                self.emit(f"poll:{os.path.basename(target)}")
        return changed

    async def _poll_loop(self) -> None:
        while not self.closed:
            await asyncio.sleep(self.settings.poll_interval)
            if self.closed:
                return
            try:
                self.poll_once()
            except Exception as e:
                self._log("error", "poll.exception", error=serialize_error(e))

    async def _keepalive_loop(self) -> None:
        while not self.closed:
            await asyncio.sleep(self.settings.keepalive_interval)
            if not self.closed:
                self._queue.put_nowait(KEEPALIVE_COMMENT)

    async def _listen_for_disconnect(self, is_disconnected) -> None:
        while not self.closed:
            await asyncio.sleep(DISCONNECT_CHECK_INTERVAL)
            if await is_disconnected():
                self.close("request-aborted")
                return

    def close(self, reason: str) -> None:
        """Tear everything down once; later calls are ignored."""
        if self.closed:
            return
        self.closed = True
        self.close_reason = reason

        for teardown in self._teardown:
            try:
                teardown()
            except Exception as e:
                self._log("debug", "stream.teardown.failed", error=serialize_error(e))

        self._log(
            "info",
            "stream.close",
            reason=reason,
            emittedEvents=self.event_counter,
            watcherSetupSuccessCount=self.watcher_setup_success_count,
            watcherSetupFailureCount=self.watcher_setup_failure_count,
            watcherErrorCount=self.watcher_error_count,
            pollChangeCount=self.poll_change_count,
            fallbackEventCount=self.fallback_event_count,
        )
        self._queue.put_nowait(None)

    async def events(self):
        """Yield encoded SSE chunks until the stream closes."""
        try:
            while True:
                chunk = await self._queue.get()
                if chunk is None:
                    return
                yield chunk
        finally:
            self.close("consumer-closed")
