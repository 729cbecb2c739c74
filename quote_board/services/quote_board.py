from __future__ import annotations

import threading
import time
from typing import Callable

from quote_board.errors import FETCH_ERROR_MESSAGE, RefreshInProgressError
from quote_board.schemas.quote import BoardStatus, Quote, Snapshot, ViewState
from quote_board.services.quote_fetcher import QuoteFetcher
from quote_board.services.view_projection import ViewProjection, project

SnapshotListener = Callable[[Snapshot], None]
ErrorListener = Callable[[str], None]


class QuoteBoard:
    """Owns the current snapshot, runs fetch cycles one at a time and
    feeds the view projection.

    A refresh requested while a cycle is in flight is rejected. Each cycle
    carries a generation number; its result is published only if that
    generation is still the active one when it completes. On a hard
    failure the last good snapshot stays in place.
    """

    def __init__(
        self,
        fetcher: QuoteFetcher,
        *,
        on_snapshot_ready: SnapshotListener | None = None,
        on_fetch_error: ErrorListener | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.projection = ViewProjection()
        self._lock = threading.Lock()
        self._notify_lock = threading.RLock()
        self._published_generation = 0
        self._generation = 0
        self._active_generation: int | None = None
        self._cancel_event: threading.Event | None = None
        self._worker: threading.Thread | None = None
        self._workers: set[threading.Thread] = set()
        self._snapshot: Snapshot | None = None
        self._error: str | None = None
        self._last_success_ts: int | None = None
        self._snapshot_listeners: list[SnapshotListener] = []
        self._error_listeners: list[ErrorListener] = []
        self.subscribe(on_snapshot_ready=on_snapshot_ready, on_fetch_error=on_fetch_error)

        self.refreshes_rejected = 0
        self.snapshots_published = 0
        self.errors_published = 0
        self.stale_discards = 0

    def subscribe(
        self,
        *,
        on_snapshot_ready: SnapshotListener | None = None,
        on_fetch_error: ErrorListener | None = None,
    ) -> None:
        if on_snapshot_ready is not None:
            self._snapshot_listeners.append(on_snapshot_ready)
        if on_fetch_error is not None:
            self._error_listeners.append(on_fetch_error)

    @property
    def snapshot(self) -> Snapshot | None:
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._generation

    def _begin_cycle(self) -> tuple[int, threading.Event] | None:
        with self._lock:
            if self._active_generation is not None:
                self.refreshes_rejected += 1
                print(
                    f"[QUOTE][refresh_rejected] active_generation={self._active_generation}",
                    flush=True,
                )
                return None
            self._generation += 1
            self._active_generation = self._generation
            self._cancel_event = threading.Event()
            return self._generation, self._cancel_event

    def _end_cycle(
        self,
        generation: int,
        cancel_event: threading.Event,
        snapshot: Snapshot | None = None,
        failed: bool = False,
    ) -> bool:
        """Release the in-flight slot and publish the outcome in one step.

        Returns True if this cycle was still the active one and its result
        (snapshot or error) was written.
        """
        with self._lock:
            current = self._active_generation == generation
            if current:
                self._active_generation = None
                self._cancel_event = None
            if not current or cancel_event.is_set():
                self.stale_discards += 1
                print(f"[QUOTE][cycle_stale_discard] generation={generation}", flush=True)
                return False
            if failed:
                self._error = FETCH_ERROR_MESSAGE
                self._published_generation = generation
                self.errors_published += 1
                return True
            if snapshot is None:
                return False
            self._snapshot = snapshot
            self._published_generation = generation
            self._error = None
            self._last_success_ts = int(time.time())
            self.snapshots_published += 1
            self.projection.set_snapshot(snapshot)
            return True

    def _notify(self, generation: int, listeners: list, value) -> None:
        with self._notify_lock:
            # a newer cycle already published; its listeners got the newer value
            if self._published_generation != generation:
                return
            self._call_listeners(listeners, value)

    def _call_listeners(self, listeners: list, value) -> None:
        for listener in list(listeners):
            try:
                listener(value)
            except Exception as exc:
                print(f"[QUOTE][listener_error] listener={listener!r} error={exc}", flush=True)

    def _run_cycle(self, generation: int, cancel_event: threading.Event) -> Snapshot | None:
        try:
            snapshot = self.fetcher.fetch_all(generation=generation, cancel_event=cancel_event)
        except Exception as exc:
            print(f"[QUOTE][cycle_failed] generation={generation} error={exc!r}", flush=True)
            if self._end_cycle(generation, cancel_event, failed=True):
                self._notify(generation, self._error_listeners, FETCH_ERROR_MESSAGE)
            return None

        if not self._end_cycle(generation, cancel_event, snapshot=snapshot):
            return None
        self._notify(generation, self._snapshot_listeners, snapshot)
        return snapshot

    def _run_worker(self, generation: int, cancel_event: threading.Event) -> None:
        try:
            self._run_cycle(generation, cancel_event)
        finally:
            with self._lock:
                self._workers.discard(threading.current_thread())

    def trigger_refresh(self) -> bool:
        """Start a background fetch cycle. False if one is already running."""
        started = self._begin_cycle()
        if started is None:
            return False
        generation, cancel_event = started
        worker = threading.Thread(
            target=self._run_worker,
            args=(generation, cancel_event),
            daemon=True,
            name=f"quote-fetch-{generation}",
        )
        print(f"[BOARD][fetch_worker_start] thread={worker.name}", flush=True)
        worker.start()
        with self._lock:
            self._worker = worker
            self._workers.add(worker)
        return True

    def refresh_now(self) -> Snapshot | None:
        """Run one cycle on the calling thread."""
        started = self._begin_cycle()
        if started is None:
            raise RefreshInProgressError("REFRESH_IN_PROGRESS")
        return self._run_cycle(*started)

    def cancel(self) -> bool:
        """Stop the in-flight cycle; its result, if any, is dropped."""
        with self._lock:
            if self._active_generation is None or self._cancel_event is None:
                return False
            self._cancel_event.set()
            self._active_generation = None
            self._cancel_event = None
            return True

    def live_workers(self) -> list[threading.Thread]:
        with self._lock:
            self._workers = {w for w in self._workers if w.is_alive()}
            return list(self._workers)

    def wait(self, timeout: float | None = None) -> bool:
        """Join every worker still running, cancelled ones included."""
        deadline = None if timeout is None else time.monotonic() + timeout
        workers = self.live_workers()
        for worker in workers:
            remaining = None if deadline is None else max(deadline - time.monotonic(), 0.0)
            worker.join(timeout=remaining)
        return not any(worker.is_alive() for worker in workers)

    def shutdown(self, timeout: float = 1.0) -> None:
        workers = self.live_workers()
        self.cancel()
        self.wait(timeout)
        for worker in workers:
            state = "alive" if worker.is_alive() else "stopped"
            print(f"[BOARD][fetch_worker_stop] thread={worker.name} state={state}", flush=True)

    def set_search_text(self, search_text: str) -> list[Quote]:
        with self._lock:
            self.projection.set_search_text(search_text)
            return self.projection.rows()

    def set_sort_key(self, sort_key: str) -> list[Quote]:
        with self._lock:
            self.projection.set_sort_key(sort_key)
            return self.projection.rows()

    def view_state(self) -> ViewState:
        return self.projection.state

    def view(self, search_text: str | None = None, sort_key: str | None = None) -> list[Quote]:
        with self._lock:
            if search_text is None and sort_key is None:
                return self.projection.rows()
            state = self.projection.state
            return project(
                self.projection.snapshot,
                state.search_text if search_text is None else search_text,
                state.sort_key if sort_key is None else sort_key,
            )

    def status(self) -> BoardStatus:
        with self._lock:
            return BoardStatus(
                loading=self._active_generation is not None,
                generation=self._generation,
                error=self._error,
                last_success_ts=self._last_success_ts,
                snapshot_size=len(self._snapshot.quotes) if self._snapshot is not None else 0,
            )

    def metrics(self) -> dict:
        out = self.fetcher.metrics()
        out.update(self.fetcher.spacer.metrics())
        out.update(
            {
                "generation": self._generation,
                "refreshes_rejected": self.refreshes_rejected,
                "snapshots_published": self.snapshots_published,
                "errors_published": self.errors_published,
                "stale_discards": self.stale_discards,
            }
        )
        return out
