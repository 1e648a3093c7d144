"""Task execution primitives: worker pool, serialized dispatcher and timers."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, Future
from dataclasses import dataclass
from typing import Callable, Any, Optional
import queue
import threading
import time

from justplay.backend.common.errors import TaskError
from justplay.backend.common.logging import get_logger

log = get_logger(__name__)



@dataclass
class TaskSpec:
    fn: Callable[..., Any]
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = None
    retries: int = 0
    backoff_sec: float = 0.5
    name: str = "task"

    def __post_init__(self):
        if self.kwargs is None:
            self.kwargs = {}


class TaskRunner:
    """Tiny in-process task runner with retries/backoff."""
    def __init__(self, max_workers: int = 4, *, context: Optional[str] = None):
        self._context = context or "task_runner"
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers),
            thread_name_prefix=f"justplay-{self._context}",
        )
        self._closed = False
        self._lock = threading.Lock()

    def submit(self, spec: TaskSpec) -> Future:
        if self._closed:
            raise TaskError("TaskRunner is closed")

        def _wrapped():
            attempt = 0
            while True:
                try:
                    log.debug("task_start", extra={"task": spec.name, "attempt": attempt})
                    result = spec.fn(*spec.args, **spec.kwargs)
                    log.debug("task_done", extra={"task": spec.name, "attempt": attempt})
                    return result
                except Exception as e:  # noqa: BLE001
                    if attempt >= spec.retries:
                        log.error("task_fail", extra={"task": spec.name, "attempt": attempt, "error": str(e)})
                        raise
                    sleep_for = spec.backoff_sec * (2 ** attempt)
                    log.warning(
                        "task_retry",
                        extra={"task": spec.name, "attempt": attempt, "sleep_for": sleep_for, "error": str(e)},
                    )
                    time.sleep(sleep_for)
                    attempt += 1

        return self._executor.submit(_wrapped)

    def close(self, wait: bool = True) -> None:
        with self._lock:
            if not self._closed:
                self._executor.shutdown(wait=wait, cancel_futures=not wait)
                self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close(wait=True)


class SerialDispatcher:
    """FIFO of callables executed on a single owner context.

    ``post`` may be called from any thread. Queued work only runs when the
    owner calls :meth:`drain` or :meth:`run`, so everything posted here is
    serialized with the owner's own calls.
    """

    def __init__(self, name: str = "dispatcher") -> None:
        self._name = name
        self._queue: "queue.Queue[tuple[Callable[..., Any], tuple[Any, ...]]]" = queue.Queue()
        self._stopped = threading.Event()

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        self._queue.put((fn, args))

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def drain(self) -> int:
        """Run everything queued so far on the calling thread."""

        processed = 0
        while True:
            try:
                fn, args = self._queue.get_nowait()
            except queue.Empty:
                return processed
            self._invoke(fn, args)
            processed += 1

    def run(self, poll_interval: float = 0.1) -> None:
        """Block and process work until :meth:`stop` is called."""

        self._stopped.clear()
        while not self._stopped.is_set():
            try:
                fn, args = self._queue.get(timeout=poll_interval)
            except queue.Empty:
                continue
            self._invoke(fn, args)
        self.drain()

    def stop(self) -> None:
        self._stopped.set()

    def _invoke(self, fn: Callable[..., Any], args: tuple[Any, ...]) -> None:
        try:
            fn(*args)
        except Exception:  # noqa: BLE001
            log.exception("dispatch_failed", extra={"dispatcher": self._name, "callable": getattr(fn, "__name__", repr(fn))})


class PeriodicTask:
    """Invoke ``callback`` every ``interval`` seconds on a daemon thread."""

    def __init__(self, interval: float, callback: Callable[[], Any], *, name: str = "periodic") -> None:
        if interval <= 0:
            raise TaskError("PeriodicTask interval must be positive")
        self._interval = interval
        self._callback = callback
        self._name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=f"justplay-{self._name}", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._callback()
            except Exception:  # noqa: BLE001
                log.exception("periodic_task_failed", extra={"task": self._name})
