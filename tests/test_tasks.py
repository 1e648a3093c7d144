# tests/test_tasks.py
import threading

import pytest

from justplay.backend.common.errors import TaskError
from justplay.backend.common.tasks import PeriodicTask, SerialDispatcher, TaskRunner, TaskSpec


def test_dispatcher_runs_posted_work_in_order_on_drain():
    dispatcher = SerialDispatcher("t")
    seen = []
    dispatcher.post(seen.append, 1)
    dispatcher.post(seen.append, 2)

    assert seen == []
    assert dispatcher.pending == 2
    assert dispatcher.drain() == 2
    assert seen == [1, 2]


def test_dispatcher_survives_failing_callable():
    dispatcher = SerialDispatcher("t")
    seen = []

    def _boom():
        raise RuntimeError("nope")

    dispatcher.post(_boom)
    dispatcher.post(seen.append, "after")

    assert dispatcher.drain() == 2
    assert seen == ["after"]


def test_dispatcher_accepts_posts_from_other_threads():
    dispatcher = SerialDispatcher("t")
    seen = []
    workers = [threading.Thread(target=dispatcher.post, args=(seen.append, i)) for i in range(5)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join()

    dispatcher.drain()
    assert sorted(seen) == list(range(5))


def test_dispatcher_run_stops_from_posted_work():
    dispatcher = SerialDispatcher("t")
    seen = []
    dispatcher.post(seen.append, "a")
    dispatcher.post(dispatcher.stop)

    dispatcher.run(poll_interval=0.01)

    assert seen == ["a"]


def test_task_runner_retries_then_succeeds():
    attempts = []

    def _flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ValueError("transient")
        return "ok"

    with TaskRunner(max_workers=1, context="test") as runner:
        future = runner.submit(TaskSpec(fn=_flaky, retries=2, backoff_sec=0.0, name="flaky"))
        assert future.result(timeout=5) == "ok"
    assert len(attempts) == 3


def test_task_runner_propagates_final_failure():
    def _fail():
        raise ValueError("always")

    with TaskRunner(max_workers=1) as runner:
        future = runner.submit(TaskSpec(fn=_fail, retries=1, backoff_sec=0.0))
        with pytest.raises(ValueError):
            future.result(timeout=5)


def test_closed_runner_rejects_work():
    runner = TaskRunner(max_workers=1)
    runner.close()

    with pytest.raises(TaskError):
        runner.submit(TaskSpec(fn=lambda: None))


def test_periodic_task_requires_positive_interval():
    with pytest.raises(TaskError):
        PeriodicTask(0, lambda: None)


def test_periodic_task_fires_until_stopped():
    fired = threading.Event()
    task = PeriodicTask(0.01, fired.set, name="tick")

    task.start()
    assert fired.wait(timeout=5)
    task.stop(timeout=5)

    assert not task.running
