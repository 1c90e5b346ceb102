from __future__ import annotations

import threading
from typing import Any, Optional

import pytest

from studyqueue.config import RetryPolicy
from studyqueue.queue import CircuitBreaker, GeneratorError, ItemStatus, PersistenceError, RunState, WorkItem
from studyqueue.queue.retry import CIRCUIT_TRIPPED_MESSAGE, MAX_RETRIES_MESSAGE, RetryExecutor


class Recorder:
    """Applies item updates to a run state and remembers them."""

    def __init__(self, state: RunState) -> None:
        self.state = state
        self.updates: list[dict[str, Any]] = []

    def __call__(self, item_id: str, status: Optional[ItemStatus] = None, **fields: Any) -> WorkItem | None:
        idx = self.state.index_of(item_id)
        if idx == -1:
            return None
        changes = dict(fields)
        if status is not None:
            changes["status"] = status
        self.updates.append(changes)
        self.state.items[idx] = self.state.items[idx].evolve(**changes)
        return self.state.items[idx]


class Flaky:
    def __init__(self, failures: int, result: str = "ok") -> None:
        self.failures = failures
        self.result = result
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise GeneratorError(f"failure {self.calls}")
        return self.result


def _setup(policy: RetryPolicy):
    state = RunState(
        items=[WorkItem(id="a", topic="A")],
        breaker=CircuitBreaker(threshold=policy.circuit_threshold),
    )
    recorder = Recorder(state)
    delays: list[float] = []
    executor = RetryExecutor(state, recorder, policy=policy, sleep=delays.append)
    return state, recorder, delays, executor


def test_circuit_breaker_trips_at_threshold() -> None:
    breaker = CircuitBreaker(threshold=2)

    assert breaker.record_failure() is False
    breaker.record_success()
    assert breaker.consecutive_failures == 0
    assert breaker.record_failure() is False
    assert breaker.record_failure() is True
    assert breaker.is_open

    breaker.reset()
    assert breaker.is_open is False and breaker.consecutive_failures == 0


def test_success_on_first_attempt(policy: RetryPolicy) -> None:
    state, recorder, delays, executor = _setup(policy)

    assert executor.execute_with_retry("a", Flaky(0, "done")) == "done"
    assert recorder.updates == []
    assert delays == []
    assert state.consecutive_failures == 0


def test_recovers_after_transient_failures(policy: RetryPolicy) -> None:
    state, recorder, delays, executor = _setup(policy)

    assert executor.execute_with_retry("a", Flaky(2)) == "ok"

    assert delays == [4.0, 8.0]
    assert [u["retry_count"] for u in recorder.updates] == [1, 2]
    assert recorder.updates[0]["error_msg"] == "Retry 1/3: failure 1"
    assert state.consecutive_failures == 0
    assert state.items[0].retry_count == 2


def test_exhausted_retries_mark_item_error() -> None:
    policy = RetryPolicy(max_retries=3, circuit_threshold=10, base_delay=1.0, cooldown=0.0)
    state, recorder, delays, executor = _setup(policy)
    operation = Flaky(5)

    assert executor.execute_with_retry("a", operation) is None

    assert operation.calls == 3
    assert delays == [2.0, 4.0]
    item = state.items[0]
    assert item.status is ItemStatus.ERROR
    assert item.error_msg == MAX_RETRIES_MESSAGE
    assert item.retry_count == 3
    assert state.should_stop is False
    assert state.consecutive_failures == 3


def test_breaker_trip_halts_before_retries_run_out(policy: RetryPolicy) -> None:
    state, recorder, delays, executor = _setup(policy)
    state.breaker.consecutive_failures = 2

    assert executor.execute_with_retry("a", Flaky(5)) is None

    item = state.items[0]
    assert item.status is ItemStatus.ERROR
    assert item.error_msg == CIRCUIT_TRIPPED_MESSAGE
    assert item.retry_count == 1
    assert state.should_stop is True
    assert state.circuit_open is True
    assert delays == []


def test_stop_before_first_attempt_leaves_item_untouched(policy: RetryPolicy) -> None:
    state, recorder, delays, executor = _setup(policy)
    state.should_stop = True
    operation = Flaky(0)

    assert executor.execute_with_retry("a", operation) is None
    assert operation.calls == 0
    assert recorder.updates == []
    assert state.items[0].status is ItemStatus.PENDING


def test_non_generator_errors_propagate(policy: RetryPolicy) -> None:
    state, recorder, delays, executor = _setup(policy)

    def operation() -> str:
        raise PersistenceError("disk full")

    with pytest.raises(PersistenceError):
        executor.execute_with_retry("a", operation)
    assert state.consecutive_failures == 0
    assert recorder.updates == []


def test_any_operation_exception_counts_as_failed_attempt(policy: RetryPolicy) -> None:
    state, recorder, delays, executor = _setup(policy)
    calls: list[int] = []

    def operation() -> str:
        calls.append(1)
        if len(calls) == 1:
            raise TimeoutError("read timed out")
        return "ok"

    assert executor.execute_with_retry("a", operation) == "ok"
    assert recorder.updates[0] == {"retry_count": 1, "error_msg": "Retry 1/3: read timed out"}
    assert delays == [4.0]


class CountingLock:
    """Re-entrant lock that records whether it was held during breaker updates."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.depth = 0
        self.entries = 0

    def __enter__(self) -> "CountingLock":
        self._lock.acquire()
        self.depth += 1
        self.entries += 1
        return self

    def __exit__(self, *exc: object) -> None:
        self.depth -= 1
        self._lock.release()


def test_breaker_updates_happen_under_shared_lock(policy: RetryPolicy) -> None:
    lock = CountingLock()
    held: list[int] = []

    class ObservedBreaker(CircuitBreaker):
        def record_failure(self) -> bool:
            held.append(lock.depth)
            return CircuitBreaker.record_failure(self)

        def record_success(self) -> None:
            held.append(lock.depth)
            CircuitBreaker.record_success(self)

    state = RunState(items=[WorkItem(id="a", topic="A")], breaker=ObservedBreaker(threshold=2))
    executor = RetryExecutor(state, Recorder(state), policy=policy, sleep=lambda _: None, lock=lock)

    assert executor.execute_with_retry("a", Flaky(1)) == "ok"

    assert held == [1, 1]
    assert lock.entries == 2
    assert lock.depth == 0


def test_breaker_trip_sets_stop_flag_under_lock(policy: RetryPolicy) -> None:
    lock = CountingLock()
    state = RunState(items=[WorkItem(id="a", topic="A")], breaker=CircuitBreaker(threshold=1))
    executor = RetryExecutor(state, Recorder(state), policy=policy, sleep=lambda _: None, lock=lock)

    assert executor.execute_with_retry("a", Flaky(5)) is None

    assert state.should_stop is True
    assert state.circuit_open is True
    assert lock.entries == 1
