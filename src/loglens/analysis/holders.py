from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Generic, TypeVar

from loglens.common.schema import SENTINEL_ADDRESS, LoginAggregate

K = TypeVar("K")
V = TypeVar("V")


class KeyedCells(Generic[K, V]):
    """
    Map of lazily created per-key cells.

    The map lock is only taken when a key is first seen; after that each
    cell guards its own state, so writers on different keys never contend.
    """

    def __init__(self, factory: Callable[[], V]) -> None:
        self._factory = factory
        self._cells: dict[K, V] = {}
        self._create_lock = threading.Lock()

    def get_or_create(self, key: K) -> V:
        cell = self._cells.get(key)
        if cell is not None:
            return cell
        with self._create_lock:
            cell = self._cells.get(key)
            if cell is None:
                cell = self._factory()
                self._cells[key] = cell
            return cell

    def items(self) -> list[tuple[K, V]]:
        with self._create_lock:
            return list(self._cells.items())

    def get(self, key: K) -> V | None:
        return self._cells.get(key)

    def clear(self) -> None:
        with self._create_lock:
            self._cells.clear()

    def __len__(self) -> int:
        return len(self._cells)


class CounterCell:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        return self._value


class LoginStatsHolder:
    """Thread-safe per-user login counters, address sets and last-seen times."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._success = 0
        self._failure = 0
        self._success_addrs: set[str] = set()
        self._failure_addrs: set[str] = set()
        self._last_success: datetime | None = None
        self._last_failure: datetime | None = None

    def record_success(self, address: str, ts: datetime) -> None:
        with self._lock:
            self._success += 1
            if address != SENTINEL_ADDRESS:
                self._success_addrs.add(address)
            # keep max: an older event never moves the timestamp back
            if self._last_success is None or ts > self._last_success:
                self._last_success = ts

    def record_failure(self, address: str, ts: datetime) -> None:
        with self._lock:
            self._failure += 1
            if address != SENTINEL_ADDRESS:
                self._failure_addrs.add(address)
            if self._last_failure is None or ts > self._last_failure:
                self._last_failure = ts

    def snapshot(self, user: str) -> LoginAggregate:
        with self._lock:
            return LoginAggregate(
                user=user,
                success_count=self._success,
                failure_count=self._failure,
                success_addresses=list(self._success_addrs),
                failure_addresses=list(self._failure_addrs),
                last_success=self._last_success,
                last_failure=self._last_failure,
            )


@dataclass(frozen=True)
class FailureEvent:
    timestamp: datetime
    user: str


class FailureLog:
    """Per-address failure events, in arrival order (not time order)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[FailureEvent] = []

    def append(self, ts: datetime, user: str) -> None:
        with self._lock:
            self._events.append(FailureEvent(ts, user))

    def snapshot(self) -> list[FailureEvent]:
        with self._lock:
            return list(self._events)

    def __len__(self) -> int:
        return len(self._events)
