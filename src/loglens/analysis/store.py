from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from loglens.common.schema import Entry


class ResetGate:
    """
    Shared/exclusive gate around the aggregate state.

    Parses and queries enter shared mode and run alongside each other;
    reset enters exclusive mode and waits for every shared holder to leave.
    Waiting writers block new shared entries so a reset cannot starve.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._shared = 0
        self._exclusive = False
        self._waiting = 0

    @contextmanager
    def shared(self) -> Iterator[None]:
        with self._cond:
            while self._exclusive or self._waiting:
                self._cond.wait()
            self._shared += 1
        try:
            yield
        finally:
            with self._cond:
                self._shared -= 1
                if self._shared == 0:
                    self._cond.notify_all()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        with self._cond:
            self._waiting += 1
            try:
                while self._exclusive or self._shared:
                    self._cond.wait()
            finally:
                self._waiting -= 1
            self._exclusive = True
        try:
            yield
        finally:
            with self._cond:
                self._exclusive = False
                self._cond.notify_all()


class EntryStore:
    """Append-only list of every valid Entry since the last clear."""

    def __init__(self) -> None:
        # list.append and list.copy are atomic, so writers never queue here
        self._entries: list[Entry] = []

    def append(self, entry: Entry) -> None:
        self._entries.append(entry)

    def snapshot(self) -> tuple[Entry, ...]:
        return tuple(self._entries.copy())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
