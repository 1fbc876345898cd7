from __future__ import annotations

from loglens.analysis.holders import CounterCell, FailureEvent, FailureLog, KeyedCells, LoginStatsHolder
from loglens.common.schema import Entry, EventType, LoginAggregate


class AggregationEngine:
    """
    Running views over every Entry applied since the last clear():

    - per-user login statistics
    - per-user upload counts
    - per-address failure events (input to the suspicious-activity scan)

    Consistency: each snapshot method copies one key at a time. Values for
    different keys may come from slightly different moments while parses
    are still running; a single user's aggregate is copied under that
    user's own lock.
    """

    def __init__(self) -> None:
        self.logins: KeyedCells[str, LoginStatsHolder] = KeyedCells(LoginStatsHolder)
        self.uploads: KeyedCells[str, CounterCell] = KeyedCells(CounterCell)
        self.failures: KeyedCells[str, FailureLog] = KeyedCells(FailureLog)

    def apply(self, entry: Entry) -> None:
        ev = entry.event
        if ev is EventType.LOGIN_SUCCESS:
            self.logins.get_or_create(entry.user).record_success(entry.address, entry.timestamp)
        elif ev is EventType.LOGIN_FAILURE:
            self.logins.get_or_create(entry.user).record_failure(entry.address, entry.timestamp)
            self.failures.get_or_create(entry.address).append(entry.timestamp, entry.user)
        elif ev is EventType.FILE_UPLOAD:
            self.uploads.get_or_create(entry.user).increment()
        # FILE_DOWNLOAD, LOGOUT: stored only

    def login_snapshot(self) -> dict[str, LoginAggregate]:
        return {user: holder.snapshot(user) for user, holder in self.logins.items()}

    def upload_snapshot(self) -> dict[str, int]:
        return {user: cell.value for user, cell in self.uploads.items() if cell.value > 0}

    def failure_snapshot(self) -> dict[str, list[FailureEvent]]:
        return {addr: log.snapshot() for addr, log in self.failures.items()}

    def clear(self) -> None:
        self.logins.clear()
        self.uploads.clear()
        self.failures.clear()
