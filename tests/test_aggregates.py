from __future__ import annotations

import random
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from loglens.analysis.aggregates import AggregationEngine
from loglens.analysis.holders import KeyedCells, LoginStatsHolder
from loglens.common.schema import SENTINEL_ADDRESS, Entry, EventType

T0 = datetime(2025, 9, 15, 8, 0, tzinfo=timezone.utc)


def entry(user: str, event: EventType, address: str = SENTINEL_ADDRESS, offset_s: int = 0, file_name: str | None = None) -> Entry:
    return Entry(
        timestamp=T0 + timedelta(seconds=offset_s),
        user=user,
        event=event,
        address=address,
        file_name=file_name,
    )


def test_login_success_and_failure_for_same_user() -> None:
    agg = AggregationEngine()
    agg.apply(entry("alice", EventType.LOGIN_SUCCESS, "10.0.0.1"))
    agg.apply(entry("alice", EventType.LOGIN_FAILURE, "10.0.0.1", offset_s=60))

    stats = agg.login_snapshot()["alice"]
    assert stats.success_count == 1
    assert stats.failure_count == 1
    assert stats.success_addresses == ["10.0.0.1"]
    assert stats.failure_addresses == ["10.0.0.1"]
    assert stats.last_success == T0
    assert stats.last_failure == T0 + timedelta(seconds=60)


def test_sentinel_address_is_not_recorded() -> None:
    holder = LoginStatsHolder()
    holder.record_success(SENTINEL_ADDRESS, T0)
    agg = holder.snapshot("alice")
    assert agg.success_count == 1
    assert agg.success_addresses == []


def test_last_timestamp_never_regresses() -> None:
    holder = LoginStatsHolder()
    holder.record_failure("10.0.0.1", T0 + timedelta(minutes=5))
    holder.record_failure("10.0.0.1", T0)
    assert holder.snapshot("alice").last_failure == T0 + timedelta(minutes=5)


def test_uploads_and_failure_log() -> None:
    agg = AggregationEngine()
    agg.apply(entry("alice", EventType.FILE_UPLOAD, file_name="a"))
    agg.apply(entry("alice", EventType.FILE_UPLOAD, "10.0.0.1", file_name="b"))
    agg.apply(entry("bob", EventType.FILE_DOWNLOAD, file_name="a"))
    agg.apply(entry("bob", EventType.LOGOUT))
    agg.apply(entry("bob", EventType.LOGIN_FAILURE, "10.0.0.9", offset_s=5))

    assert agg.upload_snapshot() == {"alice": 2}
    failures = agg.failure_snapshot()
    assert list(failures) == ["10.0.0.9"]
    assert [(e.timestamp, e.user) for e in failures["10.0.0.9"]] == [(T0 + timedelta(seconds=5), "bob")]
    assert "bob" in agg.login_snapshot()

    agg.clear()
    assert agg.login_snapshot() == {}
    assert agg.upload_snapshot() == {}
    assert agg.failure_snapshot() == {}


def test_keyed_cells_create_once() -> None:
    created = []

    def factory() -> list:
        cell: list = []
        created.append(cell)
        return cell

    cells: KeyedCells[str, list] = KeyedCells(factory)

    with ThreadPoolExecutor(max_workers=8) as pool:
        got = list(pool.map(lambda _: cells.get_or_create("k"), range(200)))

    assert len(created) == 1
    assert all(c is created[0] for c in got)


def test_concurrent_updates_are_exact() -> None:
    agg = AggregationEngine()
    users = [f"user{i}" for i in range(5)]
    events = []
    for i in range(2000):
        user = users[i % len(users)]
        kind = (EventType.LOGIN_SUCCESS, EventType.LOGIN_FAILURE, EventType.FILE_UPLOAD)[i % 3]
        events.append(entry(user, kind, f"10.0.0.{i % 7 + 1}", offset_s=i, file_name="f" if kind is EventType.FILE_UPLOAD else None))
    random.Random(7).shuffle(events)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(agg.apply, events))

    stats = agg.login_snapshot()
    for user in users:
        mine = [e for e in events if e.user == user]
        ok = [e for e in mine if e.event is EventType.LOGIN_SUCCESS]
        bad = [e for e in mine if e.event is EventType.LOGIN_FAILURE]
        assert stats[user].success_count == len(ok)
        assert stats[user].failure_count == len(bad)
        assert stats[user].last_success == max(e.timestamp for e in ok)
        assert stats[user].last_failure == max(e.timestamp for e in bad)

    total_failures = sum(len(v) for v in agg.failure_snapshot().values())
    assert total_failures == sum(1 for e in events if e.event is EventType.LOGIN_FAILURE)
    assert sum(agg.upload_snapshot().values()) == sum(1 for e in events if e.event is EventType.FILE_UPLOAD)
