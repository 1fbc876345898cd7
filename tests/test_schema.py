from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from loglens.common.schema import (
    SENTINEL_ADDRESS,
    Entry,
    EventType,
    LoginAggregate,
    RankedUploader,
    SuspiciousWindow,
)

T0 = datetime(2025, 9, 15, 8, 0, tzinfo=timezone.utc)


def test_entry_normalizes_to_utc() -> None:
    naive = Entry(timestamp=datetime(2025, 9, 15, 8, 0), user="alice", event=EventType.LOGOUT, address=SENTINEL_ADDRESS)
    assert naive.timestamp == T0

    plus2 = timezone(timedelta(hours=2))
    shifted = Entry(
        timestamp=datetime(2025, 9, 15, 10, 0, tzinfo=plus2),
        user=" alice ",
        event=EventType.LOGIN_SUCCESS,
        address="10.0.0.1",
    )
    assert shifted.timestamp == T0
    assert shifted.timestamp.tzinfo == timezone.utc
    assert shifted.user == "alice"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"timestamp": None, "user": "alice", "address": "10.0.0.1"},
        {"timestamp": T0, "user": "  ", "address": "10.0.0.1"},
        {"timestamp": T0, "user": "alice", "address": ""},
    ],
)
def test_entry_rejects_invalid_construction(kwargs: dict) -> None:
    with pytest.raises(ValidationError):
        Entry(event=EventType.LOGIN_SUCCESS, **kwargs)


def test_entry_is_immutable() -> None:
    e = Entry(timestamp=T0, user="alice", event=EventType.LOGOUT, address=SENTINEL_ADDRESS)
    with pytest.raises(ValidationError):
        e.user = "bob"  # type: ignore[misc]
    assert not e.has_address


def test_event_type_tokens_are_exact() -> None:
    assert EventType.from_token("FILE_UPLOAD") is EventType.FILE_UPLOAD
    with pytest.raises(ValueError):
        EventType.from_token("file_upload")


def test_login_aggregate_sorts_addresses_and_rejects_negative() -> None:
    agg = LoginAggregate(user="alice", success_count=2, success_addresses=["10.0.0.9", "10.0.0.1"])
    assert agg.success_addresses == ["10.0.0.1", "10.0.0.9"]
    assert agg.last_failure is None
    with pytest.raises(ValidationError):
        LoginAggregate(user="alice", failure_count=-1)


def _window(**over) -> dict:
    ts = [T0 + timedelta(seconds=30 * i) for i in range(4)]
    base = {
        "address": "203.0.113.7",
        "start": ts[0],
        "end": ts[-1],
        "failure_count": 4,
        "timestamps": ts,
        "users": ["a", "b", "c", "d"],
    }
    base.update(over)
    return base


def test_suspicious_window_valid() -> None:
    w = SuspiciousWindow(**_window())
    assert w.failure_count == len(w.timestamps) == len(w.users) == 4


@pytest.mark.parametrize(
    "over",
    [
        {"failure_count": 3, "timestamps": [T0] * 3, "users": ["a"] * 3},
        {"start": T0 + timedelta(hours=1)},
        {"users": ["a", "b", "c"]},
        {"timestamps": [T0] * 5},
        {"address": " "},
    ],
)
def test_suspicious_window_invariants(over: dict) -> None:
    with pytest.raises(ValidationError):
        SuspiciousWindow(**_window(**over))


def test_ranked_uploader_validation() -> None:
    assert RankedUploader(user="alice", upload_count=0).upload_count == 0
    with pytest.raises(ValidationError):
        RankedUploader(user="alice", upload_count=-1)
    with pytest.raises(ValidationError):
        RankedUploader(user="", upload_count=1)
