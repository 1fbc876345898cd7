from __future__ import annotations

import re
from datetime import datetime
from typing import IO, Iterable, Iterator, Union

from pydantic import ValidationError

from loglens.common.errors import StreamReadError
from loglens.common.schema import SENTINEL_ADDRESS, Entry, EventType, to_utc

FIELD_SEP = re.compile(r"\s*\|\s*")

IP_PREFIX = "IP="
FILE_PREFIX = "FILE="

LineSource = Union[IO[str], IO[bytes], Iterable[Union[str, bytes]]]


class LineError(ValueError):
    """A single line was rejected. `reason` is a short classification."""

    def __init__(self, reason: str, detail: str) -> None:
        super().__init__(f"{reason}: {detail}")
        self.reason = reason
        self.detail = detail


# Extended-format instant: 2025-09-15T08:00:00[.fraction][Z|±HH:MM]; no offset means UTC
ISO_INSTANT = re.compile(
    r"(?P<date>\d{4}-\d{2}-\d{2})T(?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d{1,9}))?"
    r"(?P<tz>[Zz]|[+-]\d{2}:\d{2})?",
    re.ASCII,
)


def parse_ts(ts: str) -> datetime:
    m = ISO_INSTANT.fullmatch(ts)
    if not m:
        raise LineError("timestamp", f"invalid timestamp {ts!r}")
    # fraction is cut to microseconds so every interpreter reads the same value
    frac = (m.group("frac") or "")[:6].ljust(6, "0")
    tz = m.group("tz") or "+00:00"
    if tz in ("Z", "z"):
        tz = "+00:00"
    try:
        return to_utc(datetime.fromisoformat(f"{m.group('date')}T{m.group('time')}.{frac}{tz}"))
    except ValueError:
        raise LineError("timestamp", f"invalid timestamp {ts!r}") from None


def split_fields(line: str) -> list[str]:
    parts = FIELD_SEP.split(line.strip())
    # trailing empty fields ("... | LOGOUT |") carry nothing
    while parts and parts[-1] == "":
        parts.pop()
    return parts


def _value(field: str, prefix: str, what: str) -> str:
    value = field[len(prefix):].strip()
    if not value:
        raise LineError(what, f"empty {prefix} value")
    return value


def _event_fields(event: EventType, parts: list[str]) -> tuple[str, str | None]:
    """Return (address, file_name) for the trailing fields of one event type."""
    n = len(parts)

    if event in (EventType.LOGIN_SUCCESS, EventType.LOGIN_FAILURE):
        if n > 3 and parts[3].startswith(IP_PREFIX):
            return _value(parts[3], IP_PREFIX, "address"), None
        raise LineError("address", f"{event.value} requires IP=<addr>")

    if event is EventType.FILE_UPLOAD:
        if n == 4 and parts[3].startswith(FILE_PREFIX):
            return SENTINEL_ADDRESS, _value(parts[3], FILE_PREFIX, "file")
        if n > 4 and parts[3].startswith(IP_PREFIX):
            if not parts[4].startswith(FILE_PREFIX):
                raise LineError("file", "FILE_UPLOAD expects FILE=<name> after IP=<addr>")
            return _value(parts[3], IP_PREFIX, "address"), _value(parts[4], FILE_PREFIX, "file")
        raise LineError("file", "FILE_UPLOAD requires FILE=<name>")

    if event is EventType.FILE_DOWNLOAD:
        if n == 4 and parts[3].startswith(FILE_PREFIX):
            return SENTINEL_ADDRESS, _value(parts[3], FILE_PREFIX, "file")
        raise LineError("file", "FILE_DOWNLOAD takes exactly FILE=<name>")

    # LOGOUT
    if n > 3:
        raise LineError("extra_fields", "LOGOUT takes no extra fields")
    return SENTINEL_ADDRESS, None


def parse_line(line: str) -> Entry | None:
    """
    Parse one wire line into an Entry.

    Returns None for a blank line. Raises LineError for anything else that
    does not match the grammar:

        <ISO-8601> | <user> | <EVENT> [| IP=<addr>] [| FILE=<name>]
    """
    if not line.strip():
        return None

    parts = split_fields(line)
    if len(parts) < 3:
        raise LineError("field_count", f"expected at least 3 fields, got {len(parts)}")

    timestamp = parse_ts(parts[0])
    try:
        event = EventType.from_token(parts[2])
    except ValueError as e:
        raise LineError("event", str(e)) from None

    address, file_name = _event_fields(event, parts)

    try:
        return Entry(
            timestamp=timestamp,
            user=parts[1],
            event=event,
            address=address,
            file_name=file_name,
        )
    except ValidationError as e:
        msg = "; ".join(err["msg"] for err in e.errors())
        raise LineError("validation", msg) from None


def iter_lines(source: LineSource, encoding: str = "utf-8") -> Iterator[tuple[int, str]]:
    """
    Yield (line_number, text) from a text stream, a binary stream or any
    iterable of lines. Read and decode failures surface as StreamReadError.
    """
    it = iter(source)
    line_no = 0
    while True:
        try:
            raw = next(it)
        except StopIteration:
            return
        except (OSError, UnicodeDecodeError) as e:
            raise StreamReadError(f"error reading input after line {line_no}: {e}", line_number=line_no) from e

        line_no += 1
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = raw.decode(encoding)
            except UnicodeDecodeError as e:
                raise StreamReadError(f"cannot decode line {line_no}: {e}", line_number=line_no) from e
        yield line_no, raw.rstrip("\r\n")
