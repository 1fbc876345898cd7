from __future__ import annotations

import logging
import threading
from collections import Counter
from datetime import datetime, timezone

from loglens.analysis.aggregates import AggregationEngine
from loglens.analysis.detect import RepeatedFailureRule
from loglens.analysis.parser import LineError, LineSource, iter_lines, parse_line
from loglens.analysis.rank import check_limit, top_uploaders
from loglens.analysis.store import EntryStore, ResetGate
from loglens.common.config import AnalysisCfg
from loglens.common.errors import ExportError, StreamReadError
from loglens.common.schema import (
    Entry,
    ExportReport,
    LoginAggregate,
    ParseResult,
    RankedUploader,
    SuspiciousWindow,
)

log = logging.getLogger("loglens.analyzer")


class LogAnalyzer:
    """
    Owns all in-memory state: the entry store, the three aggregate views
    and the process-wide error counter.

    parse() and the query methods may run from many threads at once.
    reset() waits for them to finish and blocks new ones until the state
    is fully cleared.
    """

    def __init__(self, cfg: AnalysisCfg | None = None) -> None:
        self.cfg = cfg or AnalysisCfg()
        self.store = EntryStore()
        self.aggregates = AggregationEngine()
        self.rule = RepeatedFailureRule(
            threshold=self.cfg.failure_threshold,
            window_s=self.cfg.window_seconds,
        )
        self._gate = ResetGate()
        self._errors = 0
        self._errors_lock = threading.Lock()

    # --- writes ---

    def parse(self, source: LineSource, *, name: str = "<stream>") -> ParseResult:
        """
        Parse a stream of wire lines, storing and aggregating each valid one.

        Bad lines are counted and skipped. A failure reading the stream
        raises StreamReadError; entries parsed before it stay stored.
        """
        entries: list[Entry] = []
        errors = 0
        by_event: Counter[str] = Counter()
        log.info("parse start source=%s", name)

        with self._gate.shared():
            try:
                for line_no, line in iter_lines(source, encoding=self.cfg.encoding):
                    if line_no % self.cfg.progress_every == 0:
                        log.info(
                            "source=%s parsed %d lines so far, entries=%d errors=%d",
                            name,
                            line_no,
                            len(entries),
                            errors,
                        )
                    try:
                        entry = parse_line(line)
                    except LineError as e:
                        errors += 1
                        log.warning("source=%s line=%d rejected (%s): %s", name, line_no, e, line)
                        continue
                    if entry is None:
                        continue

                    self._accept(entry)
                    entries.append(entry)
                    by_event[entry.event.value] += 1
            except StreamReadError:
                log.error("source=%s aborted after entries=%d errors=%d", name, len(entries), errors)
                raise
            finally:
                self._add_errors(errors)

        log.info("source=%s event breakdown: %s", name, dict(by_event))
        log.info(
            "source=%s parsed=%d errors=%d total_stored=%d",
            name,
            len(entries),
            errors,
            len(self.store),
        )
        return ParseResult(entries=entries, errors=errors)

    def add_entry(self, entry: Entry) -> None:
        """Store and aggregate an Entry built outside the parser."""
        with self._gate.shared():
            self._accept(entry)

    def reset(self) -> None:
        with self._gate.exclusive():
            self.store.clear()
            self.aggregates.clear()
            with self._errors_lock:
                self._errors = 0
        log.info("state cleared")

    def _accept(self, entry: Entry) -> None:
        self.store.append(entry)
        self.aggregates.apply(entry)

    def _add_errors(self, n: int) -> None:
        if n:
            with self._errors_lock:
                self._errors += n

    # --- reads ---

    def entries(self) -> tuple[Entry, ...]:
        with self._gate.shared():
            return self.store.snapshot()

    def entry_count(self) -> int:
        with self._gate.shared():
            return len(self.store)

    def error_count(self) -> int:
        with self._gate.shared():
            return self._errors

    def parse_result(self) -> dict[str, int]:
        with self._gate.shared():
            stored = len(self.store)
            errors = self._errors
        return {"errors": errors, "processed": stored + errors, "total_stored": stored}

    def login_counts(self, user: str | None = None) -> dict[str, LoginAggregate]:
        """All users' login aggregates, or just `user`'s; empty when none match."""
        with self._gate.shared():
            return self._login_counts(user)

    def _login_counts(self, user: str | None = None) -> dict[str, LoginAggregate]:
        if user is not None and user.strip():
            holder = self.aggregates.logins.get(user.strip())
            return {user.strip(): holder.snapshot(user.strip())} if holder else {}
        stats = self.aggregates.login_snapshot()
        log.debug("login stats for %d users", len(stats))
        return stats

    def top_uploaders(self, limit: int) -> list[RankedUploader]:
        check_limit(limit)
        with self._gate.shared():
            counts = self.aggregates.upload_snapshot()
        return top_uploaders(counts, limit)

    def total_users_with_uploads(self) -> int:
        with self._gate.shared():
            return len(self.aggregates.upload_snapshot())

    def suspicious_activity(self) -> list[SuspiciousWindow]:
        with self._gate.shared():
            failures = self.aggregates.failure_snapshot()
        return self.rule.scan(failures)

    def export(self, limit: int | None = None) -> ExportReport:
        limit = check_limit(limit if limit is not None else self.cfg.default_top_limit)
        with self._gate.shared():
            total = len(self.store)
            logins = self._login_counts()
            uploads = self.aggregates.upload_snapshot()
            failures = self.aggregates.failure_snapshot()
        return ExportReport(
            exported_at=datetime.now(timezone.utc).replace(microsecond=0),
            total_entries=total,
            login_statistics=logins,
            top_uploaders=top_uploaders(uploads, limit),
            suspicious_activity=self.rule.scan(failures),
        )

    def export_json(self, limit: int | None = None) -> bytes:
        report = self.export(limit)
        try:
            return report.model_dump_json(indent=2).encode("utf-8")
        except (ValueError, TypeError) as e:
            log.error("export serialization failed: %s", e)
            raise ExportError(f"cannot serialize export report: {e}") from e
