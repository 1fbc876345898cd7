from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Mapping, Sequence

from loglens.analysis.holders import FailureEvent
from loglens.common.schema import SuspiciousWindow

log = logging.getLogger("loglens.detect")


def epoch_s(ts: datetime) -> int:
    # seconds since epoch, fraction dropped
    return math.floor(ts.timestamp())


class RepeatedFailureRule:
    """
    More than `threshold` LOGIN_FAILURE events from one address inside
    `window_s` seconds of the first one.

    Only the first qualifying window per address is reported.
    """

    def __init__(self, threshold: int = 3, window_s: int = 300) -> None:
        self.threshold = threshold
        self.window_s = window_s

    def first_window(self, address: str, events: Sequence[FailureEvent]) -> SuspiciousWindow | None:
        if len(events) <= self.threshold:
            return None

        # stable sort: equal timestamps keep arrival order
        ordered = sorted(events, key=lambda e: e.timestamp)

        for i, head in enumerate(ordered):
            window = [head]
            for ev in ordered[i + 1 :]:
                if epoch_s(ev.timestamp) - epoch_s(head.timestamp) > self.window_s:
                    break  # sorted, nothing later can fit
                window.append(ev)

            log.debug("address=%s window at %s holds %d failures", address, head.timestamp, len(window))
            if len(window) > self.threshold:
                return SuspiciousWindow(
                    address=address,
                    start=head.timestamp,
                    end=window[-1].timestamp,
                    failure_count=len(window),
                    timestamps=[e.timestamp for e in window],
                    users=[e.user for e in window],
                )

            if len(ordered) - (i + 1) <= self.threshold:
                break  # not enough events left to ever qualify
        return None

    def scan(self, failures: Mapping[str, Sequence[FailureEvent]]) -> list[SuspiciousWindow]:
        """Scan a snapshot of per-address failures; result is sorted by address."""
        found: list[SuspiciousWindow] = []
        for address in sorted(failures):
            events = failures[address]
            if len(events) <= self.threshold:
                log.debug("address=%s has only %d failures, skipping", address, len(events))
                continue
            w = self.first_window(address, events)
            if w:
                log.info(
                    "suspicious activity address=%s failures=%d start=%s end=%s",
                    address,
                    w.failure_count,
                    w.start.isoformat(),
                    w.end.isoformat(),
                )
                found.append(w)

        log.info("found %d suspicious window(s) across %d address(es)", len(found), len(failures))
        return found
