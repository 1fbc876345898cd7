from __future__ import annotations

from typing import Mapping

from loglens.common.errors import UsageError
from loglens.common.schema import RankedUploader


def check_limit(limit: int) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise UsageError(f"limit must be a positive integer, got {limit!r}")
    return limit


def top_uploaders(counts: Mapping[str, int], limit: int) -> list[RankedUploader]:
    """Highest upload counts first; equal counts ordered by user name."""
    check_limit(limit)
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return [RankedUploader(user=u, upload_count=n) for u, n in ranked[:limit]]
