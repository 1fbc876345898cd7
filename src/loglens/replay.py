from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

from loglens.server.api import PREFIX

log = logging.getLogger("loglens.replay")


@dataclass(frozen=True)
class PushStats:
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code < 400


def push_files(
    server_url: str,
    paths: list[Path],
    timeout_s: float = 30.0,
    client: httpx.Client | None = None,
) -> PushStats:
    """Upload log files to a running server in a single multipart request."""
    upload_url = server_url.rstrip("/") + PREFIX + "/upload"
    log.info("push: server=%s files=%d", server_url, len(paths))

    handles = [p.open("rb") for p in paths]
    try:
        files = [("file", (p.name, fh, "text/plain")) for p, fh in zip(paths, handles)]
        if client is not None:
            r = client.post(upload_url, files=files)
        else:
            with httpx.Client(timeout=timeout_s) as c:
                r = c.post(upload_url, files=files)
    finally:
        for fh in handles:
            fh.close()

    try:
        body = r.json()
    except ValueError:
        body = {"message": r.text[:500]}

    if r.status_code >= 400:
        log.error("push failed status=%s body=%s", r.status_code, r.text[:500])
    else:
        log.info("push done status=%s processed=%s errors=%s", r.status_code, body.get("processed"), body.get("errors"))
    return PushStats(status_code=r.status_code, body=body)
