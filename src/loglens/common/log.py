from __future__ import annotations

import logging
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import LoggingCfg

FORMAT = "%(asctime)sZ %(levelname)s %(name)s %(message)s"
DATEFMT = "%Y-%m-%dT%H:%M:%S"


def setup_logging(cfg: LoggingCfg, name: str) -> logging.Logger:
    cfg.dir.mkdir(parents=True, exist_ok=True)
    log_path = Path(cfg.dir) / f"{name}.log"

    root = logging.getLogger()
    root.setLevel(getattr(logging, cfg.level))

    fmt = logging.Formatter(fmt=FORMAT, datefmt=DATEFMT)
    fmt.converter = time.gmtime

    # idempotent: a second call (tests, reload) replaces our handlers
    for h in list(root.handlers):
        if getattr(h, "_loglens", False):
            root.removeHandler(h)
            h.close()

    sh = logging.StreamHandler()
    sh.setFormatter(fmt)
    sh._loglens = True  # type: ignore[attr-defined]
    root.addHandler(sh)

    fh = RotatingFileHandler(
        log_path,
        maxBytes=cfg.max_bytes,
        backupCount=cfg.backups,
        encoding="utf-8",
    )
    fh.setFormatter(fmt)
    fh._loglens = True  # type: ignore[attr-defined]
    root.addHandler(fh)

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    return logging.getLogger(name)
