from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field


class LoggingCfg(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    dir: Path = Path("./var/log")
    max_bytes: int = 5_000_000
    backups: int = 3


class ServerCfg(BaseModel):
    bind_host: str = "127.0.0.1"
    bind_port: int = 8080


class AnalysisCfg(BaseModel):
    window_seconds: int = Field(default=300, gt=0)
    failure_threshold: int = Field(default=3, ge=3)  # window must hold more than this
    default_top_limit: int = Field(default=3, gt=0)
    progress_every: int = Field(default=500, gt=0)
    encoding: str = "utf-8"


class ClientCfg(BaseModel):
    server_url: str = "http://127.0.0.1:8080"
    timeout_s: float = 30.0


class AppCfg(BaseModel):
    logging: LoggingCfg = Field(default_factory=LoggingCfg)
    server: ServerCfg = Field(default_factory=ServerCfg)
    analysis: AnalysisCfg = Field(default_factory=AnalysisCfg)
    client: ClientCfg = Field(default_factory=ClientCfg)


def load_config(path: Path) -> AppCfg:
    data: dict[str, Any] = {}
    if path.exists():
        data = yaml.safe_load(path.read_text()) or {}
    return AppCfg.model_validate(data)
