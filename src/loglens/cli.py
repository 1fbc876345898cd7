from __future__ import annotations

import json
import logging
from pathlib import Path

import typer
import uvicorn

from loglens.analysis.service import LogAnalyzer
from loglens.common.config import load_config
from loglens.common.errors import StreamReadError, UsageError
from loglens.common.log import setup_logging
from loglens.replay import push_files
from loglens.server.api import create_app

app = typer.Typer(help="LogLens: activity log parser, login stats and brute-force window detection")

DEFAULT_CONFIG = Path("configs/loglens.example.yaml")


@app.command()
def server(config: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c")) -> None:
    cfg = load_config(config)
    setup_logging(cfg.logging, name="loglens-server")
    log = logging.getLogger("loglens.cli")

    api = create_app(cfg.analysis)
    log.info("starting server on %s:%d", cfg.server.bind_host, cfg.server.bind_port)
    uvicorn.run(api, host=cfg.server.bind_host, port=cfg.server.bind_port, log_level="info")


@app.command()
def analyze(
    files: list[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Log files to parse."),
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c"),
    limit: int | None = typer.Option(None, "--limit", "-n", help="Top uploaders to report."),
) -> None:
    """Parse files in-process and print the export report as JSON."""
    cfg = load_config(config)
    setup_logging(cfg.logging, name="loglens-tool")
    analyzer = LogAnalyzer(cfg.analysis)

    for path in files:
        try:
            with path.open("rb") as f:
                analyzer.parse(f, name=str(path))
        except StreamReadError as e:
            typer.echo(f"error: {path}: {e}", err=True)
            raise typer.Exit(code=1)

    try:
        report = analyzer.export(limit)
    except UsageError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=2)

    typer.echo(report.model_dump_json(indent=2))
    totals = analyzer.parse_result()
    typer.echo(
        f"stored={totals['total_stored']} errors={totals['errors']} processed={totals['processed']}",
        err=True,
    )


@app.command()
def push(
    files: list[Path] = typer.Argument(..., exists=True, dir_okay=False),
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c"),
) -> None:
    """Upload files to a running server."""
    cfg = load_config(config)
    setup_logging(cfg.logging, name="loglens-push")

    stats = push_files(cfg.client.server_url, files, timeout_s=cfg.client.timeout_s)
    typer.echo(json.dumps(stats.body, indent=2))
    if not stats.ok:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
