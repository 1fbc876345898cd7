from __future__ import annotations

import logging
from datetime import datetime, timezone
from http import HTTPStatus

from fastapi import APIRouter, FastAPI, File, Query, Request, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from loglens.analysis.service import LogAnalyzer
from loglens.common.config import AnalysisCfg
from loglens.common.errors import ExportError, StreamReadError, UsageError
from loglens.common.schema import LoginAggregate, RankedUploader, SuspiciousWindow, UploadResult

PREFIX = "/api/v1/logs"


def utc_now_rfc3339() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def error_body(status: int, message: str) -> dict:
    return {
        "timestamp": utc_now_rfc3339(),
        "status": status,
        "error": HTTPStatus(status).phrase,
        "message": message,
    }


def _error_handlers(app: FastAPI, log: logging.Logger) -> None:
    @app.exception_handler(UsageError)
    async def usage(_: Request, exc: UsageError) -> JSONResponse:
        log.warning("usage error: %s", exc)
        return JSONResponse(status_code=400, content=error_body(400, str(exc)))

    @app.exception_handler(StreamReadError)
    async def stream(_: Request, exc: StreamReadError) -> JSONResponse:
        log.error("file processing error: %s", exc)
        return JSONResponse(status_code=422, content=error_body(422, str(exc)))

    @app.exception_handler(ExportError)
    async def export(_: Request, exc: ExportError) -> JSONResponse:
        log.error("export error: %s", exc)
        return JSONResponse(status_code=500, content=error_body(500, f"Failed to export results: {exc}"))


def create_app(cfg: AnalysisCfg | None = None, analyzer: LogAnalyzer | None = None) -> FastAPI:
    log = logging.getLogger("loglens.server")
    app = FastAPI(title="LogLens Server", version="0.1.0")

    analyzer = analyzer or LogAnalyzer(cfg)
    app.state.analyzer = analyzer
    _error_handlers(app, log)

    router = APIRouter(prefix=PREFIX)

    @app.get("/health")
    def health() -> dict:
        return {"ok": True, "ts": utc_now_rfc3339()}

    @router.get("/hello", response_class=PlainTextResponse)
    def hello() -> str:
        return "Log File Analyzer is active!"

    @router.post("/upload", status_code=201, response_model=UploadResult)
    def upload(response: Response, file: list[UploadFile] = File(...)) -> UploadResult:
        files = file
        if not files or (len(files) == 1 and not files[0].size):
            raise UsageError("No valid files provided")

        log.info("upload request with %d file(s)", len(files))
        processed = 0
        errors = 0
        ok_names: list[str] = []
        failed: list[str] = []

        for f in files:
            name = f.filename or "<unnamed>"
            if f.size == 0:
                log.warning("skipping empty file: %s", name)
                failed.append(name)
                continue
            try:
                result = analyzer.parse(f.file, name=name)
            except StreamReadError as e:
                log.error("error parsing file %s: %s", name, e)
                failed.append(name)
                continue
            processed += len(result.entries)
            errors += result.errors
            ok_names.append(name)

        if not ok_names:
            raise StreamReadError("Failed to process any of the uploaded files")

        if failed or errors:
            response.status_code = 206

        log.info(
            "upload done files=%d/%d entries=%d errors=%d total_stored=%d",
            len(ok_names),
            len(files),
            processed,
            errors,
            analyzer.entry_count(),
        )
        return UploadResult(
            message=f"Uploaded {len(ok_names)} of {len(files)} file(s)",
            files_processed=ok_names,
            failed_files=failed,
            processed=processed,
            total_stored=analyzer.entry_count(),
            errors=errors,
        )

    @router.get("/users/login-counts", response_model=dict[str, LoginAggregate])
    def login_counts(user: str | None = None) -> Response | dict[str, LoginAggregate]:
        stats = analyzer.login_counts(user)
        if not stats:
            log.info("no login data%s", f" for user={user}" if user else "")
            return Response(status_code=204)
        return stats

    @router.get("/users/top-uploaders", response_model=list[RankedUploader])
    def top(limit: int = Query(3)) -> list[RankedUploader]:
        return analyzer.top_uploaders(limit)

    @router.get("/security/suspicious", response_model=list[SuspiciousWindow])
    def suspicious() -> list[SuspiciousWindow]:
        return analyzer.suspicious_activity()

    @router.get("/export")
    def export(limit: int | None = None) -> Response:
        body = analyzer.export_json(limit)
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        return Response(
            content=body,
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="loglens-export-{stamp}.json"'},
        )

    @router.delete("/entries")
    def reset() -> dict:
        analyzer.reset()
        return {"ok": True}

    app.include_router(router)
    return app
