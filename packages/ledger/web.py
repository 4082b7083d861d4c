"""HTTP surface for the ledger (FastAPI).

Endpoints
---------
- ``GET /report``: current aggregate; decimals are rendered as JSON strings.
- ``POST /transactions``: multipart upload, CSV in the ``data`` field.
- ``GET /health``: liveness only; never touches the database.

Handlers are plain ``def`` functions so FastAPI runs them in its threadpool;
the blocking database work never stalls the event loop.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, File, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import api
from .config import LedgerSettings
from .ingest import DEFAULT_MAX_UPLOAD_BYTES
from .logging_setup import configure_logging
from .models import (
    Committed,
    Congested,
    IngestOutcome,
    PersistenceFailed,
    Report,
    RowRejection,
    TooLarge,
    Unavailable,
)
from .store import LedgerStore

RETRY_AFTER_SECONDS = 1


class ReportResponse(BaseModel):
    gross_revenue: str
    expenses: str
    net_revenue: str


class RejectionResponse(BaseModel):
    row: int
    line: int
    reason: str
    detail: str


class IngestResponse(BaseModel):
    batch_id: str | None
    committed: int
    rejected: list[RejectionResponse]


class ErrorResponse(BaseModel):
    error: str
    detail: str | None = None


def _rejections(rejected: tuple[RowRejection, ...]) -> list[RejectionResponse]:
    return [
        RejectionResponse(row=r.row, line=r.line, reason=r.reason.value, detail=r.detail)
        for r in rejected
    ]


def _error(status_code: int, error: str, detail: str | None = None, **extra: Any) -> JSONResponse:
    headers = extra.pop("headers", None)
    body = ErrorResponse(error=error, detail=detail).model_dump()
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _congested(outcome: Congested) -> JSONResponse:
    return _error(
        503,
        "congested",
        outcome.reason,
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


def _ingest_response(outcome: IngestOutcome) -> JSONResponse:
    match outcome:
        case Committed():
            body = IngestResponse(
                batch_id=str(outcome.batch_id) if outcome.batch_id else None,
                committed=outcome.committed,
                rejected=_rejections(outcome.rejected),
            )
            return JSONResponse(status_code=201, content=body.model_dump())
        case TooLarge(limit=limit):
            return _error(
                413,
                "too_large",
                f"upload exceeds {limit} bytes",
            )
        case Congested():
            return _congested(outcome)
        case Unavailable(reason=reason):
            return _error(503, "unavailable", reason)
        case PersistenceFailed(reason=reason, rejected=rejected):
            return _error(
                500,
                "persistence_failed",
                reason,
                rejected=[r.model_dump() for r in _rejections(rejected)],
            )
    raise TypeError(f"unexpected ingest outcome: {outcome!r}")


def create_app(
    store: LedgerStore | None = None,
    *,
    max_upload_bytes: int | None = None,
) -> FastAPI:
    """Build the application.

    Parameters
    ----------
    store:
        Ledger to serve. Defaults to the process-wide store from the
        environment, resolved lazily on first request.
    max_upload_bytes:
        Upload limit; defaults to ``LEDGER_MAX_UPLOAD_BYTES`` when a store is
        resolved from the environment, else the built-in default.
    """

    configure_logging()

    if max_upload_bytes is None:
        max_upload_bytes = (
            DEFAULT_MAX_UPLOAD_BYTES
            if store is not None
            else LedgerSettings.from_env().max_upload_bytes
        )
    limit = max_upload_bytes

    app = FastAPI(title="Revenue Ledger", version="0.1.0")

    def _store() -> LedgerStore:
        return store if store is not None else api.get_store()

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get(
        "/report",
        response_model=ReportResponse,
        responses={503: {"model": ErrorResponse}},
    )
    def get_report() -> Any:
        outcome = api.current_report(store=_store())
        match outcome:
            case Report():
                return ReportResponse(**outcome.as_text())
            case Congested():
                return _congested(outcome)
            case Unavailable(reason=reason):
                return _error(503, "unavailable", reason)
        raise TypeError(f"unexpected report outcome: {outcome!r}")

    @app.post(
        "/transactions",
        status_code=201,
        response_model=IngestResponse,
        responses={
            400: {"model": ErrorResponse},
            413: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
            503: {"model": ErrorResponse},
        },
    )
    def post_transactions(
        data: UploadFile | None = File(None, description="CSV batch to ingest"),
    ) -> Any:
        if data is None:
            return _error(
                400,
                "bad_request",
                "multipart field 'data' is required",
            )
        outcome = api.ingest_csv(data.file, max_bytes=limit, store=_store())
        return _ingest_response(outcome)

    return app


__all__ = ["create_app"]
