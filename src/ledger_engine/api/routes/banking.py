"""Bank statement and reconciliation API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from ledger_engine.api.dependencies import DbSession, Tenant
from ledger_engine.api.schemas import (
    ErrorResponse,
    ImportResultResponse,
    MatchCandidateResponse,
    ReconcileRequest,
    StatementImportRequest,
    StatementLineResponse,
)
from ledger_engine.services.reconciliation import ReconciliationService
from ledger_engine.services.types import StatementLineInput

router = APIRouter(prefix="/bank", tags=["banking"])

ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.post(
    "/statements",
    response_model=ImportResultResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
def import_statement(
    db: DbSession,
    ctx: Tenant,
    payload: StatementImportRequest,
) -> ImportResultResponse:
    """Import statement lines; already-imported references are skipped."""
    lines = [StatementLineInput(**line.model_dump()) for line in payload.lines]
    return ImportResultResponse.model_validate(ReconciliationService(db).import_statement(ctx, lines))


@router.get("/statement-lines", response_model=list[StatementLineResponse])
def list_statement_lines(
    db: DbSession,
    ctx: Tenant,
    matched: bool | None = None,
) -> list[StatementLineResponse]:
    lines = ReconciliationService(db).list_statement_lines(ctx, matched=matched)
    return [StatementLineResponse.model_validate(line) for line in lines]


@router.get(
    "/statement-lines/{line_id}/matches",
    response_model=list[MatchCandidateResponse],
    responses=ERRORS,
)
def find_matches(
    db: DbSession,
    ctx: Tenant,
    line_id: Annotated[UUID, Path()],
) -> list[MatchCandidateResponse]:
    """Ranked candidates; the caller picks one and reconciles it."""
    return [
        MatchCandidateResponse.model_validate(c)
        for c in ReconciliationService(db).find_matches(ctx, line_id)
    ]


@router.post(
    "/statement-lines/{line_id}/reconcile",
    response_model=StatementLineResponse,
    responses=ERRORS,
)
def reconcile(
    db: DbSession,
    ctx: Tenant,
    line_id: Annotated[UUID, Path()],
    payload: ReconcileRequest,
) -> StatementLineResponse:
    line = ReconciliationService(db).reconcile(ctx, line_id, payload.transaction_id)
    return StatementLineResponse.model_validate(line)
