"""GST API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query

from ledger_engine.api.dependencies import DbSession, Tenant
from ledger_engine.api.schemas import GSTRRowResponse, GSTSummaryResponse
from ledger_engine.services.gst_service import GSTService

router = APIRouter(prefix="/gst", tags=["gst"])

Month = Annotated[int, Query(ge=1, le=12)]


@router.get("/summary", response_model=GSTSummaryResponse)
def get_gst_summary(db: DbSession, ctx: Tenant, month: Month, year: int) -> GSTSummaryResponse:
    """Output tax, input tax and net payable for a month."""
    return GSTSummaryResponse.model_validate(GSTService(db).get_gst_summary(ctx, month, year))


@router.get("/gstr1", response_model=list[GSTRRowResponse])
def get_gstr1(db: DbSession, ctx: Tenant, month: Month, year: int) -> list[GSTRRowResponse]:
    return [GSTRRowResponse.model_validate(r) for r in GSTService(db).get_gstr1_rows(ctx, month, year)]


@router.get("/gstr2", response_model=list[GSTRRowResponse])
def get_gstr2(db: DbSession, ctx: Tenant, month: Month, year: int) -> list[GSTRRowResponse]:
    return [GSTRRowResponse.model_validate(r) for r in GSTService(db).get_gstr2_rows(ctx, month, year)]
