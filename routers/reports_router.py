# routers/reports_router.py
import datetime as dt
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from models_pydantic import ReportType
import database_supabase as db_supabase
import report_generator
from auth.dependencies import CurrentUser, get_current_supabase_user
from routers.common import get_router_logger, get_today, load_ledger

router = APIRouter(
    prefix="/api/v1/reports",
    tags=["Reports"],
    dependencies=[Depends(get_current_supabase_user)],
    responses={404: {"description": "Not found"}},
)

log = get_router_logger('reports_router')


@router.get("/export", summary="Download a CSV report for a date range")
async def export_report(
        current_user: CurrentUser,
        today: Annotated[dt.date, Depends(get_today)],
        report_type: ReportType = Query(...),
        start_date: dt.date = Query(..., description="YYYY-MM-DD; for budget-variance, any day in the month."),
        end_date: dt.date = Query(..., description="YYYY-MM-DD"),
):
    user_id = current_user.id
    if start_date > end_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Start date cannot be after end date.")
    log.info(f"User {user_id}: Export {report_type} for {start_date} to {end_date}.")

    transactions, templates = load_ledger(user_id)
    budget = None
    if report_type == report_generator.REPORT_BUDGET_VARIANCE:
        budget = db_supabase.get_budget_for_month(user_id, start_date)

    try:
        content = report_generator.build_report(report_type, transactions, templates, start_date, end_date, budget)
    except report_generator.ReportDataError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as ve:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(ve))
    except Exception as e:
        log.error(f"User {user_id}: Error generating {report_type} report: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to generate report.")

    filename = report_generator.report_filename(report_type, today)
    return StreamingResponse(
        iter([content.encode('utf-8')]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
