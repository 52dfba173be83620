# routers/insights_router.py
import datetime as dt
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from models_pydantic import (DashboardSummaryPydantic, CashFlowStatementPydantic, CashFlowForecastPydantic,
                             VarianceReportPydantic)
import database_supabase as db_supabase
import insights
from auth.dependencies import CurrentUser, get_current_supabase_user
from config import settings
from routers.common import get_router_logger, get_today, load_ledger, parse_month

router = APIRouter(
    prefix="/api/v1/insights",
    tags=["Insights"],
    dependencies=[Depends(get_current_supabase_user)],
    responses={404: {"description": "Not found"}},
)

log = get_router_logger('insights_router')

Today = Annotated[dt.date, Depends(get_today)]


@router.get("/dashboard", response_model=DashboardSummaryPydantic,
            summary="Headline figures, six-month chart and recent activity")
async def get_dashboard(current_user: CurrentUser, today: Today):
    user_id = current_user.id
    transactions, templates = load_ledger(user_id)
    try:
        goals = db_supabase.get_goals(user_id) or []
        return insights.build_dashboard_summary(transactions, templates, today, goals)
    except Exception as e:
        log.error(f"User {user_id}: Error building dashboard: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="Failed to build dashboard summary.")


@router.get("/cash-flow/statement", response_model=CashFlowStatementPydantic,
            summary="Monthly cash-flow statement for a calendar year")
async def get_cash_flow_statement(
        current_user: CurrentUser,
        today: Today,
        year: Optional[int] = Query(None, ge=1900, le=9999, description="Defaults to the current year."),
):
    user_id = current_user.id
    effective_year = year or today.year
    transactions, templates = load_ledger(user_id)
    log.info(f"User {user_id}: Cash-flow statement for {effective_year} as of {today}.")
    try:
        return insights.build_cash_flow_statement(transactions, templates, effective_year, today)
    except ValueError as ve:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(ve))
    except Exception as e:
        log.error(f"User {user_id}: Error building cash-flow statement: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="Failed to build cash-flow statement.")


@router.get("/cash-flow/forecast", response_model=CashFlowForecastPydantic,
            summary="Projected balance over the coming months from recurring transactions")
async def get_cash_flow_forecast(
        current_user: CurrentUser,
        today: Today,
        start_month: Optional[str] = Query(None, description="YYYY-MM; defaults to the current month."),
        months: int = Query(settings.FORECAST_MONTHS, ge=1, le=36),
):
    user_id = current_user.id
    start = parse_month(start_month) if start_month else today.replace(day=1)
    transactions, templates = load_ledger(user_id)
    try:
        return insights.build_cash_flow_forecast(transactions, templates, start, months)
    except ValueError as ve:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(ve))
    except Exception as e:
        log.error(f"User {user_id}: Error building forecast: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="Failed to build cash-flow forecast.")


@router.get("/variance", response_model=VarianceReportPydantic,
            summary="Budget vs actual for one month")
async def get_variance_report(
        current_user: CurrentUser,
        today: Today,
        month: Optional[str] = Query(None, description="YYYY-MM; defaults to the current month."),
):
    user_id = current_user.id
    month_start = parse_month(month) if month else today.replace(day=1)
    budget = db_supabase.get_budget_for_month(user_id, month_start)
    if budget is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                            detail=f"No budget set for {month_start.strftime('%B %Y')}.")
    transactions, templates = load_ledger(user_id)
    try:
        return insights.build_variance_report(budget, transactions, templates, month_start)
    except Exception as e:
        log.error(f"User {user_id}: Error building variance report: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="Failed to build variance report.")
