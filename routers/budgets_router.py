# routers/budgets_router.py
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status, Response

from models_pydantic import BudgetPydantic, BudgetCreatePydantic
import database_supabase as db_supabase
from database_supabase import Budget, BudgetLine
from auth.dependencies import CurrentUser, get_current_supabase_user
from routers.common import get_router_logger, parse_month, not_found

log = get_router_logger('budgets_router')

router = APIRouter(
    prefix="/api/v1/budgets",
    tags=["Budgets"],
    dependencies=[Depends(get_current_supabase_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("/", response_model=List[BudgetPydantic])
async def list_budgets(current_user: CurrentUser):
    budgets = db_supabase.get_budgets(current_user.id)
    if budgets is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not load budgets.")
    return [BudgetPydantic.model_validate(b.to_dict()) for b in budgets]


@router.get("/{month}", response_model=BudgetPydantic)
async def get_budget(month: str, current_user: CurrentUser):
    budget = db_supabase.get_budget_for_month(current_user.id, parse_month(month))
    if budget is None:
        raise not_found(f"Budget for {month}")
    return BudgetPydantic.model_validate(budget.to_dict())


@router.put("/", response_model=BudgetPydantic)
async def save_budget(payload: BudgetCreatePydantic, current_user: CurrentUser):
    """Create the budget for payload.month, or replace the existing one."""
    budget = Budget(
        id=None, user_id=current_user.id, name=payload.name, month=payload.month,
        income=[BudgetLine(line.name, line.budgeted) for line in payload.income],
        expenses=[BudgetLine(line.name, line.budgeted) for line in payload.expenses],
        liabilities=[BudgetLine(line.name, line.budgeted) for line in payload.liabilities],
    )
    saved = db_supabase.upsert_budget(current_user.id, budget)
    if saved is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not save budget.")
    log.info(f"User {current_user.id}: Saved budget for {saved.month:%Y-%m}.")
    return BudgetPydantic.model_validate(saved.to_dict())


@router.delete("/{budget_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_budget(budget_id: str, current_user: CurrentUser):
    if not db_supabase.delete_budget(current_user.id, budget_id):
        raise not_found("Budget")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
