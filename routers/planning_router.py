# routers/planning_router.py
from typing import Annotated, List
from fastapi import APIRouter, Depends, HTTPException, status, Response

import datetime as dt

from models_pydantic import (FinancialGoalCreatePydantic, FinancialGoalUpdatePydantic, GoalProgressPydantic,
                             DebtCreatePydantic, DebtUpdatePydantic, DebtStatusPydantic, AmountPydantic)
import database_supabase as db_supabase
from database_supabase import Debt, FinancialGoal
import insights
from auth.dependencies import CurrentUser, get_current_supabase_user
from routers.common import get_router_logger, get_today, not_found

log = get_router_logger('planning_router')

router = APIRouter(
    prefix="/api/v1/planning",
    tags=["Financial Planning"],
    dependencies=[Depends(get_current_supabase_user)],
    responses={404: {"description": "Not found"}},
)

Today = Annotated[dt.date, Depends(get_today)]


# --- Goals ---
@router.get("/goals", response_model=List[GoalProgressPydantic])
async def list_goals(current_user: CurrentUser):
    goals = db_supabase.get_goals(current_user.id)
    if goals is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not load goals.")
    return [insights.goal_progress(g) for g in goals]


@router.post("/goals", response_model=GoalProgressPydantic, status_code=status.HTTP_201_CREATED)
async def create_goal(payload: FinancialGoalCreatePydantic, current_user: CurrentUser):
    goal = FinancialGoal(id=None, user_id=current_user.id, **payload.model_dump())
    goal.current_amount = min(goal.current_amount, goal.target_amount)
    created = db_supabase.create_goal(current_user.id, goal)
    if created is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not save goal.")
    return insights.goal_progress(created)


@router.patch("/goals/{goal_id}", response_model=GoalProgressPydantic)
async def update_goal(goal_id: str, payload: FinancialGoalUpdatePydantic, current_user: CurrentUser):
    """Partial update; the saved amount is re-capped at the resulting target."""
    goal = db_supabase.get_goal(current_user.id, goal_id)
    if goal is None:
        raise not_found("Goal")
    fields = payload.model_dump(exclude_unset=True)
    target = fields.get("target_amount", goal.target_amount)
    if fields.get("current_amount", goal.current_amount) > target:
        fields["current_amount"] = target
    updated = db_supabase.update_goal(current_user.id, goal_id, fields)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not update goal.")
    return insights.goal_progress(updated)


@router.delete("/goals/{goal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_goal(goal_id: str, current_user: CurrentUser):
    if not db_supabase.delete_goal(current_user.id, goal_id):
        raise not_found("Goal")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/goals/{goal_id}/contributions", response_model=GoalProgressPydantic)
async def add_goal_contribution(goal_id: str, payload: AmountPydantic, current_user: CurrentUser):
    """Add money to a goal; the saved amount is capped at the target."""
    goal = db_supabase.get_goal(current_user.id, goal_id)
    if goal is None:
        raise not_found("Goal")
    insights.apply_goal_contribution(goal, payload.amount)
    updated = db_supabase.update_goal(current_user.id, goal_id, {"current_amount": goal.current_amount})
    if updated is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not update goal.")
    log.info(f"User {current_user.id}: Goal {goal_id} now at {updated.current_amount}/{updated.target_amount}.")
    return insights.goal_progress(updated)


# --- Debts ---
@router.get("/debts", response_model=List[DebtStatusPydantic])
async def list_debts(current_user: CurrentUser, today: Today):
    debts = db_supabase.get_debts(current_user.id)
    if debts is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not load debts.")
    return [insights.debt_status(d, today) for d in debts]


@router.post("/debts", response_model=DebtStatusPydantic, status_code=status.HTTP_201_CREATED)
async def create_debt(payload: DebtCreatePydantic, current_user: CurrentUser, today: Today):
    debt = Debt(id=None, user_id=current_user.id, **payload.model_dump())
    debt.amount_paid = min(debt.amount_paid, debt.total_amount)
    created = db_supabase.create_debt(current_user.id, debt)
    if created is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not save debt.")
    return insights.debt_status(created, today)


@router.patch("/debts/{debt_id}", response_model=DebtStatusPydantic)
async def update_debt(debt_id: str, payload: DebtUpdatePydantic, current_user: CurrentUser, today: Today):
    debt = db_supabase.get_debt(current_user.id, debt_id)
    if debt is None:
        raise not_found("Debt")
    fields = payload.model_dump(exclude_unset=True)
    total = fields.get("total_amount", debt.total_amount)
    if fields.get("amount_paid", debt.amount_paid) > total:
        fields["amount_paid"] = total
    updated = db_supabase.update_debt(current_user.id, debt_id, fields)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not update debt.")
    return insights.debt_status(updated, today)


@router.delete("/debts/{debt_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_debt(debt_id: str, current_user: CurrentUser):
    if not db_supabase.delete_debt(current_user.id, debt_id):
        raise not_found("Debt")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/debts/{debt_id}/payments", response_model=DebtStatusPydantic)
async def record_debt_payment(debt_id: str, payload: AmountPydantic, current_user: CurrentUser, today: Today):
    """Record a payment; the paid amount is capped at the debt total."""
    debt = db_supabase.get_debt(current_user.id, debt_id)
    if debt is None:
        raise not_found("Debt")
    insights.apply_debt_payment(debt, payload.amount)
    updated = db_supabase.update_debt(current_user.id, debt_id, {"amount_paid": debt.amount_paid})
    if updated is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not update debt.")
    return insights.debt_status(updated, today)
