# routers/recurring_router.py
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status, Query, Response

import datetime as dt

from models_pydantic import (RecurringTransactionPydantic, RecurringTransactionCreatePydantic,
                             RecurringTransactionUpdatePydantic, TransactionPydantic)
import database_supabase as db_supabase
from recurrence import RecurringTemplate, expand_occurrences, coerce_date
from auth.dependencies import CurrentUser, get_current_supabase_user
from routers.common import get_router_logger, not_found

log = get_router_logger('recurring_router')

router = APIRouter(
    prefix="/api/v1/recurring",
    tags=["Recurring Transactions"],
    dependencies=[Depends(get_current_supabase_user)],
    responses={404: {"description": "Not found"}},
)


def _load_templates(user_id: str) -> List[RecurringTemplate]:
    templates = db_supabase.get_recurring_transactions(user_id)
    if templates is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="Could not load recurring transactions.")
    return templates


@router.get("/", response_model=List[RecurringTransactionPydantic])
async def list_recurring(current_user: CurrentUser):
    return [RecurringTransactionPydantic.model_validate(t.to_dict()) for t in _load_templates(current_user.id)]


@router.post("/", response_model=RecurringTransactionPydantic, status_code=status.HTTP_201_CREATED)
async def create_recurring(payload: RecurringTransactionCreatePydantic, current_user: CurrentUser):
    template = RecurringTemplate(user_id=current_user.id, **payload.model_dump())
    created = db_supabase.create_recurring_transaction(current_user.id, template)
    if created is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="Could not save recurring transaction.")
    log.info(f"User {current_user.id}: Created {created.cadence} recurring template {created.id}.")
    return RecurringTransactionPydantic.model_validate(created.to_dict())


@router.patch("/{template_id}", response_model=RecurringTransactionPydantic)
async def update_recurring(template_id: str, payload: RecurringTransactionUpdatePydantic,
                           current_user: CurrentUser):
    fields = payload.model_dump(exclude_unset=True)
    if 'start_date' in fields or 'end_date' in fields:
        current = next((t for t in _load_templates(current_user.id) if t.id == template_id), None)
        if current is None:
            raise not_found("Recurring transaction")
        start = fields.get('start_date', coerce_date(current.start_date))
        end = fields.get('end_date', coerce_date(current.end_date))
        if start and end and end < start:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                                detail="end_date must not be before start_date")

    updated = db_supabase.update_recurring_transaction(current_user.id, template_id, fields)
    if updated is None:
        raise not_found("Recurring transaction")
    return RecurringTransactionPydantic.model_validate(updated.to_dict())


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recurring(template_id: str, current_user: CurrentUser):
    if not db_supabase.delete_recurring_transaction(current_user.id, template_id):
        raise not_found("Recurring transaction")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/occurrences", response_model=List[TransactionPydantic],
            summary="Preview generated occurrences within a date range")
async def preview_occurrences(
        current_user: CurrentUser,
        start_date: dt.date = Query(..., description="Inclusive (YYYY-MM-DD)."),
        end_date: dt.date = Query(..., description="Inclusive (YYYY-MM-DD)."),
):
    if start_date > end_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Start date cannot be after end date.")
    occurrences = expand_occurrences(_load_templates(current_user.id), start_date, end_date)
    occurrences.sort(key=lambda occ: occ.date)
    return [TransactionPydantic.model_validate(occ.to_dict()) for occ in occurrences]
