# routers/ai_router.py
import io

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, status

from config import settings
from models_pydantic import (BudgetSuggestionResponsePydantic, BudgetOptimizationRequestPydantic,
                             BudgetOptimizationResponsePydantic)
import csv_parser
import llm_service
from auth.dependencies import CurrentUser, get_current_supabase_user
from routers.common import get_router_logger

router = APIRouter(
    prefix="/api/v1/ai",
    tags=["AI Assistant"],
    dependencies=[Depends(get_current_supabase_user)],
    responses={404: {"description": "Not found"}},
)

log = get_router_logger('ai_router')


@router.post("/budget-suggestion", response_model=BudgetSuggestionResponsePydantic,
             summary="Suggest a monthly budget from an uploaded CSV")
async def suggest_budget(
        current_user: CurrentUser,
        file: UploadFile = File(..., description="Income/expense data, CSV or plain text."),
):
    """
    The model's answer is returned as a JSON string in `suggested_budget`.
    When the data cannot be analyzed the response is still 200, with error=true.
    """
    if not file.filename or not csv_parser.allowed_file(file.filename, settings.ALLOWED_EXTENSIONS):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Please upload a .csv or .txt file.")
    contents = await file.read()
    if len(contents) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File is too large.")

    financial_data = csv_parser.read_text_for_llm(io.BytesIO(contents), file.filename)
    log.info(f"User {current_user.id}: Budget suggestion requested from '{file.filename}' "
             f"({len(financial_data)} characters).")
    result = llm_service.suggest_monthly_budget(financial_data)
    if result.get("error"):
        log.info(f"User {current_user.id}: Budget suggestion unavailable: {result.get('message')}")
    return result


@router.post("/budget-optimization", response_model=BudgetOptimizationResponsePydantic,
             summary="Suggest adjustments to a budget given market conditions")
async def optimize_budget(payload: BudgetOptimizationRequestPydantic, current_user: CurrentUser):
    log.info(f"User {current_user.id}: Budget optimization requested.")
    return llm_service.optimize_budget(payload.market_conditions, payload.spending_patterns,
                                       payload.current_budget)
