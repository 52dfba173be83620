# routers/transactions_router.py
import io
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, UploadFile, File, Query, Response

import datetime as dt

from config import settings
from models_pydantic import (TransactionPydantic, TransactionCreatePydantic, TransactionUpdatePydantic,
                             CsvUploadResponsePydantic, Kind)
import database_supabase as db_supabase
import csv_parser
from recurrence import Transaction
from auth.dependencies import CurrentUser, get_current_supabase_user
from routers.common import get_router_logger, not_found

log = get_router_logger('transactions_router')

router = APIRouter(
    prefix="/api/v1/transactions",
    tags=["Transactions"],
    dependencies=[Depends(get_current_supabase_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("/", response_model=List[TransactionPydantic])
async def list_transactions(
        current_user: CurrentUser,
        start_date: Optional[dt.date] = Query(None, description="Inclusive lower bound (YYYY-MM-DD)."),
        end_date: Optional[dt.date] = Query(None, description="Inclusive upper bound (YYYY-MM-DD)."),
        kind: Optional[Kind] = Query(None),
        subcategory: Optional[str] = Query(None),
):
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Start date cannot be after end date.")
    transactions = db_supabase.get_all_transactions(current_user.id, start_date, end_date, kind, subcategory)
    if transactions is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="Could not load transactions.")
    return [TransactionPydantic.model_validate(tx.to_dict()) for tx in transactions]


@router.post("/", response_model=TransactionPydantic, status_code=status.HTTP_201_CREATED)
async def create_transaction(payload: TransactionCreatePydantic, current_user: CurrentUser):
    tx = Transaction(user_id=current_user.id, **payload.model_dump())
    created = db_supabase.create_transaction(current_user.id, tx)
    if created is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not save transaction.")
    log.info(f"User {current_user.id}: Created transaction {created.id}.")
    return TransactionPydantic.model_validate(created.to_dict())


@router.patch("/{transaction_id}", response_model=TransactionPydantic)
async def update_transaction(transaction_id: str, payload: TransactionUpdatePydantic, current_user: CurrentUser):
    updated = db_supabase.update_transaction(current_user.id, transaction_id, payload.model_dump(exclude_unset=True))
    if updated is None:
        raise not_found("Transaction")
    return TransactionPydantic.model_validate(updated.to_dict())


@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_transaction(transaction_id: str, current_user: CurrentUser):
    if not db_supabase.delete_transaction(current_user.id, transaction_id):
        raise not_found("Transaction")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/upload/csv", response_model=CsvUploadResponsePydantic, summary="Import transactions from a CSV file")
async def upload_csv_transactions(
        current_user: CurrentUser,
        file: UploadFile = File(..., description="CSV with Date, Description, Amount and optional Category columns."),
):
    user_id = current_user.id
    log.info(f"User {user_id}: Upload request for file '{file.filename}'.")

    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file name provided.")
    if not csv_parser.allowed_file(file.filename, settings.ALLOWED_EXTENSIONS):
        log.warning(f"User {user_id}: File type not allowed for '{file.filename}'.")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"File type not allowed for '{file.filename}'. Please upload a CSV.")

    try:
        contents = await file.read()
        if len(contents) > settings.MAX_UPLOAD_BYTES:
            raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File is too large.")
        parsed = csv_parser.parse_transactions_csv(user_id, io.BytesIO(contents), file.filename)
        saved_count = db_supabase.save_transactions(user_id, parsed) if parsed else 0
        if parsed and saved_count == 0:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                                detail="Transactions were parsed but could not be saved.")
        return CsvUploadResponsePydantic(message="File processed successfully.", filename=file.filename,
                                         imported_count=saved_count)
    except ValueError as ve:
        log.warning(f"User {user_id}: Could not parse '{file.filename}': {ve}")
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                            detail=f"Error processing file '{file.filename}': {ve}")
    except HTTPException:
        raise
    except Exception as e:
        log.error(f"User {user_id}: Unexpected error processing file '{file.filename}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail=f"An unexpected error occurred with file '{file.filename}'.")
