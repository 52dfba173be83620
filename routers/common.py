# routers/common.py
"""Helpers shared by the API routers."""
import logging
import datetime as dt
from typing import List, Tuple

from fastapi import HTTPException, status

from config import settings
import database_supabase as db_supabase
from recurrence import Transaction, RecurringTemplate


def get_router_logger(name: str) -> logging.Logger:
    log = logging.getLogger(name)
    log.setLevel(logging.INFO if not settings.DEBUG_MODE else logging.DEBUG)
    if not log.handlers and not (hasattr(log.parent, 'handlers') and log.parent.handlers):
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - [%(name)s:%(module)s:%(funcName)s:%(lineno)d] - %(message)s')
        handler.setFormatter(formatter)
        log.addHandler(handler)
        log.propagate = False
    return log


log = get_router_logger('routers_common')


def get_today() -> dt.date:
    """The only place the API reads the clock; overridden in tests."""
    return dt.date.today()


def parse_month(value: str) -> dt.date:
    """'YYYY-MM' (or a full ISO date) -> first day of that month."""
    try:
        if len(value) == 7:
            return dt.datetime.strptime(value, "%Y-%m").date()
        return dt.date.fromisoformat(value).replace(day=1)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                            detail=f"Invalid month '{value}'. Expected YYYY-MM.")


def load_ledger(user_id: str) -> Tuple[List[Transaction], List[RecurringTemplate]]:
    """All standalone transactions and recurring templates of a user, or HTTP 500."""
    transactions = db_supabase.get_all_transactions(user_id)
    templates = db_supabase.get_recurring_transactions(user_id)
    if transactions is None or templates is None:
        log.error(f"User {user_id}: Could not load transactions/recurring templates from the database.")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="Could not load your transactions. Please try again later.")
    return transactions, templates


def not_found(what: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found.")
