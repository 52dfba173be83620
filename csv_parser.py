# csv_parser.py
import csv
import logging
from decimal import Decimal, InvalidOperation
import datetime as dt
from dateutil.parser import parse as dateutil_parse, ParserError as DateParserError
from typing import List, Dict, Optional, Any, Union, TextIO, Set
import io

from config import settings
from recurrence import (Transaction, RecurringTemplate, CADENCES, KIND_INCOME, KIND_EXPENSE,
                        VALID_KINDS)

# --- Logging Setup ---
log = logging.getLogger('csv_parser')
log.setLevel(logging.DEBUG if settings.DEBUG_MODE else logging.INFO)
if not log.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - [%(name)s:%(module)s:%(funcName)s:%(lineno)d] - %(message)s')
    handler.setFormatter(formatter)
    log.addHandler(handler)

# --- Constants ---
CLI_USER_ID = "cli_report_user"
LLM_TEXT_LIMIT = 20_000  # characters of an uploaded file forwarded to the model

# Column aliases, matched case-insensitively against the CSV header row
TRANSACTION_SCHEMA: Dict[str, List[str]] = {
    "date_fields": ["Date", "Transaction Date", "Posting Date"],
    "description_fields": ["Description", "Memo", "Details", "Name"],
    "amount_fields": ["Amount", "Value", "Total"],
    "kind_fields": ["Category", "Kind", "Type"],
    "subcategory_fields": ["Subcategory", "Sub Category", "Account"],
    "payment_method_fields": ["Payment Method", "PaymentMethod", "Method"],
}

RECURRING_SCHEMA: Dict[str, List[str]] = {
    "description_fields": ["Description", "Name"],
    "amount_fields": ["Amount", "Value"],
    "kind_fields": ["Category", "Kind", "Type"],
    "cadence_fields": ["Frequency", "Cadence", "Interval"],
    "start_date_fields": ["Start Date", "StartDate", "Start"],
    "end_date_fields": ["End Date", "EndDate", "End"],
    "subcategory_fields": ["Subcategory", "Sub Category", "Account"],
    "payment_method_fields": ["Payment Method", "PaymentMethod", "Method"],
}


# --- Utility Functions ---
def allowed_file(filename: str, allowed_extensions: Optional[Set[str]] = None) -> bool:
    if allowed_extensions is None:
        allowed_extensions = settings.ALLOWED_EXTENSIONS
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in allowed_extensions


def _get_text_stream(user_id: str, file_like_object: Union[io.BytesIO, TextIO], filename: str,
                     parser_name: str) -> TextIO:
    if isinstance(file_like_object, io.BytesIO):
        raw = file_like_object.getvalue()
        try:
            return io.StringIO(raw.decode('utf-8-sig'))
        except UnicodeDecodeError:
            log.warning(f"User {user_id}: UTF-8 decoding failed for '{filename}' in {parser_name}. Trying latin-1.")
            return io.StringIO(raw.decode('latin-1'))
    elif isinstance(file_like_object, io.TextIOBase):
        return file_like_object
    else:
        log.error(
            f"User {user_id}: Invalid file object type '{type(file_like_object)}' for '{filename}' in {parser_name}.")
        raise TypeError(f"{parser_name} expects a BytesIO or TextIOBase object, got {type(file_like_object)}.")


def read_text_for_llm(file_obj: Union[io.BytesIO, TextIO], filename: str = "upload",
                      limit: int = LLM_TEXT_LIMIT) -> str:
    """Decoded file contents, truncated to `limit` characters, for prompting."""
    stream = _get_text_stream(CLI_USER_ID, file_obj, filename, "read_text_for_llm")
    text = stream.read()
    if len(text) > limit:
        log.info(f"'{filename}' is {len(text)} characters; truncating to {limit} for the model.")
        text = text[:limit]
    return text


def _parse_date(value: Optional[str]) -> Optional[dt.date]:
    if not value or not value.strip():
        return None
    try:
        return dateutil_parse(value.strip(), dayfirst=False).date()
    except (DateParserError, ValueError, TypeError, OverflowError):
        return None


def _parse_amount(value: Optional[str]) -> Optional[Decimal]:
    """Accepts '1,234.50', '$12', '₱12', and '(12.00)' for negatives."""
    if value is None:
        return None
    cleaned = str(value).replace('$', '').replace(settings.CURRENCY_SYMBOL, '').replace(',', '').strip()
    if not cleaned:
        return None
    is_negative = cleaned.startswith('(') and cleaned.endswith(')')
    if is_negative:
        cleaned = cleaned[1:-1]
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return -amount if is_negative else amount


def _normalize_kind(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    candidate = value.strip().capitalize()
    return candidate if candidate in VALID_KINDS else None


class _HeaderMap:
    """Resolves schema aliases to the actual header names of one CSV file."""

    def __init__(self, fieldnames: List[str]):
        self.by_normalized = {name.lower().strip(): name for name in fieldnames if name}

    def find(self, aliases: List[str]) -> Optional[str]:
        for alias in aliases:
            actual = self.by_normalized.get(alias.lower().strip())
            if actual:
                return actual
        return None


def _open_reader(stream: TextIO, source_filename: str) -> csv.DictReader:
    reader = csv.DictReader(stream)
    if not reader.fieldnames:
        raise ValueError(f"CSV file '{source_filename}' appears empty/headerless.")
    return reader


def _cell(row: Dict[str, Any], column: Optional[str]) -> str:
    if not column:
        return ''
    value = row.get(column)
    return value.strip() if isinstance(value, str) else ''


def parse_transactions_csv(user_id: str, file_obj: Union[io.BytesIO, TextIO],
                           filename: str) -> List[Transaction]:
    """Parse a transaction export into standalone Transactions.

    Date, Description and Amount columns are required. Without a Category
    column the sign of the amount decides the kind (negative means Expense)
    and the stored amount is its absolute value. With one, negative Expense or
    Liability amounts are stored as their absolute value and negative Income
    rows are skipped.
    """
    stream = _get_text_stream(user_id, file_obj, filename, "parse_transactions_csv")
    log.info(f"User {user_id}: Transaction CSV parsing START. File:'{filename}'")
    reader = _open_reader(stream, filename)
    headers = _HeaderMap(reader.fieldnames)

    date_col = headers.find(TRANSACTION_SCHEMA["date_fields"])
    desc_col = headers.find(TRANSACTION_SCHEMA["description_fields"])
    amount_col = headers.find(TRANSACTION_SCHEMA["amount_fields"])
    kind_col = headers.find(TRANSACTION_SCHEMA["kind_fields"])
    subcategory_col = headers.find(TRANSACTION_SCHEMA["subcategory_fields"])
    method_col = headers.find(TRANSACTION_SCHEMA["payment_method_fields"])

    required_map = {"Date": date_col, "Description": desc_col, "Amount": amount_col}
    missing_essentials = [k for k, v in required_map.items() if not v]
    if missing_essentials:
        raise ValueError(
            f"Missing essential columns in '{filename}': {', '.join(missing_essentials)}. "
            f"Available headers: {list(headers.by_normalized.keys())}")

    transactions: List[Transaction] = []
    for i, row in enumerate(reader):
        row_num = i + 2
        description = ' '.join(_cell(row, desc_col).split())
        tx_date = _parse_date(_cell(row, date_col))
        if tx_date is None or not description:
            log.warning(f"Row {row_num}: Skipping due to missing/unparseable date ('{_cell(row, date_col)}') "
                        f"or missing description.")
            continue

        amount = _parse_amount(_cell(row, amount_col))
        if amount is None:
            log.warning(f"Row {row_num}: Skipping due to invalid amount '{_cell(row, amount_col)}'.")
            continue

        kind_raw = _cell(row, kind_col)
        kind = _normalize_kind(kind_raw)
        if kind_col and kind_raw and kind is None:
            log.warning(f"Row {row_num}: Skipping due to unknown category '{kind_raw}'.")
            continue
        if kind is None:
            kind = KIND_EXPENSE if amount < 0 else KIND_INCOME
        elif kind == KIND_INCOME and amount < 0:
            # abs() would turn it into an inflow
            log.warning(f"Row {row_num}: Skipping negative amount '{_cell(row, amount_col)}' labelled "
                        f"'{kind_raw}'.")
            continue

        transactions.append(Transaction(
            user_id=user_id, date=tx_date, description=description, amount=abs(amount), kind=kind,
            subcategory=_cell(row, subcategory_col) or None,
            payment_method=_cell(row, method_col) or None,
        ))

    log.info(f"User {user_id}: Finished '{filename}'. Found {len(transactions)} valid transactions.")
    return transactions


def parse_recurring_csv(user_id: str, file_obj: Union[io.BytesIO, TextIO],
                        filename: str) -> List[RecurringTemplate]:
    stream = _get_text_stream(user_id, file_obj, filename, "parse_recurring_csv")
    log.info(f"User {user_id}: Recurring CSV parsing START. File:'{filename}'")
    reader = _open_reader(stream, filename)
    headers = _HeaderMap(reader.fieldnames)

    desc_col = headers.find(RECURRING_SCHEMA["description_fields"])
    amount_col = headers.find(RECURRING_SCHEMA["amount_fields"])
    kind_col = headers.find(RECURRING_SCHEMA["kind_fields"])
    cadence_col = headers.find(RECURRING_SCHEMA["cadence_fields"])
    start_col = headers.find(RECURRING_SCHEMA["start_date_fields"])
    end_col = headers.find(RECURRING_SCHEMA["end_date_fields"])
    subcategory_col = headers.find(RECURRING_SCHEMA["subcategory_fields"])
    method_col = headers.find(RECURRING_SCHEMA["payment_method_fields"])

    required_map = {"Description": desc_col, "Amount": amount_col, "Category": kind_col,
                    "Frequency": cadence_col, "Start Date": start_col}
    missing_essentials = [k for k, v in required_map.items() if not v]
    if missing_essentials:
        raise ValueError(
            f"Missing essential columns in '{filename}': {', '.join(missing_essentials)}. "
            f"Available headers: {list(headers.by_normalized.keys())}")

    templates: List[RecurringTemplate] = []
    for i, row in enumerate(reader):
        row_num = i + 2
        start_date = _parse_date(_cell(row, start_col))
        if start_date is None:
            log.warning(f"Row {row_num}: Skipping due to unparseable start date '{_cell(row, start_col)}'.")
            continue
        end_raw = _cell(row, end_col)
        end_date = _parse_date(end_raw)
        if end_raw and end_date is None:
            log.warning(f"Row {row_num}: Skipping due to unparseable end date '{end_raw}'.")
            continue
        if end_date is not None and end_date < start_date:
            log.warning(f"Row {row_num}: Skipping, end date {end_date} is before start date {start_date}.")
            continue

        amount = _parse_amount(_cell(row, amount_col))
        if amount is None or amount < 0:
            log.warning(f"Row {row_num}: Skipping due to invalid amount '{_cell(row, amount_col)}'.")
            continue
        kind = _normalize_kind(_cell(row, kind_col))
        if kind is None:
            log.warning(f"Row {row_num}: Skipping due to unknown category '{_cell(row, kind_col)}'.")
            continue
        cadence = _cell(row, cadence_col).lower()
        if cadence not in CADENCES:
            log.warning(f"Row {row_num}: Skipping due to unknown frequency '{cadence}'.")
            continue

        templates.append(RecurringTemplate(
            user_id=user_id, description=' '.join(_cell(row, desc_col).split()), amount=amount,
            kind=kind, cadence=cadence, start_date=start_date, end_date=end_date,
            subcategory=_cell(row, subcategory_col) or None,
            payment_method=_cell(row, method_col) or None,
        ))

    log.info(f"User {user_id}: Finished '{filename}'. Found {len(templates)} valid recurring templates.")
    return templates
