# recurrence.py
"""
Recurring-transaction expansion and period aggregation.

Every view that needs "what happened in this period" (cash-flow statement,
forecast, variance report, CSV exports, dashboard) goes through this module:

- expand_occurrences() materializes dated occurrences of recurring templates
  inside an inclusive [period_start, period_end] interval.
- aggregate_by_periods() / aggregate_by_month() bucket standalone transactions
  and occurrences into consecutive periods with a running balance.

Nothing here reads the clock or touches the database. A record with a bad date,
amount or kind is logged and left out; it never aborts the whole computation.
"""
import logging
import datetime as dt
from bisect import bisect_right
from collections import defaultdict
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from dateutil.parser import parse as dateutil_parse, ParserError as DateParserError
from dateutil.relativedelta import relativedelta

from config import settings

log = logging.getLogger('recurrence')
log.setLevel(logging.DEBUG if settings.DEBUG_MODE else logging.INFO)
if not log.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - [%(name)s:%(module)s:%(funcName)s:%(lineno)d] - %(message)s')
    handler.setFormatter(formatter)
    log.addHandler(handler)

# --- Constants ---
KIND_INCOME = 'Income'
KIND_EXPENSE = 'Expense'
KIND_LIABILITY = 'Liability'  # debt repayments; counted as an outflow
INFLOW_KINDS = {KIND_INCOME}
OUTFLOW_KINDS = {KIND_EXPENSE, KIND_LIABILITY}
VALID_KINDS = INFLOW_KINDS | OUTFLOW_KINDS

CADENCE_DAILY = 'daily'
CADENCE_WEEKLY = 'weekly'
CADENCE_MONTHLY = 'monthly'
CADENCE_YEARLY = 'yearly'
CADENCES = (CADENCE_DAILY, CADENCE_WEEKLY, CADENCE_MONTHLY, CADENCE_YEARLY)

RECURRING_SUFFIX = " (Recurring)"
UNCATEGORIZED = 'Uncategorized'
ZERO = Decimal('0')

# dateutil fills missing date parts from this value instead of today's date
_PARSE_DEFAULT = dt.datetime(1900, 1, 1)

Period = Tuple[str, dt.date, dt.date]  # (label, first day, last day), inclusive


# --- Value coercion ---
def coerce_date(value: Any) -> Optional[dt.date]:
    """Return a date for date/datetime/string input, or None if it cannot be read."""
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return dt.date.fromisoformat(text[:10])
        except ValueError:
            pass
        try:
            return dateutil_parse(text, default=_PARSE_DEFAULT).date()
        except (DateParserError, ValueError, TypeError, OverflowError):
            return None
    return None


def coerce_amount(value: Any) -> Optional[Decimal]:
    """Return a finite Decimal for numeric or numeric-string input, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, int):
            amount = Decimal(value)
        elif isinstance(value, float):
            amount = Decimal(str(value))  # str() keeps 0.1 as 0.1, not its binary expansion
        elif isinstance(value, str):
            cleaned = value.replace(',', '').replace(settings.CURRENCY_SYMBOL, '').replace('$', '').strip()
            if not cleaned:
                return None
            amount = Decimal(cleaned)
        else:
            return None
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def flow_direction(kind: Any) -> Optional[int]:
    """+1 for inflow kinds, -1 for outflow kinds, None for anything else."""
    if not isinstance(kind, str):
        return None
    normalized = kind.strip().capitalize()
    if normalized in INFLOW_KINDS:
        return 1
    if normalized in OUTFLOW_KINDS:
        return -1
    return None


# --- Records ---
class Transaction:
    """A standalone transaction as stored by the user."""

    def __init__(self, id: Optional[str] = None, date: Any = None, description: Optional[str] = None,
                 amount: Any = None, kind: Optional[str] = None, subcategory: Optional[str] = None,
                 payment_method: Optional[str] = None, user_id: Optional[str] = None,
                 created_at: Optional[dt.datetime] = None, updated_at: Optional[dt.datetime] = None):
        self.id = id
        self.date = date
        self.description = description
        self.amount = amount
        self.kind = kind
        self.subcategory = subcategory
        self.payment_method = payment_method
        self.user_id = user_id
        self.created_at = created_at
        self.updated_at = updated_at

    is_recurring = False

    def to_dict(self) -> Dict[str, Any]:
        tx_date = coerce_date(self.date)
        amount = coerce_amount(self.amount)
        return {
            "id": self.id,
            "date": tx_date.isoformat() if tx_date else None,
            "description": self.description,
            "amount": str(amount) if amount is not None else None,
            "kind": self.kind,
            "subcategory": self.subcategory,
            "payment_method": self.payment_method,
            "is_recurring": self.is_recurring,
        }

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> 'Transaction':
        return cls(
            id=str(row['id']) if row.get('id') is not None else None,
            date=row.get('date'),
            description=row.get('description'),
            amount=row.get('amount'),
            kind=row.get('kind') or row.get('category'),
            subcategory=row.get('subcategory'),
            payment_method=row.get('payment_method'),
            user_id=str(row['user_id']) if row.get('user_id') is not None else None,
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at'),
        )

    def __repr__(self):
        return f"<Transaction {self.id} {self.date} {self.kind} {self.amount}>"


class RecurringTemplate:
    """A recurring-transaction definition; occurrences are generated on demand."""

    def __init__(self, id: Optional[str] = None, description: Optional[str] = None, amount: Any = None,
                 kind: Optional[str] = None, cadence: Optional[str] = None, start_date: Any = None,
                 end_date: Any = None, subcategory: Optional[str] = None,
                 payment_method: Optional[str] = None, user_id: Optional[str] = None,
                 created_at: Optional[dt.datetime] = None, updated_at: Optional[dt.datetime] = None):
        self.id = id
        self.description = description
        self.amount = amount
        self.kind = kind
        self.cadence = cadence
        self.start_date = start_date
        self.end_date = end_date
        self.subcategory = subcategory
        self.payment_method = payment_method
        self.user_id = user_id
        self.created_at = created_at
        self.updated_at = updated_at

    def to_dict(self) -> Dict[str, Any]:
        start = coerce_date(self.start_date)
        end = coerce_date(self.end_date)
        amount = coerce_amount(self.amount)
        return {
            "id": self.id,
            "description": self.description,
            "amount": str(amount) if amount is not None else None,
            "kind": self.kind,
            "cadence": self.cadence,
            "start_date": start.isoformat() if start else None,
            "end_date": end.isoformat() if end else None,
            "subcategory": self.subcategory,
            "payment_method": self.payment_method,
        }

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> 'RecurringTemplate':
        return cls(
            id=str(row['id']) if row.get('id') is not None else None,
            description=row.get('description'),
            amount=row.get('amount'),
            kind=row.get('kind') or row.get('category'),
            cadence=row.get('cadence') or row.get('frequency'),
            start_date=row.get('start_date'),
            end_date=row.get('end_date'),
            subcategory=row.get('subcategory'),
            payment_method=row.get('payment_method'),
            user_id=str(row['user_id']) if row.get('user_id') is not None else None,
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at'),
        )

    def __repr__(self):
        return f"<RecurringTemplate {self.id} {self.cadence} from {self.start_date}>"


class Occurrence(Transaction):
    """One dated materialization of a RecurringTemplate. Never persisted."""

    is_recurring = True

    def __init__(self, template_id: Optional[str], date: dt.date, **kwargs):
        super().__init__(id=f"{template_id}-{date.isoformat()}", date=date, **kwargs)
        self.template_id = template_id

    @classmethod
    def from_template(cls, template: RecurringTemplate, occurrence_date: dt.date) -> 'Occurrence':
        return cls(
            template_id=template.id,
            date=occurrence_date,
            description=f"{template.description or ''}{RECURRING_SUFFIX}",
            amount=template.amount,
            kind=template.kind,
            subcategory=template.subcategory,
            payment_method=template.payment_method,
            user_id=template.user_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["template_id"] = self.template_id
        return data


class PeriodBucket:
    def __init__(self, label: str, start: dt.date, end: dt.date, inflow_total: Decimal,
                 outflow_total: Decimal, opening_balance: Decimal,
                 inflow_by_category: Optional[Dict[str, Decimal]] = None,
                 outflow_by_category: Optional[Dict[str, Decimal]] = None):
        self.label = label
        self.start = start
        self.end = end
        self.inflow_total = inflow_total
        self.outflow_total = outflow_total
        self.net_change = inflow_total - outflow_total
        self.opening_balance = opening_balance
        self.running_balance = opening_balance + self.net_change
        self.inflow_by_category = inflow_by_category or {}
        self.outflow_by_category = outflow_by_category or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "inflow_total": str(self.inflow_total),
            "outflow_total": str(self.outflow_total),
            "net_change": str(self.net_change),
            "opening_balance": str(self.opening_balance),
            "running_balance": str(self.running_balance),
            "inflow_by_category": {k: str(v) for k, v in self.inflow_by_category.items()},
            "outflow_by_category": {k: str(v) for k, v in self.outflow_by_category.items()},
        }


class PeriodSummary:
    def __init__(self, beginning_balance: Decimal, buckets: List[PeriodBucket]):
        self.beginning_balance = beginning_balance
        self.buckets = buckets
        self.ending_balance = buckets[-1].running_balance if buckets else beginning_balance
        self.total_inflows = sum((b.inflow_total for b in buckets), ZERO)
        self.total_outflows = sum((b.outflow_total for b in buckets), ZERO)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "beginning_balance": str(self.beginning_balance),
            "ending_balance": str(self.ending_balance),
            "total_inflows": str(self.total_inflows),
            "total_outflows": str(self.total_outflows),
            "buckets": [b.to_dict() for b in self.buckets],
        }


# --- Expansion ---
def _cadence_offset(cadence: str, steps: int) -> relativedelta:
    if cadence == CADENCE_DAILY:
        return relativedelta(days=steps)
    if cadence == CADENCE_WEEKLY:
        return relativedelta(weeks=steps)
    if cadence == CADENCE_MONTHLY:
        return relativedelta(months=steps)
    return relativedelta(years=steps)


def _first_step_near(anchor: dt.date, cadence: str, target: dt.date) -> int:
    """Step index at or just before the first occurrence on/after target."""
    if target <= anchor:
        return 0
    if cadence == CADENCE_DAILY:
        steps = (target - anchor).days
    elif cadence == CADENCE_WEEKLY:
        steps = (target - anchor).days // 7
    elif cadence == CADENCE_MONTHLY:
        steps = (target.year - anchor.year) * 12 + (target.month - anchor.month)
    else:
        steps = target.year - anchor.year
    # month-end clamping can land one step past target; the caller filters the early one
    return max(steps - 1, 0)


def occurrence_dates(template: RecurringTemplate, period_start: dt.date,
                     period_end: dt.date) -> Iterator[dt.date]:
    """Yield the template's occurrence dates inside [period_start, period_end], in order.

    Each date is computed from the start date (start + n units) rather than from
    the previous occurrence, so a template starting on the 31st returns to the
    31st after a short month instead of drifting to the 28th/29th.
    """
    anchor = coerce_date(template.start_date)
    if anchor is None:
        log.warning(f"Recurring template {template.id}: missing or unparseable start date "
                    f"'{template.start_date}'. Skipping.")
        return

    end_date = coerce_date(template.end_date)
    if end_date is None and template.end_date not in (None, ''):
        log.warning(f"Recurring template {template.id}: unparseable end date '{template.end_date}', "
                    f"treating as open-ended.")

    cadence = template.cadence.strip().lower() if isinstance(template.cadence, str) else None
    if cadence not in CADENCES:
        # Cannot advance: only the start date itself can be emitted
        log.warning(f"Recurring template {template.id}: unknown cadence '{template.cadence}'. "
                    f"No occurrences after {anchor.isoformat()}.")
        if period_start <= anchor <= period_end and (end_date is None or anchor <= end_date):
            yield anchor
        return

    step = _first_step_near(anchor, cadence, period_start)
    while True:
        try:
            cursor = anchor + _cadence_offset(cadence, step)
        except (OverflowError, ValueError):
            # stepped past dt.date.max, so past any period_end
            break
        if cursor > period_end:
            break
        if end_date is not None and cursor > end_date:
            break
        if cursor >= period_start:
            yield cursor
        step += 1


def expand_occurrences(templates: Optional[Iterable[RecurringTemplate]], period_start: Any,
                       period_end: Any, max_occurrences: Optional[int] = None) -> List[Occurrence]:
    """Materialize every occurrence of every template within the inclusive interval.

    Occurrences are grouped per template (in the order templates are given) and
    in cadence order within a template. Output is capped at max_occurrences
    (default settings.MAX_OCCURRENCES); anything past the cap is dropped with a warning.
    """
    start = coerce_date(period_start)
    end = coerce_date(period_end)
    if start is None or end is None:
        log.warning(f"Cannot expand occurrences for unreadable interval {period_start!r} - {period_end!r}.")
        return []
    if start > end:
        log.debug(f"Empty interval {start} - {end}: no occurrences.")
        return []

    limit = max_occurrences if max_occurrences is not None else settings.MAX_OCCURRENCES
    occurrences: List[Occurrence] = []
    for template in templates or []:
        for occurrence_date in occurrence_dates(template, start, end):
            if len(occurrences) >= limit:
                log.warning(f"Occurrence cap of {limit} reached while expanding {start} - {end}. "
                            f"Remaining occurrences were dropped.")
                return occurrences
            occurrences.append(Occurrence.from_template(template, occurrence_date))

    log.debug(f"Expanded {len(occurrences)} occurrences for {start} - {end}.")
    return occurrences


# --- Aggregation ---
def signed_amount(record: Transaction) -> Optional[Decimal]:
    """Inflows positive, outflows negative; None if amount or kind is unusable."""
    amount = coerce_amount(record.amount)
    direction = flow_direction(record.kind)
    if amount is None or direction is None:
        return None
    return amount if direction > 0 else -amount


def _usable_records(transactions: Iterable[Transaction]) -> List[Tuple[dt.date, Decimal, int, str]]:
    usable = []
    for tx in transactions or []:
        tx_date = coerce_date(tx.date)
        if tx_date is None:
            log.warning(f"Transaction {tx.id}: unparseable date '{tx.date}'. Excluded from totals.")
            continue
        amount = coerce_amount(tx.amount)
        if amount is None:
            log.warning(f"Transaction {tx.id}: invalid amount '{tx.amount}'. Excluded from totals.")
            continue
        direction = flow_direction(tx.kind)
        if direction is None:
            log.warning(f"Transaction {tx.id}: unknown kind '{tx.kind}'. Excluded from totals.")
            continue
        subcategory = (tx.subcategory or '').strip() or UNCATEGORIZED
        usable.append((tx_date, amount, direction, subcategory))
    return usable


def month_periods(start: dt.date, end: dt.date) -> List[Period]:
    """Consecutive calendar months covering [start, end], clipped to the interval."""
    periods: List[Period] = []
    if start > end:
        return periods
    month_start = start.replace(day=1)
    while True:
        month_end = month_start + relativedelta(day=31)
        periods.append((month_start.strftime('%Y-%m'), max(month_start, start), min(month_end, end)))
        if month_end >= end:
            break
        month_start = month_end + dt.timedelta(days=1)
    return periods


def aggregate_by_periods(transactions: Optional[Iterable[Transaction]],
                         periods: Sequence[Period]) -> PeriodSummary:
    """Bucket transactions into the given periods with a running balance.

    Periods must not overlap; they are processed in chronological order. The
    beginning balance is the signed total of everything dated before the first period.
    Records dated after the last period, or in gaps between periods, are ignored.
    """
    ordered = sorted(periods, key=lambda p: p[1])
    records = _usable_records(transactions)
    if not ordered:
        return PeriodSummary(ZERO, [])

    first_start = ordered[0][1]
    starts = [p[1] for p in ordered]
    inflows = [ZERO] * len(ordered)
    outflows = [ZERO] * len(ordered)
    inflow_cats: List[Dict[str, Decimal]] = [defaultdict(Decimal) for _ in ordered]
    outflow_cats: List[Dict[str, Decimal]] = [defaultdict(Decimal) for _ in ordered]
    beginning_balance = ZERO

    for tx_date, amount, direction, subcategory in records:
        if tx_date < first_start:
            beginning_balance += amount * direction
            continue
        idx = bisect_right(starts, tx_date) - 1
        if tx_date > ordered[idx][2]:
            continue
        if direction > 0:
            inflows[idx] += amount
            inflow_cats[idx][subcategory] += amount
        else:
            outflows[idx] += amount
            outflow_cats[idx][subcategory] += amount

    buckets: List[PeriodBucket] = []
    running = beginning_balance
    for i, (label, p_start, p_end) in enumerate(ordered):
        bucket = PeriodBucket(label, p_start, p_end, inflows[i], outflows[i], running,
                              dict(inflow_cats[i]), dict(outflow_cats[i]))
        running = bucket.running_balance
        buckets.append(bucket)

    return PeriodSummary(beginning_balance, buckets)


def aggregate_by_month(standalone: Optional[Iterable[Transaction]], occurrences: Optional[Iterable[Transaction]],
                       year_start: Any, year_end: Any) -> PeriodSummary:
    start = coerce_date(year_start)
    end = coerce_date(year_end)
    if start is None or end is None or start > end:
        raise ValueError(f"Invalid aggregation interval: {year_start!r} - {year_end!r}")
    merged = list(standalone or []) + list(occurrences or [])
    return aggregate_by_periods(merged, month_periods(start, end))


# --- Helpers for callers ---
def earliest_known_date(transactions: Optional[Iterable[Transaction]],
                        templates: Optional[Iterable[RecurringTemplate]] = None) -> Optional[dt.date]:
    """Earliest readable date among transactions and template start dates."""
    dates = [coerce_date(tx.date) for tx in transactions or []]
    dates += [coerce_date(t.start_date) for t in templates or []]
    dates = [d for d in dates if d is not None]
    return min(dates) if dates else None


def filter_by_date(records: Iterable[Transaction], start: Optional[dt.date] = None,
                   end: Optional[dt.date] = None) -> List[Transaction]:
    """Records with a readable date inside [start, end], sorted by date (stable)."""
    kept = []
    for record in records or []:
        record_date = coerce_date(record.date)
        if record_date is None:
            continue
        if start is not None and record_date < start:
            continue
        if end is not None and record_date > end:
            continue
        kept.append((record_date, record))
    kept.sort(key=lambda item: item[0])
    return [record for _, record in kept]
