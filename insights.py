# insights.py
import logging
import datetime as dt
from dateutil.relativedelta import relativedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Dict, Any, Optional

from config import settings
from recurrence import (Transaction, RecurringTemplate, PeriodBucket, expand_occurrences,
                        aggregate_by_periods, month_periods, earliest_known_date, filter_by_date,
                        signed_amount, coerce_amount, coerce_date, flow_direction,
                        KIND_INCOME, KIND_EXPENSE, KIND_LIABILITY, ZERO)
from database_supabase import Budget, BudgetLine, Debt, FinancialGoal

# Configure logging
log = logging.getLogger('insights')
log.setLevel(logging.DEBUG if settings.DEBUG_MODE else logging.INFO)
if not log.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - [%(name)s:%(module)s:%(funcName)s:%(lineno)d] - %(message)s')
    handler.setFormatter(formatter)
    log.addHandler(handler)

# --- Income-statement layout used by the variance report ---
COGS_CATEGORIES = ['Cost of Goods Sold']
OVERHEAD_CATEGORIES = ['Salaries and Wages', 'Rent', 'Utilities', 'Marketing and Advertising', 'Office Supplies',
                       'Software and Subscriptions', 'Taxes', 'Travel', 'Repairs and Maintenance', 'Other']

HUNDRED = Decimal('100')
CENT = Decimal('0.01')
TENTH = Decimal('0.1')
RECENT_TRANSACTIONS = 5
DASHBOARD_CHART_MONTHS = 6
DASHBOARD_GOALS = 3


def percent(part: Decimal, whole: Decimal, places: Decimal = CENT) -> Decimal:
    """part / whole * 100, rounded; 0 when whole is 0."""
    if not whole:
        return Decimal('0').quantize(places)
    return (part / whole * HUNDRED).quantize(places, rounding=ROUND_HALF_UP)


def month_start(value: dt.date) -> dt.date:
    return value.replace(day=1)


def month_end(value: dt.date) -> dt.date:
    # day=31 clamps to the month's last day without stepping into the next month
    return value + relativedelta(day=31)


def _bucket_dict(bucket: PeriodBucket) -> Dict[str, Any]:
    return {
        "month": bucket.label,
        "label": bucket.start.strftime('%b %Y'),
        "start": bucket.start,
        "end": bucket.end,
        "inflow_total": bucket.inflow_total,
        "outflow_total": bucket.outflow_total,
        "net_change": bucket.net_change,
        "opening_balance": bucket.opening_balance,
        "running_balance": bucket.running_balance,
        "inflow_by_category": dict(bucket.inflow_by_category),
        "outflow_by_category": dict(bucket.outflow_by_category),
    }


# --- Cash-flow statement ---
def build_cash_flow_statement(transactions: List[Transaction], templates: List[RecurringTemplate],
                              year: int, as_of: dt.date) -> Dict[str, Any]:
    """Monthly statement for a calendar year, up to and including `as_of`.

    Occurrences are generated from the earliest known date so that the
    beginning balance includes every recurring item before January 1st.
    Records dated after `as_of` are not counted; months that start after
    it are left out.
    """
    year_start = dt.date(year, 1, 1)
    year_end = dt.date(year, 12, 31)
    generation_end = min(year_end, as_of)
    if generation_end < year_start:
        raise ValueError(f"Year {year} has not started as of {as_of.isoformat()}.")

    earliest = earliest_known_date(transactions, templates) or year_start
    generation_start = min(earliest, year_start)
    occurrences = expand_occurrences(templates, generation_start, generation_end)
    log.debug(f"Statement {year}: {len(transactions)} standalone, {len(occurrences)} occurrences "
              f"from {generation_start} to {generation_end}.")

    summary = aggregate_by_periods(list(transactions) + occurrences, month_periods(year_start, generation_end))
    return {
        "year": year,
        "as_of": as_of,
        "beginning_balance": summary.beginning_balance,
        "ending_balance": summary.ending_balance,
        "total_inflows": summary.total_inflows,
        "total_outflows": summary.total_outflows,
        "net_cash_flow": summary.total_inflows - summary.total_outflows,
        "months": [_bucket_dict(b) for b in summary.buckets],
    }


# --- Forecast ---
def build_cash_flow_forecast(transactions: List[Transaction], templates: List[RecurringTemplate],
                             start_month: dt.date, months: Optional[int] = None) -> Dict[str, Any]:
    """Project the balance forward month by month from recurring templates.

    The starting balance is the signed total of every standalone transaction.
    """
    months = months if months is not None else settings.FORECAST_MONTHS
    if months < 1:
        raise ValueError("Forecast must cover at least one month.")

    start = month_start(start_month)
    end = month_end(start + relativedelta(months=months - 1))

    initial_balance = ZERO
    for tx in transactions or []:
        amount = signed_amount(tx)
        if amount is not None and coerce_date(tx.date) is not None:
            initial_balance += amount

    occurrences = expand_occurrences(templates, start, end)
    summary = aggregate_by_periods(occurrences, month_periods(start, end))

    forecast = []
    balance = initial_balance
    for bucket in summary.buckets:
        balance += bucket.net_change
        forecast.append({
            "month": bucket.label,
            "label": bucket.start.strftime('%b %Y'),
            "cash_in": bucket.inflow_total,
            "cash_out": bucket.outflow_total,
            "balance": balance,
        })

    lowest_point = min([initial_balance] + [row["balance"] for row in forecast])
    lowest_point_month = start.strftime('%b %Y')
    if lowest_point != initial_balance:
        lowest_point_month = next(row["label"] for row in forecast if row["balance"] == lowest_point)

    return {
        "start_month": start.strftime('%Y-%m'),
        "months": months,
        "initial_balance": initial_balance,
        "net_cash_flow": summary.total_inflows - summary.total_outflows,
        "lowest_point": lowest_point,
        "lowest_point_month": lowest_point_month,
        "forecast": forecast,
    }


# --- Variance ---
def _line_row(name: str, budgeted: Decimal, actual: Decimal, is_income: bool) -> Dict[str, Any]:
    variance = actual - budgeted if is_income else budgeted - actual
    return {"name": name, "budgeted": budgeted, "actual": actual, "variance": variance,
            "percentage": percent(variance, budgeted)}


def _section(title: str, rows: List[Dict[str, Any]], is_income: bool) -> Dict[str, Any]:
    budgeted = sum((r["budgeted"] for r in rows), ZERO)
    actual = sum((r["actual"] for r in rows), ZERO)
    section = _line_row(title, budgeted, actual, is_income)
    section["title"] = section.pop("name")
    section["lines"] = [r for r in rows if r["budgeted"] > 0 or r["actual"] > 0]
    return section


def _derived_section(title: str, plus: Dict[str, Any], minus: Dict[str, Any]) -> Dict[str, Any]:
    budgeted = plus["budgeted"] - minus["budgeted"]
    actual = plus["actual"] - minus["actual"]
    section = _line_row(title, budgeted, actual, is_income=True)
    section["title"] = section.pop("name")
    section["lines"] = []
    return section


def _actuals_by_subcategory(records: List[Transaction]) -> Dict[str, Dict[str, Decimal]]:
    """{kind: {lowercased subcategory: total}} for records with a usable kind and amount."""
    actuals: Dict[str, Dict[str, Decimal]] = {KIND_INCOME: {}, KIND_EXPENSE: {}, KIND_LIABILITY: {}}
    for tx in records:
        amount = coerce_amount(tx.amount)
        if amount is None or flow_direction(tx.kind) is None:
            continue
        kind = tx.kind.strip().capitalize()
        key = (tx.subcategory or '').strip().lower()
        actuals[kind][key] = actuals[kind].get(key, ZERO) + amount
    return actuals


def build_variance_report(budget: Budget, transactions: List[Transaction], templates: List[RecurringTemplate],
                          month: dt.date) -> Dict[str, Any]:
    """Budget-vs-actual for one month.

    Income variance is actual - budgeted; expense and liability variance is
    budgeted - actual, so a positive variance is always favorable.
    """
    start, end = month_start(month), month_end(month)
    occurrences = expand_occurrences(templates, start, end)
    in_month = filter_by_date(list(transactions) + occurrences, start, end)
    actuals = _actuals_by_subcategory(in_month)

    def rows_for(lines: List[BudgetLine], kind: str) -> List[Dict[str, Any]]:
        return [_line_row(line.name, line.budgeted, actuals[kind].get(line.name.strip().lower(), ZERO),
                          is_income=(kind == KIND_INCOME))
                for line in lines]

    income_rows = rows_for(budget.income, KIND_INCOME)
    expense_rows = rows_for(budget.expenses, KIND_EXPENSE)
    liability_rows = rows_for(budget.liabilities, KIND_LIABILITY)

    overspent = [r["name"] for r in expense_rows + liability_rows if r["actual"] > r["budgeted"]]
    favorable = sum((r["budgeted"] - r["actual"] for r in expense_rows if r["budgeted"] > r["actual"]), ZERO)
    unfavorable = sum((r["actual"] - r["budgeted"] for r in expense_rows if r["actual"] > r["budgeted"]), ZERO)
    total_budgeted = sum((r["budgeted"] for r in income_rows), ZERO) - sum((r["budgeted"] for r in expense_rows), ZERO)
    total_actual = sum((r["actual"] for r in income_rows), ZERO) - sum((r["actual"] for r in expense_rows), ZERO)

    # Income-statement sections; budgeted expense lines outside the fixed layout go under overheads
    budgeted_expenses = {line.name.strip().lower(): line for line in budget.expenses}
    laid_out = {name.lower() for name in COGS_CATEGORIES + OVERHEAD_CATEGORIES}
    extra_overheads = [line.name for line in budget.expenses if line.name.strip().lower() not in laid_out]

    def expense_row(name: str) -> Dict[str, Any]:
        line = budgeted_expenses.get(name.lower())
        budgeted = line.budgeted if line else ZERO
        return _line_row(name, budgeted, actuals[KIND_EXPENSE].get(name.lower(), ZERO), is_income=False)

    net_sales = _section('Net Sales', income_rows, is_income=True)
    cogs = _section('Less: Cost of Goods Sold', [expense_row(n) for n in COGS_CATEGORIES], is_income=False)
    gross_profit = _derived_section('Gross Profit', net_sales, cogs)
    overheads = _section('Less: Overheads', [expense_row(n) for n in OVERHEAD_CATEGORIES + extra_overheads],
                         is_income=False)
    net_profit = _derived_section('Net Profit', gross_profit, overheads)

    if overspent:
        log.info(f"Variance {start:%Y-%m}: overspent in {', '.join(overspent)}.")

    return {
        "month": start.strftime('%Y-%m'),
        "month_label": start.strftime('%B %Y'),
        "budget_name": budget.name,
        "income": income_rows,
        "expenses": expense_rows,
        "liabilities": liability_rows,
        "overspent": overspent,
        "total_budgeted": total_budgeted,
        "total_actual": total_actual,
        "favorable_total": favorable,
        "unfavorable_total": unfavorable,
        "sections": [net_sales, cogs, gross_profit, overheads, net_profit],
    }


# --- Goals and debts ---
def goal_progress(goal: FinancialGoal) -> Dict[str, Any]:
    remaining = max(goal.target_amount - goal.current_amount, ZERO)
    return {
        "id": goal.id,
        "name": goal.name,
        "target_amount": goal.target_amount,
        "current_amount": goal.current_amount,
        "remaining": remaining,
        "progress_percent": min(percent(goal.current_amount, goal.target_amount, TENTH), HUNDRED),
        "deadline": goal.deadline,
        "is_complete": goal.current_amount >= goal.target_amount,
    }


def apply_goal_contribution(goal: FinancialGoal, amount: Decimal) -> FinancialGoal:
    """Add a contribution; the saved amount never exceeds the target."""
    if amount is None or amount <= 0:
        raise ValueError("Contribution amount must be positive.")
    goal.current_amount = min(goal.current_amount + amount, goal.target_amount)
    return goal


def debt_status(debt: Debt, as_of: Optional[dt.date] = None) -> Dict[str, Any]:
    remaining = max(debt.total_amount - debt.amount_paid, ZERO)
    due = coerce_date(debt.next_payment_due)
    return {
        "id": debt.id,
        "creditor": debt.creditor,
        "total_amount": debt.total_amount,
        "amount_paid": debt.amount_paid,
        "remaining": remaining,
        "interest_rate": debt.interest_rate,
        "progress_percent": min(percent(debt.amount_paid, debt.total_amount, TENTH), HUNDRED),
        "next_payment_due": due,
        "is_paid_off": remaining == 0,
        "is_overdue": bool(as_of and due and due < as_of and remaining > 0),
    }


def apply_debt_payment(debt: Debt, amount: Decimal) -> Debt:
    if amount is None or amount <= 0:
        raise ValueError("Payment amount must be positive.")
    debt.amount_paid = min(debt.amount_paid + amount, debt.total_amount)
    return debt


# --- Dashboard ---
def build_dashboard_summary(transactions: List[Transaction], templates: List[RecurringTemplate],
                            as_of: dt.date, goals: Optional[List[FinancialGoal]] = None) -> Dict[str, Any]:
    """Headline figures over everything up to `as_of`, plus a six-month chart."""
    earliest = earliest_known_date(transactions, templates)
    occurrences = expand_occurrences(templates, earliest, as_of) if earliest and earliest <= as_of else []
    to_date = filter_by_date(list(transactions) + occurrences, None, as_of)

    net_revenue = ZERO
    total_expenses = ZERO
    for tx in to_date:
        amount = coerce_amount(tx.amount)
        direction = flow_direction(tx.kind)
        if amount is None or direction is None:
            continue
        if direction > 0:
            net_revenue += amount
        else:
            total_expenses += amount
    cash_reserve = net_revenue - total_expenses
    profit_margin = percent(cash_reserve, net_revenue, TENTH) if net_revenue > 0 else Decimal('0.0')

    chart_start = month_start(as_of - relativedelta(months=DASHBOARD_CHART_MONTHS - 1))
    chart = aggregate_by_periods(to_date, month_periods(chart_start, as_of))
    chart_data = [{"month": b.start.strftime('%b'), "income": b.inflow_total, "expenses": b.outflow_total}
                  for b in chart.buckets]

    recent = [tx for tx in reversed(to_date) if signed_amount(tx) is not None][:RECENT_TRANSACTIONS]

    return {
        "as_of": as_of,
        "net_revenue": net_revenue,
        "total_expenses": total_expenses,
        "cash_reserve": cash_reserve,
        "profit_margin": profit_margin,
        "chart_data": chart_data,
        "recent_transactions": [tx.to_dict() for tx in recent],
        "goals": [goal_progress(g) for g in (goals or [])[:DASHBOARD_GOALS]],
    }
