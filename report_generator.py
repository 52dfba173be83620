# report_generator.py
import argparse
import csv
import datetime
import io
import json
import os
import sys
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

import csv_parser
from config import settings
from recurrence import (Transaction, RecurringTemplate, PeriodSummary, expand_occurrences, aggregate_by_periods,
                        month_periods, earliest_known_date, filter_by_date, coerce_amount, flow_direction, coerce_date)
from insights import build_variance_report
from database_supabase import Budget, BudgetLine

REPORTS_BASE_DIR = "reports"
BOM = '\ufeff'

REPORT_INCOME_VS_EXPENSE = 'income-vs-expense'
REPORT_BUDGET_VARIANCE = 'budget-variance'
REPORT_CASH_FLOW = 'cash-flow-statement'
REPORT_TRANSACTIONS = 'transactions'
REPORT_TYPES = (REPORT_INCOME_VS_EXPENSE, REPORT_BUDGET_VARIANCE, REPORT_CASH_FLOW, REPORT_TRANSACTIONS)

CENT = Decimal('0.01')


class ReportDataError(Exception):
    """The selected range or month has nothing to report on."""


def valid_date(s: str) -> datetime.date:
    try:
        return datetime.datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        msg = f"Not a valid date: '{s}'. Expected YYYY-MM-DD format."
        raise argparse.ArgumentTypeError(msg)


def report_filename(report_type: str, generated_on: datetime.date) -> str:
    return f"report-{report_type}-{generated_on.strftime('%Y-%m-%d')}.csv"


# --- Cell formatting ---
def format_currency(value: Decimal) -> str:
    quantized = Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    return f"{settings.CURRENCY_SYMBOL}{quantized:,.2f}"


def format_plain(value: Any) -> str:
    amount = coerce_amount(value)
    if amount is None:
        return ''
    return f"{amount.quantize(CENT, rounding=ROUND_HALF_UP):.2f}"


def format_percent(value: Decimal) -> str:
    return f"{Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP):.2f}%"


def _long_date(value: datetime.date) -> str:
    return f"{value.day}-{value.strftime('%b-%Y')}"


def _spaced_date(value: datetime.date) -> str:
    return f"{value.day} {value.strftime('%b %Y')}"


def _finish(buffer: io.StringIO) -> str:
    return BOM + buffer.getvalue()


# --- Renderers ---
def render_income_vs_expense(records: List[Transaction]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    total_income = Decimal('0')
    total_expense = Decimal('0')
    rows = []
    for tx in records:
        amount = coerce_amount(tx.amount)
        direction = flow_direction(tx.kind)
        if amount is None or direction is None:
            continue
        income_cell, expense_cell = '', ''
        if direction > 0:
            total_income += amount
            income_cell = format_plain(amount)
        else:
            total_expense += amount
            expense_cell = format_plain(amount)
        rows.append([_long_date(coerce_date(tx.date)), tx.payment_method or '', tx.description or '',
                     tx.subcategory or '', income_cell, expense_cell])

    writer.writerow(['Income vs Expense'])
    writer.writerow([])
    writer.writerow(['Total Income:', format_plain(total_income)])
    writer.writerow(['Total Expense:', format_plain(total_expense)])
    writer.writerow([])
    writer.writerow(['Date', 'Account', 'Description', 'Category', 'Income', 'Expense'])
    writer.writerows(rows)
    return _finish(buffer)


def render_budget_variance(report: Dict[str, Any]) -> str:
    """Income-statement style CSV from insights.build_variance_report output."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    writer.writerow(['Budget vs Actual Variance'])
    writer.writerow([f"For {report['month_label']}"])
    writer.writerow([])
    writer.writerow(['Title', 'Budget', 'Actual', 'Budget Variance', 'Percentage Variance'])

    def row(title: str, data: Dict[str, Any]) -> List[str]:
        return [title, format_currency(data['budgeted']), format_currency(data['actual']),
                format_currency(data['variance']), format_percent(data['percentage'])]

    for section in report['sections']:
        writer.writerow(row(section['title'], section))
        for line in section['lines']:
            writer.writerow(row(f"  {line['name']}", line))
    return _finish(buffer)


def render_cash_flow_statement(summary: PeriodSummary, start: datetime.date, end: datetime.date) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    buckets = summary.buckets

    inflow_categories: List[str] = []
    outflow_categories: List[str] = []
    for bucket in buckets:
        for name in bucket.inflow_by_category:
            if name not in inflow_categories:
                inflow_categories.append(name)
        for name in bucket.outflow_by_category:
            if name not in outflow_categories:
                outflow_categories.append(name)

    def values(getter) -> List[str]:
        return [format_currency(getter(b)) for b in buckets]

    writer.writerow(['Cash Flow Statement'])
    writer.writerow([f"For period {_spaced_date(start)} to {_spaced_date(end)}"])
    writer.writerow([])
    writer.writerow(['Category'] + [b.start.strftime('%b %Y') for b in buckets])
    writer.writerow(['Cash inflow'] + [''] * len(buckets))
    for name in inflow_categories:
        writer.writerow([name] + values(lambda b, n=name: b.inflow_by_category.get(n, Decimal('0'))))
    writer.writerow(['Total cash inflow'] + values(lambda b: b.inflow_total))
    writer.writerow(['Cash outflow'] + [''] * len(buckets))
    for name in outflow_categories:
        writer.writerow([name] + values(lambda b, n=name: b.outflow_by_category.get(n, Decimal('0'))))
    writer.writerow(['Total cash outflow'] + values(lambda b: b.outflow_total))
    writer.writerow(['Net cash flow'] + values(lambda b: b.net_change))
    writer.writerow(['Opening balance'] + values(lambda b: b.opening_balance))
    writer.writerow(['Closing balance'] + values(lambda b: b.running_balance))
    return _finish(buffer)


def render_transactions(records: List[Transaction]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    writer.writerow(['Date', 'Description', 'Category', 'Subcategory', 'Amount', 'PaymentMethod'])
    for tx in records:
        writer.writerow([coerce_date(tx.date).isoformat(), tx.description or '', tx.kind or '', tx.subcategory or '',
                         format_plain(tx.amount), tx.payment_method or ''])
    return _finish(buffer)


# --- Entry point used by the API and the CLI ---
def build_report(report_type: str, transactions: List[Transaction], templates: List[RecurringTemplate],
                 start_date: datetime.date, end_date: datetime.date, budget: Optional[Budget] = None) -> str:
    """Render one report type as CSV text (with a leading BOM).

    Recurring templates are expanded from the earliest known date through
    end_date, so balances carried into the range include past occurrences.
    """
    if report_type not in REPORT_TYPES:
        raise ValueError(f"Unknown report type '{report_type}'. Expected one of: {', '.join(REPORT_TYPES)}")
    if start_date > end_date:
        raise ValueError("Start date cannot be after end date.")

    if report_type == REPORT_BUDGET_VARIANCE:
        if budget is None:
            raise ReportDataError(f"No budget set for {start_date.strftime('%B %Y')}.")
        return render_budget_variance(build_variance_report(budget, transactions, templates, start_date))

    earliest = earliest_known_date(transactions, templates)
    generation_start = min(earliest, start_date) if earliest else start_date
    occurrences = expand_occurrences(templates, generation_start, end_date)
    merged = list(transactions) + occurrences
    in_range = filter_by_date(merged, start_date, end_date)
    if not in_range:
        raise ReportDataError("No transactions found in the selected range.")

    if report_type == REPORT_INCOME_VS_EXPENSE:
        return render_income_vs_expense(in_range)
    if report_type == REPORT_CASH_FLOW:
        summary = aggregate_by_periods(merged, month_periods(start_date, end_date))
        return render_cash_flow_statement(summary, start_date, end_date)
    return render_transactions(in_range)


def _load_budget(path: str, month: datetime.date) -> Budget:
    with open(path, 'r', encoding='utf-8') as fh:
        data = json.load(fh)
    return Budget(
        id=None, user_id=csv_parser.CLI_USER_ID, name=data.get('name', 'Budget'), month=month,
        income=[BudgetLine.from_dict(item) for item in data.get('income', [])],
        expenses=[BudgetLine.from_dict(item) for item in data.get('expenses', [])],
        liabilities=[BudgetLine.from_dict(item) for item in data.get('liabilities', [])],
    )


def _parse_file(path: str, parse_func) -> list:
    if not os.path.exists(path):
        print(f"Warning: File not found, skipped: {path}")
        return []
    with open(path, 'rb') as fb:
        file_object = io.BytesIO(fb.read())
    parsed = parse_func(user_id=csv_parser.CLI_USER_ID, file_obj=file_object, filename=os.path.basename(path))
    print(f"Parsed {len(parsed)} records from {os.path.basename(path)}.")
    return parsed


def main(argv: Optional[List[str]] = None) -> int:
    arg_parser = argparse.ArgumentParser(description="Export CSV reports from transaction and recurring CSV files.")
    arg_parser.add_argument("report_type", choices=REPORT_TYPES, help="Report to generate.")
    arg_parser.add_argument("--transactions", nargs="*", default=[], help="Transaction CSV files.")
    arg_parser.add_argument("--recurring", nargs="*", default=[], help="Recurring-transaction CSV files.")
    arg_parser.add_argument("--budget", help="Budget JSON file (required for budget-variance).")
    arg_parser.add_argument("--start-date", type=valid_date, required=True, help="Start of the range (YYYY-MM-DD).")
    arg_parser.add_argument("--end-date", type=valid_date, required=True, help="End of the range (YYYY-MM-DD).")
    arg_parser.add_argument("-o", "--output-dir", default=REPORTS_BASE_DIR, help="Directory for the report file.")
    args = arg_parser.parse_args(argv)

    if args.start_date > args.end_date:
        print("Error: Start date cannot be after end date.")
        return 1

    transactions: List[Transaction] = []
    templates: List[RecurringTemplate] = []
    try:
        for path in args.transactions:
            transactions.extend(_parse_file(path, csv_parser.parse_transactions_csv))
        for path in args.recurring:
            templates.extend(_parse_file(path, csv_parser.parse_recurring_csv))
        budget = _load_budget(args.budget, args.start_date) if args.budget else None
    except (ValueError, OSError) as e:
        print(f"Error reading input: {e}")
        return 1

    try:
        content = build_report(args.report_type, transactions, templates, args.start_date, args.end_date, budget)
    except ReportDataError as e:
        print(f"No report written: {e}")
        return 1

    os.makedirs(args.output_dir, exist_ok=True)
    output_path = os.path.join(args.output_dir, report_filename(args.report_type, datetime.date.today()))
    with open(output_path, 'w', encoding='utf-8', newline='') as fh:
        fh.write(content)
    print(f"Report written to {output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
