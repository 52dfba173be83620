import csv
import datetime as dt
import io
import json
from decimal import Decimal

import pytest

from conftest import make_tx, make_template
from database_supabase import Budget, BudgetLine
import report_generator
from report_generator import build_report, ReportDataError, BOM

D = dt.date


def rows_of(content):
    assert content.startswith(BOM)
    return list(csv.reader(io.StringIO(content[len(BOM):])))


@pytest.fixture
def ledger():
    transactions = [make_tx(D(2024, 1, 10), 10000, "Income", subcategory="Sales", description="Walk-in sales",
                            payment_method="Cash"),
                    make_tx(D(2024, 2, 3), 1250.5, "Expense", subcategory="Utilities", description="Power bill",
                            payment_method="GCash"),
                    make_tx(D(2024, 4, 1), 700, "Expense", subcategory="Travel", description="Outside range")]
    templates = [make_template(D(2023, 12, 1), 5000, "Expense", subcategory="Rent", description="Shop rent")]
    return transactions, templates


def test_report_filename():
    assert report_generator.report_filename("cash-flow-statement", D(2024, 6, 5)) == \
        "report-cash-flow-statement-2024-06-05.csv"


def test_format_helpers():
    assert report_generator.format_currency(Decimal("1234.5")) == "₱1,234.50"
    assert report_generator.format_currency(Decimal("-20")) == "₱-20.00"
    assert report_generator.format_plain("12.345") == "12.35"
    assert report_generator.format_plain("abc") == ""
    assert report_generator.format_percent(Decimal("-16.666")) == "-16.67%"


def test_income_vs_expense_report(ledger):
    transactions, templates = ledger
    rows = rows_of(build_report("income-vs-expense", transactions, templates, D(2024, 1, 1), D(2024, 2, 29)))

    assert rows[0] == ["Income vs Expense"]
    assert rows[2] == ["Total Income:", "10000.00"]
    assert rows[3] == ["Total Expense:", "11250.50"]
    assert rows[5] == ["Date", "Account", "Description", "Category", "Income", "Expense"]
    body = rows[6:]
    assert body[0] == ["1-Jan-2024", "", "Shop rent (Recurring)", "Rent", "", "5000.00"]
    assert body[1] == ["10-Jan-2024", "Cash", "Walk-in sales", "Sales", "10000.00", ""]
    assert len(body) == 4


def test_transactions_report_is_limited_to_the_range(ledger):
    transactions, templates = ledger
    rows = rows_of(build_report("transactions", transactions, templates, D(2024, 2, 1), D(2024, 2, 29)))

    assert rows[0] == ["Date", "Description", "Category", "Subcategory", "Amount", "PaymentMethod"]
    assert rows[1:] == [
        ["2024-02-01", "Shop rent (Recurring)", "Expense", "Rent", "5000.00", ""],
        ["2024-02-03", "Power bill", "Expense", "Utilities", "1250.50", "GCash"],
    ]


def test_cash_flow_statement_report(ledger):
    transactions, templates = ledger
    rows = rows_of(build_report("cash-flow-statement", transactions, templates, D(2024, 1, 1), D(2024, 2, 29)))

    assert rows[0] == ["Cash Flow Statement"]
    assert rows[1] == ["For period 1 Jan 2024 to 29 Feb 2024"]
    assert rows[3] == ["Category", "Jan 2024", "Feb 2024"]
    by_title = {row[0]: row[1:] for row in rows[4:]}
    assert by_title["Sales"] == ["₱10,000.00", "₱0.00"]
    assert by_title["Rent"] == ["₱5,000.00", "₱5,000.00"]
    assert by_title["Total cash outflow"] == ["₱5,000.00", "₱6,250.50"]
    # December's rent is carried in as the opening balance
    assert by_title["Opening balance"] == ["₱-5,000.00", "₱0.00"]
    assert by_title["Closing balance"] == ["₱0.00", "₱-6,250.50"]


def test_budget_variance_report(ledger):
    transactions, templates = ledger
    budget = Budget(id="b1", user_id="user-1", name="Feb", month=D(2024, 2, 1),
                    income=[BudgetLine("Sales", Decimal("8000"))],
                    expenses=[BudgetLine("Rent", Decimal("5000")), BudgetLine("Utilities", Decimal("1000"))])
    rows = rows_of(build_report("budget-variance", transactions, templates, D(2024, 2, 1), D(2024, 2, 29), budget))

    assert rows[0] == ["Budget vs Actual Variance"]
    assert rows[1] == ["For February 2024"]
    assert rows[3] == ["Title", "Budget", "Actual", "Budget Variance", "Percentage Variance"]
    by_title = {row[0]: row[1:] for row in rows[4:]}
    assert by_title["Net Sales"] == ["₱8,000.00", "₱0.00", "₱-8,000.00", "-100.00%"]
    assert by_title["  Utilities"] == ["₱1,000.00", "₱1,250.50", "₱-250.50", "-25.05%"]


def test_budget_variance_without_budget():
    with pytest.raises(ReportDataError, match="No budget set for February 2024."):
        build_report("budget-variance", [], [], D(2024, 2, 1), D(2024, 2, 29))


def test_empty_range_raises_report_data_error(ledger):
    transactions, templates = ledger
    with pytest.raises(ReportDataError, match="No transactions found in the selected range."):
        build_report("transactions", transactions, [], D(2020, 1, 1), D(2020, 12, 31))


def test_invalid_arguments():
    with pytest.raises(ValueError):
        build_report("pdf", [], [], D(2024, 1, 1), D(2024, 1, 31))
    with pytest.raises(ValueError):
        build_report("transactions", [], [], D(2024, 2, 1), D(2024, 1, 31))


def test_cli_writes_report_file(tmp_path):
    tx_file = tmp_path / "tx.csv"
    tx_file.write_text("Date,Description,Amount\n2024-01-05,Sale,100\n2024-01-06,Supplies,-40\n", encoding="utf-8")
    rec_file = tmp_path / "rec.csv"
    rec_file.write_text("Description,Amount,Category,Frequency,Start Date\nRent,30,Expense,monthly,2024-01-01\n",
                        encoding="utf-8")
    out_dir = tmp_path / "out"

    code = report_generator.main(["transactions", "--transactions", str(tx_file), "--recurring", str(rec_file),
                                  "--start-date", "2024-01-01", "--end-date", "2024-01-31",
                                  "-o", str(out_dir)])

    assert code == 0
    written = list(out_dir.iterdir())
    assert len(written) == 1
    rows = rows_of(written[0].read_text(encoding="utf-8"))
    assert [row[1] for row in rows[1:]] == ["Rent (Recurring)", "Sale", "Supplies"]


def test_cli_budget_variance_uses_budget_file(tmp_path):
    tx_file = tmp_path / "tx.csv"
    tx_file.write_text("Date,Description,Amount,Category,Subcategory\n2024-03-02,Sale,900,Income,Sales\n",
                       encoding="utf-8")
    budget_file = tmp_path / "budget.json"
    budget_file.write_text(json.dumps({"name": "March", "income": [{"name": "Sales", "budgeted": 1000}]}),
                           encoding="utf-8")
    out_dir = tmp_path / "out"

    code = report_generator.main(["budget-variance", "--transactions", str(tx_file), "--budget", str(budget_file),
                                  "--start-date", "2024-03-01", "--end-date", "2024-03-31",
                                  "-o", str(out_dir)])

    assert code == 0
    rows = rows_of(next(out_dir.iterdir()).read_text(encoding="utf-8"))
    assert rows[1] == ["For March 2024"]


def test_cli_without_budget_for_variance_fails(tmp_path, capsys):
    code = report_generator.main(["budget-variance", "--start-date", "2024-03-01", "--end-date", "2024-03-31",
                                  "-o", str(tmp_path)])
    assert code == 1
    assert "No budget set for March 2024." in capsys.readouterr().out
