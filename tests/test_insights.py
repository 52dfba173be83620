import datetime as dt
from decimal import Decimal

import pytest

from conftest import make_tx, make_template
from database_supabase import Budget, BudgetLine, Debt, FinancialGoal
import insights

D = dt.date


def budget_for(month, income=(), expenses=(), liabilities=()):
    return Budget(id="b1", user_id="user-1", name="June plan", month=month,
                  income=[BudgetLine(n, Decimal(str(v))) for n, v in income],
                  expenses=[BudgetLine(n, Decimal(str(v))) for n, v in expenses],
                  liabilities=[BudgetLine(n, Decimal(str(v))) for n, v in liabilities])


# --- Cash-flow statement ---
def test_statement_carries_prior_year_recurring_items_into_beginning_balance():
    templates = [make_template(D(2023, 1, 1), 25000, "Expense")]
    transactions = [make_tx(D(2024, 3, 10), 5000, "Income")]
    statement = insights.build_cash_flow_statement(transactions, templates, 2024, D(2024, 12, 31))

    assert statement["beginning_balance"] == Decimal("-300000")
    assert statement["ending_balance"] == Decimal("-595000")
    assert statement["total_inflows"] == Decimal("5000")
    assert statement["total_outflows"] == Decimal("300000")
    assert statement["net_cash_flow"] == Decimal("-295000")
    assert len(statement["months"]) == 12
    march = statement["months"][2]
    assert march["month"] == "2024-03"
    assert march["label"] == "Mar 2024"
    assert march["inflow_total"] == Decimal("5000")


def test_statement_stops_at_as_of_date():
    templates = [make_template(D(2024, 1, 1), 100, "Expense")]
    transactions = [make_tx(D(2024, 6, 20), 50, "Income")]
    statement = insights.build_cash_flow_statement(transactions, templates, 2024, D(2024, 6, 15))

    assert [m["month"] for m in statement["months"]][-1] == "2024-06"
    assert statement["months"][-1]["end"] == D(2024, 6, 15)
    assert statement["total_outflows"] == Decimal("600")
    assert statement["total_inflows"] == Decimal("0")


def test_statement_for_a_year_that_has_not_started():
    with pytest.raises(ValueError):
        insights.build_cash_flow_statement([], [], 2030, D(2024, 6, 15))


def test_statement_with_no_data_is_all_zero():
    statement = insights.build_cash_flow_statement([], [], 2024, D(2024, 12, 31))
    assert statement["beginning_balance"] == Decimal("0")
    assert statement["ending_balance"] == Decimal("0")
    assert len(statement["months"]) == 12


# --- Forecast ---
def test_forecast_projects_balance_from_recurring_templates():
    transactions = [make_tx(D(2024, 1, 10), 10000, "Income", description="a"),
                    make_tx(D(2024, 2, 10), 2000, "Expense", description="b")]
    templates = [make_template(D(2024, 1, 1), 5000, "Expense", id="rent"),
                 make_template(D(2024, 1, 15), 3000, "Income", id="retainer")]
    forecast = insights.build_cash_flow_forecast(transactions, templates, D(2024, 7, 1), 3)

    assert forecast["initial_balance"] == Decimal("8000")
    assert forecast["start_month"] == "2024-07"
    assert [row["month"] for row in forecast["forecast"]] == ["2024-07", "2024-08", "2024-09"]
    assert [row["balance"] for row in forecast["forecast"]] == [Decimal("6000"), Decimal("4000"),
                                                                 Decimal("2000")]
    assert forecast["net_cash_flow"] == Decimal("-6000")
    assert forecast["lowest_point"] == Decimal("2000")
    assert forecast["lowest_point_month"] == "Sep 2024"


def test_forecast_lowest_point_is_start_when_balance_only_grows():
    templates = [make_template(D(2024, 1, 1), 100, "Income")]
    forecast = insights.build_cash_flow_forecast([], templates, D(2024, 7, 20))
    assert forecast["months"] == 6
    assert forecast["start_month"] == "2024-07"
    assert forecast["lowest_point"] == Decimal("0")
    assert forecast["lowest_point_month"] == "Jul 2024"


def test_forecast_rejects_zero_months():
    with pytest.raises(ValueError):
        insights.build_cash_flow_forecast([], [], D(2024, 7, 1), 0)


# --- Variance ---
def test_variance_compares_budget_with_actuals_including_occurrences():
    month = D(2024, 6, 1)
    budget = budget_for(month,
                        income=[("Sales", 50000)],
                        expenses=[("Rent", 15000), ("Utilities", 3000), ("Cost of Goods Sold", 20000),
                                  ("Fuel", 1000)],
                        liabilities=[("Bank Loan", 5000)])
    transactions = [make_tx(D(2024, 6, 5), 55000, "Income", subcategory="Sales", description="a"),
                    make_tx(D(2024, 6, 9), 3500, "Expense", subcategory="utilities", description="b"),
                    make_tx(D(2024, 6, 10), 18000, "Expense", subcategory="Cost of Goods Sold", description="c"),
                    make_tx(D(2024, 6, 12), 6000, "Liability", subcategory="Bank Loan", description="d"),
                    make_tx(D(2024, 5, 30), 9999, "Expense", subcategory="Rent", description="may")]
    templates = [make_template(D(2024, 1, 1), 15000, "Expense", subcategory="Rent")]

    report = insights.build_variance_report(budget, transactions, templates, month)

    assert report["month"] == "2024-06"
    assert report["month_label"] == "June 2024"
    sales = report["income"][0]
    assert (sales["actual"], sales["variance"], sales["percentage"]) == (Decimal("55000"), Decimal("5000"),
                                                                         Decimal("10.00"))
    by_name = {row["name"]: row for row in report["expenses"]}
    assert by_name["Rent"]["actual"] == Decimal("15000")
    assert by_name["Rent"]["variance"] == Decimal("0")
    assert by_name["Utilities"]["variance"] == Decimal("-500")
    assert by_name["Utilities"]["percentage"] == Decimal("-16.67")
    assert by_name["Fuel"]["actual"] == Decimal("0")
    assert report["overspent"] == ["Utilities", "Bank Loan"]
    assert report["favorable_total"] == Decimal("3000")
    assert report["unfavorable_total"] == Decimal("500")
    assert report["total_budgeted"] == Decimal("50000") - Decimal("39000")
    assert report["total_actual"] == Decimal("55000") - Decimal("36500")

    sections = {s["title"]: s for s in report["sections"]}
    assert list(sections) == ["Net Sales", "Less: Cost of Goods Sold", "Gross Profit", "Less: Overheads",
                              "Net Profit"]
    assert sections["Gross Profit"]["actual"] == Decimal("37000")
    assert sections["Gross Profit"]["budgeted"] == Decimal("30000")
    overhead_names = [line["name"] for line in sections["Less: Overheads"]["lines"]]
    assert overhead_names == ["Rent", "Utilities", "Fuel"]
    assert sections["Net Profit"]["actual"] == Decimal("37000") - Decimal("18500")


def test_variance_percentage_is_zero_when_nothing_budgeted():
    budget = budget_for(D(2024, 6, 1), expenses=[("Rent", 0)])
    transactions = [make_tx(D(2024, 6, 2), 100, "Expense", subcategory="Rent")]
    report = insights.build_variance_report(budget, transactions, [], D(2024, 6, 15))
    assert report["expenses"][0]["percentage"] == Decimal("0.00")
    assert report["overspent"] == ["Rent"]


# --- Goals and debts ---
def test_goal_contribution_is_capped_at_target():
    goal = FinancialGoal(id="g1", user_id="user-1", name="Equipment", target_amount=Decimal("1000"),
                         current_amount=Decimal("900"))
    insights.apply_goal_contribution(goal, Decimal("250"))
    progress = insights.goal_progress(goal)
    assert progress["current_amount"] == Decimal("1000")
    assert progress["remaining"] == Decimal("0")
    assert progress["progress_percent"] == Decimal("100.0")
    assert progress["is_complete"] is True


def test_goal_contribution_must_be_positive():
    goal = FinancialGoal(id="g1", user_id="user-1", name="Equipment", target_amount=Decimal("1000"),
                         current_amount=Decimal("0"))
    with pytest.raises(ValueError):
        insights.apply_goal_contribution(goal, Decimal("0"))


def test_debt_status_and_payment():
    debt = Debt(id="d1", user_id="user-1", creditor="Bank", total_amount=Decimal("3000"),
                amount_paid=Decimal("1000"), next_payment_due=D(2024, 6, 1))
    status = insights.debt_status(debt, D(2024, 6, 15))
    assert status["remaining"] == Decimal("2000")
    assert status["progress_percent"] == Decimal("33.3")
    assert status["is_overdue"] is True
    assert status["is_paid_off"] is False

    insights.apply_debt_payment(debt, Decimal("5000"))
    status = insights.debt_status(debt, D(2024, 6, 15))
    assert status["amount_paid"] == Decimal("3000")
    assert status["is_paid_off"] is True
    assert status["is_overdue"] is False


# --- Dashboard ---
def test_dashboard_summary_totals_and_chart():
    transactions = [make_tx(D(2024, 1, 10), 10000, "Income", description="jan"),
                    make_tx(D(2024, 6, 1), 2000, "Expense", description="jun"),
                    make_tx(D(2024, 7, 1), 99999, "Income", description="future")]
    templates = [make_template(D(2024, 5, 1), 1000, "Liability", subcategory="Loan")]
    goals = [FinancialGoal(id=f"g{i}", user_id="user-1", name=f"Goal {i}", target_amount=Decimal("100"),
                           current_amount=Decimal("50")) for i in range(5)]

    summary = insights.build_dashboard_summary(transactions, templates, D(2024, 6, 15), goals)

    assert summary["net_revenue"] == Decimal("10000")
    assert summary["total_expenses"] == Decimal("4000")
    assert summary["cash_reserve"] == Decimal("6000")
    assert summary["profit_margin"] == Decimal("60.0")
    assert [p["month"] for p in summary["chart_data"]] == ["Jan", "Feb", "Mar", "Apr", "May", "Jun"]
    assert summary["chart_data"][-1]["expenses"] == Decimal("3000")
    assert [tx["description"] for tx in summary["recent_transactions"]][0] == "Rent (Recurring)"
    assert len(summary["recent_transactions"]) == 4
    assert len(summary["goals"]) == 3


def test_dashboard_summary_without_income_has_zero_margin():
    summary = insights.build_dashboard_summary([make_tx(D(2024, 6, 1), 50, "Expense")], [], D(2024, 6, 15))
    assert summary["profit_margin"] == Decimal("0.0")
    assert summary["cash_reserve"] == Decimal("-50")
