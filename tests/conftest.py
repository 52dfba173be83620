import datetime as dt
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

import database_supabase as db_supabase
from database_supabase import User
from api_main import app
from auth.dependencies import get_current_supabase_user
from models_pydantic import UserPydantic
from recurrence import Transaction, RecurringTemplate
from routers.common import get_today

TEST_USER = UserPydantic(id="user-1", email="owner@example.com", username="owner")
TODAY = dt.date(2024, 6, 15)


def make_tx(date, amount, kind, subcategory=None, description="Item", id=None, payment_method=None):
    return Transaction(id=id or f"tx-{date}-{description}", date=date, description=description,
                       amount=Decimal(str(amount)) if isinstance(amount, (int, float)) else amount,
                       kind=kind, subcategory=subcategory, payment_method=payment_method, user_id=TEST_USER.id)


def make_template(start, amount, kind, cadence="monthly", end=None, subcategory=None, description="Rent",
                  id="tpl-1"):
    return RecurringTemplate(id=id, description=description, amount=Decimal(str(amount)), kind=kind,
                             cadence=cadence, start_date=start, end_date=end, subcategory=subcategory,
                             user_id=TEST_USER.id)


class FakeStore:
    """In-memory replacement for the database_supabase functions the routers call."""

    def __init__(self):
        self.transactions = []
        self.templates = []
        self.budgets = []
        self.goals = []
        self.debts = []
        self.profiles = {}
        self.fail_profile_writes = False

    def find(self, rows, record_id):
        return next((row for row in rows if row.id == record_id), None)

    def update(self, rows, record_id, fields):
        row = self.find(rows, record_id)
        if row is not None:
            for key, value in fields.items():
                setattr(row, key, value)
        return row

    def delete(self, name, record_id):
        rows = getattr(self, name)
        kept = [row for row in rows if row.id != record_id]
        setattr(self, name, kept)
        return len(kept) < len(rows)

    def add(self, rows, record, prefix):
        record.id = f"{prefix}-{len(rows) + 1}"
        rows.append(record)
        return record


@pytest.fixture
def store(monkeypatch):
    data = FakeStore()

    monkeypatch.setattr(db_supabase, "get_all_transactions",
                        lambda user_id, start_date=None, end_date=None, kind=None, subcategory=None:
                        list(data.transactions))
    monkeypatch.setattr(db_supabase, "create_transaction",
                        lambda user_id, tx: data.add(data.transactions, tx, "tx"))
    monkeypatch.setattr(db_supabase, "update_transaction",
                        lambda user_id, tx_id, fields: data.update(data.transactions, tx_id, fields))
    monkeypatch.setattr(db_supabase, "delete_transaction",
                        lambda user_id, tx_id: data.delete("transactions", tx_id))

    def save_transactions(user_id, transactions):
        data.transactions.extend(transactions)
        return len(transactions)
    monkeypatch.setattr(db_supabase, "save_transactions", save_transactions)

    monkeypatch.setattr(db_supabase, "get_recurring_transactions", lambda user_id: list(data.templates))
    monkeypatch.setattr(db_supabase, "create_recurring_transaction",
                        lambda user_id, template: data.add(data.templates, template, "tpl"))
    monkeypatch.setattr(db_supabase, "update_recurring_transaction",
                        lambda user_id, template_id, fields: data.update(data.templates, template_id, fields))
    monkeypatch.setattr(db_supabase, "delete_recurring_transaction",
                        lambda user_id, template_id: data.delete("templates", template_id))

    monkeypatch.setattr(db_supabase, "get_budgets", lambda user_id: list(data.budgets))
    monkeypatch.setattr(db_supabase, "get_budget_for_month",
                        lambda user_id, month: next((b for b in data.budgets if b.month == month.replace(day=1)),
                                                    None))

    def upsert_budget(user_id, budget):
        data.budgets = [b for b in data.budgets if b.month != budget.month]
        budget.id = f"budget-{budget.month:%Y-%m}"
        data.budgets.append(budget)
        return budget
    monkeypatch.setattr(db_supabase, "upsert_budget", upsert_budget)
    monkeypatch.setattr(db_supabase, "delete_budget", lambda user_id, budget_id: data.delete("budgets", budget_id))

    monkeypatch.setattr(db_supabase, "get_goals", lambda user_id: list(data.goals))
    monkeypatch.setattr(db_supabase, "get_goal", lambda user_id, goal_id: data.find(data.goals, goal_id))
    monkeypatch.setattr(db_supabase, "create_goal", lambda user_id, goal: data.add(data.goals, goal, "goal"))
    monkeypatch.setattr(db_supabase, "update_goal",
                        lambda user_id, goal_id, fields: data.update(data.goals, goal_id, fields))
    monkeypatch.setattr(db_supabase, "delete_goal", lambda user_id, goal_id: data.delete("goals", goal_id))

    monkeypatch.setattr(db_supabase, "get_debts", lambda user_id: list(data.debts))
    monkeypatch.setattr(db_supabase, "get_debt", lambda user_id, debt_id: data.find(data.debts, debt_id))
    monkeypatch.setattr(db_supabase, "create_debt", lambda user_id, debt: data.add(data.debts, debt, "debt"))
    monkeypatch.setattr(db_supabase, "update_debt",
                        lambda user_id, debt_id, fields: data.update(data.debts, debt_id, fields))
    monkeypatch.setattr(db_supabase, "delete_debt", lambda user_id, debt_id: data.delete("debts", debt_id))

    monkeypatch.setattr(db_supabase, "get_user_profile_by_id", lambda user_id: data.profiles.get(user_id))

    def create_user_profile(user_id, email, username=None):
        if data.fail_profile_writes:
            return None
        existing = data.profiles.get(user_id)
        # an existing username wins, as in the real upsert
        name = (existing.username if existing else None) or username or email.split('@')[0]
        data.profiles[user_id] = User(id=user_id, email=email, username=name)
        return data.profiles[user_id]
    monkeypatch.setattr(db_supabase, "create_user_profile", create_user_profile)

    return data


@pytest.fixture
def client(store):
    app.dependency_overrides[get_current_supabase_user] = lambda: TEST_USER
    app.dependency_overrides[get_today] = lambda: TODAY
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
