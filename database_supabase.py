# database_supabase.py
import logging
import psycopg2
from psycopg2.extras import RealDictCursor, Json, execute_batch
from decimal import Decimal, InvalidOperation
import datetime as dt
from typing import List, Optional, Tuple, Dict, Any
import os

from config import settings
from recurrence import Transaction, RecurringTemplate

log = logging.getLogger('database_supabase')
log.setLevel(logging.INFO if not settings.DEBUG_MODE else logging.DEBUG)
if not log.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - [%(name)s:%(module)s:%(funcName)s:%(lineno)d] - %(message)s')
    handler.setFormatter(formatter)
    log.addHandler(handler)


def to_decimal(value: Any) -> Optional[Decimal]:
    if value is None: return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        log.warning(f"Could not convert value '{value}' to Decimal in from_db_row.")
        return None


class User:
    def __init__(self, id: str, email: str, username: Optional[str] = None):
        self.id = id
        self.email = email
        self.username = username if username else email.split('@')[0]

    @classmethod
    def from_db_row(cls, row: Dict) -> Optional['User']:
        if not row: return None
        return cls(id=str(row.get('id')), email=row.get('email'), username=row.get('username'))


class BudgetLine:
    """One budgeted category, e.g. ('Rent', 15000)."""

    def __init__(self, name: str, budgeted: Decimal):
        self.name = name
        self.budgeted = budgeted

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "budgeted": str(self.budgeted)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BudgetLine':
        return cls(name=str(data.get('name', '')), budgeted=to_decimal(data.get('budgeted')) or Decimal('0'))


class Budget:
    def __init__(self, id: Optional[str], user_id: str, name: str, month: dt.date,
                 income: Optional[List[BudgetLine]] = None, expenses: Optional[List[BudgetLine]] = None,
                 liabilities: Optional[List[BudgetLine]] = None,
                 created_at: Optional[dt.datetime] = None, updated_at: Optional[dt.datetime] = None):
        self.id = id
        self.user_id = user_id
        self.name = name
        self.month = month.replace(day=1) if month else month
        self.income = income or []
        self.expenses = expenses or []
        self.liabilities = liabilities or []
        self.created_at = created_at
        self.updated_at = updated_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id, "name": self.name,
            "month": self.month.isoformat() if self.month else None,
            "income": [line.to_dict() for line in self.income],
            "expenses": [line.to_dict() for line in self.expenses],
            "liabilities": [line.to_dict() for line in self.liabilities],
        }

    @classmethod
    def from_db_row(cls, row: Dict) -> 'Budget':
        def lines(value: Any) -> List[BudgetLine]:
            return [BudgetLine.from_dict(item) for item in (value or []) if isinstance(item, dict)]

        return cls(
            id=str(row.get('id')), user_id=str(row.get('user_id')), name=row.get('name') or '',
            month=row.get('month'), income=lines(row.get('income')), expenses=lines(row.get('expenses')),
            liabilities=lines(row.get('liabilities')),
            created_at=row.get('created_at'), updated_at=row.get('updated_at'),
        )


class Debt:
    def __init__(self, id: Optional[str], user_id: str, creditor: str, total_amount: Decimal,
                 amount_paid: Decimal = Decimal('0'), interest_rate: Optional[Decimal] = None,
                 next_payment_due: Optional[dt.date] = None):
        self.id = id
        self.user_id = user_id
        self.creditor = creditor
        self.total_amount = total_amount
        self.amount_paid = amount_paid
        self.interest_rate = interest_rate
        self.next_payment_due = next_payment_due

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id, "creditor": self.creditor,
            "total_amount": str(self.total_amount), "amount_paid": str(self.amount_paid),
            "interest_rate": str(self.interest_rate) if self.interest_rate is not None else None,
            "next_payment_due": self.next_payment_due.isoformat() if self.next_payment_due else None,
        }

    @classmethod
    def from_db_row(cls, row: Dict) -> 'Debt':
        return cls(
            id=str(row.get('id')), user_id=str(row.get('user_id')), creditor=row.get('creditor') or '',
            total_amount=to_decimal(row.get('total_amount')) or Decimal('0'),
            amount_paid=to_decimal(row.get('amount_paid')) or Decimal('0'),
            interest_rate=to_decimal(row.get('interest_rate')),
            next_payment_due=row.get('next_payment_due'),
        )


class FinancialGoal:
    def __init__(self, id: Optional[str], user_id: str, name: str, target_amount: Decimal,
                 current_amount: Decimal = Decimal('0'), deadline: Optional[dt.date] = None):
        self.id = id
        self.user_id = user_id
        self.name = name
        self.target_amount = target_amount
        self.current_amount = current_amount
        self.deadline = deadline

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id, "name": self.name,
            "target_amount": str(self.target_amount), "current_amount": str(self.current_amount),
            "deadline": self.deadline.isoformat() if self.deadline else None,
        }

    @classmethod
    def from_db_row(cls, row: Dict) -> 'FinancialGoal':
        return cls(
            id=str(row.get('id')), user_id=str(row.get('user_id')), name=row.get('name') or '',
            target_amount=to_decimal(row.get('target_amount')) or Decimal('0'),
            current_amount=to_decimal(row.get('current_amount')) or Decimal('0'),
            deadline=row.get('deadline'),
        )


def _transaction_from_db_row(row: Dict) -> Transaction:
    tx = Transaction.from_dict(row)
    tx.amount = to_decimal(row.get('amount'))
    return tx


def _template_from_db_row(row: Dict) -> RecurringTemplate:
    template = RecurringTemplate.from_dict(row)
    template.amount = to_decimal(row.get('amount'))
    return template


def get_db_connection() -> Optional[psycopg2.extensions.connection]:
    db_connection_string = settings.SUPABASE_DB_CONN_STRING or os.environ.get('SUPABASE_DB_CONN_STRING')
    if not db_connection_string:
        log.error("SUPABASE_DB_CONN_STRING is not set.")
        return None
    try:
        conn = psycopg2.connect(db_connection_string)
        log.debug("Database connection successful.")
        return conn
    except psycopg2.Error as e:
        log.error(f"Error connecting to Supabase PostgreSQL: {e}", exc_info=True)
        return None


def close_db_connection(conn: Optional[psycopg2.extensions.connection], context: str = "general_operation"):
    if conn:
        try:
            conn.close()
            log.debug(f"Database connection closed for {context}.")
        except psycopg2.Error as e:
            log.error(f"Error closing PostgreSQL connection for {context}: {e}", exc_info=True)


# --- Query helpers ---
def _fetch_all(query: str, params: Tuple, context: str) -> Optional[List[Dict]]:
    """Rows as dicts, or None when the database is unreachable or the query fails."""
    conn = get_db_connection()
    if not conn: return None
    try:
        with conn.cursor(cursor_factory=RealDictCursor) as cursor:
            cursor.execute(query, params)
            return cursor.fetchall()
    except psycopg2.Error as e:
        log.error(f"DB error in {context}: {e}", exc_info=True)
        return None
    finally:
        close_db_connection(conn, context)


def _write_returning(query: str, params: Tuple, context: str) -> Optional[Dict]:
    """Execute an INSERT/UPDATE ... RETURNING and commit; the returned row or None."""
    conn = get_db_connection()
    if not conn:
        log.error(f"Cannot run {context}: No DB connection.")
        return None
    try:
        with conn.cursor(cursor_factory=RealDictCursor) as cursor:
            cursor.execute(query, params)
            row = cursor.fetchone()
        conn.commit()
        return row
    except psycopg2.Error as e:
        log.error(f"DB error in {context}: {e}", exc_info=True)
        conn.rollback()
        return None
    finally:
        close_db_connection(conn, context)


def _delete(table: str, user_id: str, record_id: str) -> bool:
    context = f"delete from {table} {record_id} for {user_id}"
    conn = get_db_connection()
    if not conn: return False
    try:
        with conn.cursor() as cursor:
            # table names come from this module only, never from request data
            cursor.execute(f"DELETE FROM public.{table} WHERE id = %s AND user_id = %s", (record_id, user_id))
            deleted = cursor.rowcount > 0
        conn.commit()
        log.info(f"User {user_id}: {'Deleted' if deleted else 'Did not find'} {table} row {record_id}.")
        return deleted
    except psycopg2.Error as e:
        log.error(f"DB error in {context}: {e}", exc_info=True)
        conn.rollback()
        return False
    finally:
        close_db_connection(conn, context)


def _update(table: str, user_id: str, record_id: str, fields: Dict[str, Any],
            allowed_columns: Tuple[str, ...]) -> Optional[Dict]:
    updates = {k: v for k, v in fields.items() if k in allowed_columns}
    if not updates:
        rows = _fetch_all(f"SELECT * FROM public.{table} WHERE id = %s AND user_id = %s",
                          (record_id, user_id), f"fetch {table} {record_id}")
        return rows[0] if rows else None
    assignments = ", ".join(f"{column} = %s" for column in updates)
    query = (f"UPDATE public.{table} SET {assignments}, updated_at = NOW() "
             f"WHERE id = %s AND user_id = %s RETURNING *")
    params = tuple(updates.values()) + (record_id, user_id)
    return _write_returning(query, params, f"update {table} {record_id} for {user_id}")


def initialize_database():
    log.info("Initializing database schema for PostgreSQL...")
    conn = get_db_connection()
    if not conn:
        log.error("Cannot initialize database: No database connection.")
        return
    try:
        with conn.cursor() as cursor:
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS public.user_profiles (
                    id UUID PRIMARY KEY REFERENCES auth.users(id) ON DELETE CASCADE,
                    email VARCHAR(255) UNIQUE NOT NULL,
                    username VARCHAR(100) UNIQUE,
                    created_at TIMESTAMPTZ DEFAULT NOW() NOT NULL,
                    updated_at TIMESTAMPTZ DEFAULT NOW() NOT NULL
                );
            ''')
            log.debug("Checked/Created user_profiles table.")

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS public.transactions (
                    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                    user_id UUID NOT NULL REFERENCES auth.users(id) ON DELETE CASCADE,
                    date DATE NOT NULL,
                    description TEXT NOT NULL,
                    amount DECIMAL(19, 4) NOT NULL CHECK (amount >= 0),
                    kind VARCHAR(20) NOT NULL CHECK (kind IN ('Income', 'Expense', 'Liability')),
                    subcategory VARCHAR(100),
                    payment_method VARCHAR(50),
                    created_at TIMESTAMPTZ DEFAULT NOW() NOT NULL,
                    updated_at TIMESTAMPTZ DEFAULT NOW() NOT NULL
                );
            ''')
            log.debug("Checked/Created transactions table.")

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS public.recurring_transactions (
                    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                    user_id UUID NOT NULL REFERENCES auth.users(id) ON DELETE CASCADE,
                    description TEXT NOT NULL,
                    amount DECIMAL(19, 4) NOT NULL CHECK (amount >= 0),
                    kind VARCHAR(20) NOT NULL,
                    cadence VARCHAR(10) NOT NULL,
                    start_date DATE NOT NULL,
                    end_date DATE,
                    subcategory VARCHAR(100),
                    payment_method VARCHAR(50),
                    created_at TIMESTAMPTZ DEFAULT NOW() NOT NULL,
                    updated_at TIMESTAMPTZ DEFAULT NOW() NOT NULL
                );
            ''')
            log.debug("Checked/Created recurring_transactions table.")

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS public.budgets (
                    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                    user_id UUID NOT NULL REFERENCES auth.users(id) ON DELETE CASCADE,
                    name VARCHAR(255) NOT NULL,
                    month DATE NOT NULL,
                    income JSONB NOT NULL DEFAULT '[]'::jsonb,
                    expenses JSONB NOT NULL DEFAULT '[]'::jsonb,
                    liabilities JSONB NOT NULL DEFAULT '[]'::jsonb,
                    created_at TIMESTAMPTZ DEFAULT NOW() NOT NULL,
                    updated_at TIMESTAMPTZ DEFAULT NOW() NOT NULL,
                    UNIQUE (user_id, month)
                );
            ''')
            log.debug("Checked/Created budgets table.")

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS public.debts (
                    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                    user_id UUID NOT NULL REFERENCES auth.users(id) ON DELETE CASCADE,
                    creditor VARCHAR(255) NOT NULL,
                    total_amount DECIMAL(19, 4) NOT NULL,
                    amount_paid DECIMAL(19, 4) NOT NULL DEFAULT 0,
                    interest_rate DECIMAL(7, 4),
                    next_payment_due DATE,
                    created_at TIMESTAMPTZ DEFAULT NOW() NOT NULL,
                    updated_at TIMESTAMPTZ DEFAULT NOW() NOT NULL
                );
            ''')
            log.debug("Checked/Created debts table.")

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS public.financial_goals (
                    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                    user_id UUID NOT NULL REFERENCES auth.users(id) ON DELETE CASCADE,
                    name VARCHAR(255) NOT NULL,
                    target_amount DECIMAL(19, 4) NOT NULL,
                    current_amount DECIMAL(19, 4) NOT NULL DEFAULT 0,
                    deadline DATE,
                    created_at TIMESTAMPTZ DEFAULT NOW() NOT NULL,
                    updated_at TIMESTAMPTZ DEFAULT NOW() NOT NULL
                );
            ''')
            log.debug("Checked/Created financial_goals table.")
            conn.commit()
    except Exception as e:
        log.error(f"Error during database initialization: {e}", exc_info=True)
        if conn: conn.rollback()
    finally:
        close_db_connection(conn, "initialize_database")


# --- User Profile Management ---
def get_user_profile_by_id(user_supabase_id: str) -> Optional[User]:
    rows = _fetch_all("SELECT id, email, username FROM public.user_profiles WHERE id = %s",
                      (user_supabase_id,), f"get_user_profile_by_id for {user_supabase_id}")
    log.debug(f"Fetched profile for user {user_supabase_id}: {'Found' if rows else 'Not found'}")
    return User.from_db_row(rows[0]) if rows else None


def create_user_profile(user_supabase_id: str, email: str, username: Optional[str] = None) -> Optional[User]:
    """Creates the profile row, or refreshes the email of an existing one."""
    effective_username = username if username else email.split('@')[0]
    log.info(f"Upserting profile for Supabase ID: {user_supabase_id}, Email: {email}")
    row = _write_returning(
        """
        INSERT INTO public.user_profiles (id, email, username, created_at, updated_at)
        VALUES (%s, %s, %s, NOW(), NOW())
        ON CONFLICT (id) DO UPDATE SET
            email = EXCLUDED.email,
            username = COALESCE(public.user_profiles.username, EXCLUDED.username),
            updated_at = NOW()
        RETURNING id, email, username;
        """,
        (user_supabase_id, email, effective_username),
        f"create_user_profile for {user_supabase_id}",
    )
    return User.from_db_row(row) if row else None


# --- Transactions ---
TRANSACTION_COLUMNS = ('date', 'description', 'amount', 'kind', 'subcategory', 'payment_method')


def save_transactions(user_id: str, transactions: List[Transaction]) -> int:
    """Bulk insert (CSV import). Returns the number of rows written, 0 on failure."""
    if not transactions:
        return 0
    conn = get_db_connection()
    if not conn:
        log.error(f"User {user_id}: Cannot save transactions, no DB connection.")
        return 0
    rows = [(user_id, tx.date, tx.description, tx.amount, tx.kind, tx.subcategory, tx.payment_method)
            for tx in transactions]
    try:
        with conn.cursor() as cursor:
            execute_batch(
                cursor,
                "INSERT INTO public.transactions (user_id, date, description, amount, kind, subcategory, payment_method) "
                "VALUES (%s, %s, %s, %s, %s, %s, %s)",
                rows,
            )
        conn.commit()
        log.info(f"User {user_id}: Saved {len(rows)} transactions.")
        return len(rows)
    except psycopg2.Error as e:
        log.error(f"User {user_id}: DB error saving transactions: {e}", exc_info=True)
        conn.rollback()
        return 0
    finally:
        close_db_connection(conn, f"save_transactions for {user_id}")


def get_all_transactions(user_id: str, start_date: Optional[dt.date] = None,
                         end_date: Optional[dt.date] = None, kind: Optional[str] = None,
                         subcategory: Optional[str] = None) -> Optional[List[Transaction]]:
    query = "SELECT * FROM public.transactions WHERE user_id = %s"
    params: List[Any] = [user_id]
    if start_date:
        query += " AND date >= %s"
        params.append(start_date)
    if end_date:
        query += " AND date <= %s"
        params.append(end_date)
    if kind:
        query += " AND kind = %s"
        params.append(kind)
    if subcategory:
        query += " AND subcategory = %s"
        params.append(subcategory)
    query += " ORDER BY date DESC, created_at DESC"
    rows = _fetch_all(query, tuple(params), f"get_all_transactions for {user_id}")
    if rows is None:
        return None
    log.info(f"User {user_id}: Fetched {len(rows)} transactions.")
    return [_transaction_from_db_row(row) for row in rows]


def create_transaction(user_id: str, tx: Transaction) -> Optional[Transaction]:
    row = _write_returning(
        "INSERT INTO public.transactions (user_id, date, description, amount, kind, subcategory, payment_method) "
        "VALUES (%s, %s, %s, %s, %s, %s, %s) RETURNING *",
        (user_id, tx.date, tx.description, tx.amount, tx.kind, tx.subcategory, tx.payment_method),
        f"create_transaction for {user_id}",
    )
    return _transaction_from_db_row(row) if row else None


def update_transaction(user_id: str, transaction_id: str, fields: Dict[str, Any]) -> Optional[Transaction]:
    row = _update('transactions', user_id, transaction_id, fields, TRANSACTION_COLUMNS)
    return _transaction_from_db_row(row) if row else None


def delete_transaction(user_id: str, transaction_id: str) -> bool:
    return _delete('transactions', user_id, transaction_id)


# --- Recurring templates ---
RECURRING_COLUMNS = ('description', 'amount', 'kind', 'cadence', 'start_date', 'end_date',
                     'subcategory', 'payment_method')


def get_recurring_transactions(user_id: str) -> Optional[List[RecurringTemplate]]:
    rows = _fetch_all("SELECT * FROM public.recurring_transactions WHERE user_id = %s ORDER BY start_date",
                      (user_id,), f"get_recurring_transactions for {user_id}")
    if rows is None:
        return None
    log.info(f"User {user_id}: Fetched {len(rows)} recurring templates.")
    return [_template_from_db_row(row) for row in rows]


def create_recurring_transaction(user_id: str, template: RecurringTemplate) -> Optional[RecurringTemplate]:
    row = _write_returning(
        "INSERT INTO public.recurring_transactions "
        "(user_id, description, amount, kind, cadence, start_date, end_date, subcategory, payment_method) "
        "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s) RETURNING *",
        (user_id, template.description, template.amount, template.kind, template.cadence,
         template.start_date, template.end_date, template.subcategory, template.payment_method),
        f"create_recurring_transaction for {user_id}",
    )
    return _template_from_db_row(row) if row else None


def update_recurring_transaction(user_id: str, template_id: str,
                                 fields: Dict[str, Any]) -> Optional[RecurringTemplate]:
    row = _update('recurring_transactions', user_id, template_id, fields, RECURRING_COLUMNS)
    return _template_from_db_row(row) if row else None


def delete_recurring_transaction(user_id: str, template_id: str) -> bool:
    return _delete('recurring_transactions', user_id, template_id)


# --- Budgets ---
def get_budgets(user_id: str) -> Optional[List[Budget]]:
    rows = _fetch_all("SELECT * FROM public.budgets WHERE user_id = %s ORDER BY month DESC",
                      (user_id,), f"get_budgets for {user_id}")
    return [Budget.from_db_row(row) for row in rows] if rows is not None else None


def get_budget_for_month(user_id: str, month: dt.date) -> Optional[Budget]:
    rows = _fetch_all("SELECT * FROM public.budgets WHERE user_id = %s AND month = %s",
                      (user_id, month.replace(day=1)), f"get_budget_for_month {month} for {user_id}")
    return Budget.from_db_row(rows[0]) if rows else None


def upsert_budget(user_id: str, budget: Budget) -> Optional[Budget]:
    """One budget per user and month; saving again replaces the category lists."""
    row = _write_returning(
        """
        INSERT INTO public.budgets (user_id, name, month, income, expenses, liabilities)
        VALUES (%s, %s, %s, %s, %s, %s)
        ON CONFLICT (user_id, month) DO UPDATE SET
            name = EXCLUDED.name,
            income = EXCLUDED.income,
            expenses = EXCLUDED.expenses,
            liabilities = EXCLUDED.liabilities,
            updated_at = NOW()
        RETURNING *;
        """,
        (user_id, budget.name, budget.month,
         Json([line.to_dict() for line in budget.income]),
         Json([line.to_dict() for line in budget.expenses]),
         Json([line.to_dict() for line in budget.liabilities])),
        f"upsert_budget {budget.month} for {user_id}",
    )
    return Budget.from_db_row(row) if row else None


def delete_budget(user_id: str, budget_id: str) -> bool:
    return _delete('budgets', user_id, budget_id)


# --- Debts ---
DEBT_COLUMNS = ('creditor', 'total_amount', 'amount_paid', 'interest_rate', 'next_payment_due')


def get_debts(user_id: str) -> Optional[List[Debt]]:
    rows = _fetch_all("SELECT * FROM public.debts WHERE user_id = %s ORDER BY next_payment_due NULLS LAST",
                      (user_id,), f"get_debts for {user_id}")
    return [Debt.from_db_row(row) for row in rows] if rows is not None else None


def get_debt(user_id: str, debt_id: str) -> Optional[Debt]:
    rows = _fetch_all("SELECT * FROM public.debts WHERE id = %s AND user_id = %s",
                      (debt_id, user_id), f"get_debt {debt_id} for {user_id}")
    return Debt.from_db_row(rows[0]) if rows else None


def create_debt(user_id: str, debt: Debt) -> Optional[Debt]:
    row = _write_returning(
        "INSERT INTO public.debts (user_id, creditor, total_amount, amount_paid, interest_rate, next_payment_due) "
        "VALUES (%s, %s, %s, %s, %s, %s) RETURNING *",
        (user_id, debt.creditor, debt.total_amount, debt.amount_paid, debt.interest_rate, debt.next_payment_due),
        f"create_debt for {user_id}",
    )
    return Debt.from_db_row(row) if row else None


def update_debt(user_id: str, debt_id: str, fields: Dict[str, Any]) -> Optional[Debt]:
    row = _update('debts', user_id, debt_id, fields, DEBT_COLUMNS)
    return Debt.from_db_row(row) if row else None


def delete_debt(user_id: str, debt_id: str) -> bool:
    return _delete('debts', user_id, debt_id)


# --- Financial goals ---
GOAL_COLUMNS = ('name', 'target_amount', 'current_amount', 'deadline')


def get_goals(user_id: str) -> Optional[List[FinancialGoal]]:
    rows = _fetch_all("SELECT * FROM public.financial_goals WHERE user_id = %s ORDER BY deadline NULLS LAST",
                      (user_id,), f"get_goals for {user_id}")
    return [FinancialGoal.from_db_row(row) for row in rows] if rows is not None else None


def get_goal(user_id: str, goal_id: str) -> Optional[FinancialGoal]:
    rows = _fetch_all("SELECT * FROM public.financial_goals WHERE id = %s AND user_id = %s",
                      (goal_id, user_id), f"get_goal {goal_id} for {user_id}")
    return FinancialGoal.from_db_row(rows[0]) if rows else None


def create_goal(user_id: str, goal: FinancialGoal) -> Optional[FinancialGoal]:
    row = _write_returning(
        "INSERT INTO public.financial_goals (user_id, name, target_amount, current_amount, deadline) "
        "VALUES (%s, %s, %s, %s, %s) RETURNING *",
        (user_id, goal.name, goal.target_amount, goal.current_amount, goal.deadline),
        f"create_goal for {user_id}",
    )
    return FinancialGoal.from_db_row(row) if row else None


def update_goal(user_id: str, goal_id: str, fields: Dict[str, Any]) -> Optional[FinancialGoal]:
    row = _update('financial_goals', user_id, goal_id, fields, GOAL_COLUMNS)
    return FinancialGoal.from_db_row(row) if row else None


def delete_goal(user_id: str, goal_id: str) -> bool:
    return _delete('financial_goals', user_id, goal_id)


if __name__ == "__main__":
    log.info("database_supabase.py executed directly.")
    initialize_database()
    log.info("Finished direct execution of database_supabase.py.")
