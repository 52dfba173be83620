# models_pydantic.py
from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import Optional, List, Dict, Literal, ClassVar, Tuple
import datetime as dt
from decimal import Decimal

Kind = Literal['Income', 'Expense', 'Liability']
Cadence = Literal['daily', 'weekly', 'monthly', 'yearly']
ReportType = Literal['income-vs-expense', 'budget-variance', 'cash-flow-statement', 'transactions']


# --- User and Auth Models ---
class UserBasePydantic(BaseModel):
    email: EmailStr

class UserCreatePydantic(UserBasePydantic):
    password: str = Field(..., min_length=8, description="User password, minimum 8 characters.")

class UserPydantic(UserBasePydantic):
    id: str
    username: Optional[str] = None
    class Config:
        from_attributes = True

class TokenPydantic(BaseModel):
    access_token: str
    token_type: str
    refresh_token: Optional[str] = None
    user: Optional[UserPydantic] = None


class PartialUpdatePydantic(BaseModel):
    """PATCH body: omitted fields are left alone, NOT_NULL fields may not be sent as null."""
    NOT_NULL: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode='after')
    def reject_explicit_nulls(self):
        nulls = [name for name in self.NOT_NULL if name in self.model_fields_set and getattr(self, name) is None]
        if nulls:
            raise ValueError(f"{', '.join(nulls)} cannot be null")
        return self


# --- Transaction Models ---
class TransactionCreatePydantic(BaseModel):
    date: dt.date
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0, description="Non-negative; the kind decides the direction.")
    kind: Kind
    subcategory: Optional[str] = None
    payment_method: Optional[str] = None

class TransactionUpdatePydantic(PartialUpdatePydantic):
    NOT_NULL: ClassVar[Tuple[str, ...]] = ("date", "description", "amount", "kind")
    date: Optional[dt.date] = None
    description: Optional[str] = Field(None, min_length=1)
    amount: Optional[Decimal] = Field(None, ge=0)
    kind: Optional[Kind] = None
    subcategory: Optional[str] = None
    payment_method: Optional[str] = None

class TransactionPydantic(BaseModel):
    """A stored transaction, or a generated occurrence when is_recurring is true."""
    id: Optional[str] = None
    date: dt.date
    description: Optional[str] = None
    amount: Decimal
    kind: str
    subcategory: Optional[str] = None
    payment_method: Optional[str] = None
    is_recurring: bool = False
    template_id: Optional[str] = None
    class Config:
        from_attributes = True

class CsvUploadResponsePydantic(BaseModel):
    message: str
    filename: str
    imported_count: int


# --- Recurring Transaction Models ---
class RecurringTransactionCreatePydantic(BaseModel):
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)
    kind: Kind
    cadence: Cadence
    start_date: dt.date
    end_date: Optional[dt.date] = Field(None, description="Inclusive; omit for open-ended.")
    subcategory: Optional[str] = None
    payment_method: Optional[str] = None

    @model_validator(mode='after')
    def check_end_after_start(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

class RecurringTransactionUpdatePydantic(PartialUpdatePydantic):
    NOT_NULL: ClassVar[Tuple[str, ...]] = ("description", "amount", "kind", "cadence", "start_date")
    description: Optional[str] = Field(None, min_length=1)
    amount: Optional[Decimal] = Field(None, ge=0)
    kind: Optional[Kind] = None
    cadence: Optional[Cadence] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    subcategory: Optional[str] = None
    payment_method: Optional[str] = None

class RecurringTransactionPydantic(BaseModel):
    id: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[Decimal] = None
    kind: Optional[str] = None
    cadence: Optional[str] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    subcategory: Optional[str] = None
    payment_method: Optional[str] = None
    class Config:
        from_attributes = True


# --- Budget Models ---
class BudgetLinePydantic(BaseModel):
    name: str = Field(..., min_length=1)
    budgeted: Decimal = Field(..., ge=0)
    class Config:
        from_attributes = True

class BudgetCreatePydantic(BaseModel):
    name: str = Field(..., min_length=1)
    month: dt.date = Field(..., description="Any day in the budgeted month.")
    income: List[BudgetLinePydantic] = []
    expenses: List[BudgetLinePydantic] = []
    liabilities: List[BudgetLinePydantic] = []

class BudgetPydantic(BudgetCreatePydantic):
    id: Optional[str] = None
    class Config:
        from_attributes = True


# --- Planning Models ---
class AmountPydantic(BaseModel):
    amount: Decimal = Field(..., gt=0)

class FinancialGoalCreatePydantic(BaseModel):
    name: str = Field(..., min_length=1)
    target_amount: Decimal = Field(..., gt=0)
    current_amount: Decimal = Field(Decimal('0'), ge=0)
    deadline: Optional[dt.date] = None

class FinancialGoalUpdatePydantic(PartialUpdatePydantic):
    NOT_NULL: ClassVar[Tuple[str, ...]] = ("name", "target_amount", "current_amount")
    name: Optional[str] = Field(None, min_length=1)
    target_amount: Optional[Decimal] = Field(None, gt=0)
    current_amount: Optional[Decimal] = Field(None, ge=0)
    deadline: Optional[dt.date] = None

class GoalProgressPydantic(BaseModel):
    id: Optional[str] = None
    name: str
    target_amount: Decimal
    current_amount: Decimal
    remaining: Decimal
    progress_percent: Decimal
    deadline: Optional[dt.date] = None
    is_complete: bool

class DebtCreatePydantic(BaseModel):
    creditor: str = Field(..., min_length=1)
    total_amount: Decimal = Field(..., gt=0)
    amount_paid: Decimal = Field(Decimal('0'), ge=0)
    interest_rate: Optional[Decimal] = Field(None, ge=0)
    next_payment_due: Optional[dt.date] = None

class DebtUpdatePydantic(PartialUpdatePydantic):
    NOT_NULL: ClassVar[Tuple[str, ...]] = ("creditor", "total_amount", "amount_paid")
    creditor: Optional[str] = Field(None, min_length=1)
    total_amount: Optional[Decimal] = Field(None, gt=0)
    amount_paid: Optional[Decimal] = Field(None, ge=0)
    interest_rate: Optional[Decimal] = Field(None, ge=0)
    next_payment_due: Optional[dt.date] = None

class DebtStatusPydantic(BaseModel):
    id: Optional[str] = None
    creditor: str
    total_amount: Decimal
    amount_paid: Decimal
    remaining: Decimal
    interest_rate: Optional[Decimal] = None
    progress_percent: Decimal
    next_payment_due: Optional[dt.date] = None
    is_paid_off: bool
    is_overdue: bool


# --- Cash-flow Models ---
class PeriodBucketPydantic(BaseModel):
    month: str
    label: str
    start: dt.date
    end: dt.date
    inflow_total: Decimal
    outflow_total: Decimal
    net_change: Decimal
    opening_balance: Decimal
    running_balance: Decimal
    inflow_by_category: Dict[str, Decimal] = {}
    outflow_by_category: Dict[str, Decimal] = {}

class CashFlowStatementPydantic(BaseModel):
    year: int
    as_of: dt.date
    beginning_balance: Decimal
    ending_balance: Decimal
    total_inflows: Decimal
    total_outflows: Decimal
    net_cash_flow: Decimal
    months: List[PeriodBucketPydantic]

class ForecastMonthPydantic(BaseModel):
    month: str
    label: str
    cash_in: Decimal
    cash_out: Decimal
    balance: Decimal

class CashFlowForecastPydantic(BaseModel):
    start_month: str
    months: int
    initial_balance: Decimal
    net_cash_flow: Decimal
    lowest_point: Decimal
    lowest_point_month: str
    forecast: List[ForecastMonthPydantic]


# --- Variance Models ---
class VarianceLinePydantic(BaseModel):
    name: str
    budgeted: Decimal
    actual: Decimal
    variance: Decimal
    percentage: Decimal

class VarianceSectionPydantic(BaseModel):
    title: str
    budgeted: Decimal
    actual: Decimal
    variance: Decimal
    percentage: Decimal
    lines: List[VarianceLinePydantic]

class VarianceReportPydantic(BaseModel):
    month: str
    month_label: str
    budget_name: str
    income: List[VarianceLinePydantic]
    expenses: List[VarianceLinePydantic]
    liabilities: List[VarianceLinePydantic]
    overspent: List[str]
    total_budgeted: Decimal
    total_actual: Decimal
    favorable_total: Decimal
    unfavorable_total: Decimal
    sections: List[VarianceSectionPydantic]


# --- Dashboard Models ---
class ChartPointPydantic(BaseModel):
    month: str
    income: Decimal
    expenses: Decimal

class DashboardSummaryPydantic(BaseModel):
    as_of: dt.date
    net_revenue: Decimal
    total_expenses: Decimal
    cash_reserve: Decimal
    profit_margin: Decimal
    chart_data: List[ChartPointPydantic]
    recent_transactions: List[TransactionPydantic]
    goals: List[GoalProgressPydantic] = []


# --- AI Models ---
class BudgetSuggestionResponsePydantic(BaseModel):
    """error=True means the data could not be analyzed; message says why."""
    error: bool
    suggested_budget: Optional[str] = None
    explanation: Optional[str] = None
    message: Optional[str] = None

class BudgetOptimizationRequestPydantic(BaseModel):
    market_conditions: str = Field(..., min_length=3)
    spending_patterns: str = Field(..., min_length=3)
    current_budget: str = Field(..., min_length=2, description="The current budget as JSON text.")

class BudgetOptimizationResponsePydantic(BaseModel):
    error: bool
    suggested_adjustments: Optional[str] = None
    rationale: Optional[str] = None
    message: Optional[str] = None
