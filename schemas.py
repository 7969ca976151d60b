import datetime as dt
from decimal import Decimal
from typing import Annotated, Any, Generic, Optional, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from models import CATEGORY_NAME_MAX_LENGTH
from periods import parse_month_key

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"

MoneyOut = Annotated[
    Decimal, PlainSerializer(float, return_type=float, when_used="json")
]

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
    error: Optional[str] = None


# Accounts


class SignupIn(BaseModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=2, max_length=50)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Name must be at least 2 characters long")
        return value


class LoginIn(BaseModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1)


class ChangePasswordIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(..., min_length=1, alias="currentPassword")
    new_password: str = Field(..., min_length=6, alias="newPassword")


class ProfileUpdateIn(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    email: Optional[str] = Field(default=None, max_length=255, pattern=EMAIL_PATTERN)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    is_active: bool
    created_at: dt.datetime
    updated_at: dt.datetime


class AuthOut(BaseModel):
    user: UserOut
    token: str


# Categories


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=CATEGORY_NAME_MAX_LENGTH)
    color: str = Field(..., pattern=COLOR_PATTERN)
    icon: str = Field(..., min_length=1, max_length=50)


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    color: str
    icon: str
    is_default: bool
    user_id: Optional[str] = None
    created_at: dt.datetime


# Goals


class GoalExpenseIn(BaseModel):
    category_id: str = Field(
        ..., min_length=1, max_length=CATEGORY_NAME_MAX_LENGTH
    )
    category_name: str = Field(
        ..., min_length=1, max_length=CATEGORY_NAME_MAX_LENGTH
    )
    expected_amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)


class GoalIn(BaseModel):
    month: str
    income: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    expenses: list[GoalExpenseIn]

    @field_validator("month")
    @classmethod
    def _check_month(cls, value: str) -> str:
        return parse_month_key(value)


class GoalExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category_id: str
    category_name: str
    expected_amount: MoneyOut


class GoalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    month: str
    income: MoneyOut
    expenses: list[GoalExpenseOut]
    created_at: dt.datetime
    updated_at: dt.datetime


# Transactions


class TransactionIn(BaseModel):
    category_id: str = Field(
        ..., min_length=1, max_length=CATEGORY_NAME_MAX_LENGTH
    )
    category_name: Optional[str] = Field(
        default=None, max_length=CATEGORY_NAME_MAX_LENGTH
    )
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    description: str = Field(..., min_length=1, max_length=200)
    date: dt.date


class TransactionUpdateIn(BaseModel):
    category_id: Optional[str] = Field(
        default=None, min_length=1, max_length=CATEGORY_NAME_MAX_LENGTH
    )
    category_name: Optional[str] = Field(
        default=None, max_length=CATEGORY_NAME_MAX_LENGTH
    )
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    date: Optional[dt.date] = None

    @model_validator(mode="after")
    def _require_one_field(self) -> "TransactionUpdateIn":
        if not self.provided_fields():
            raise ValueError("At least one field must be provided")
        return self

    def provided_fields(self) -> set[str]:
        return {
            name for name in self.model_fields_set if getattr(self, name) is not None
        }


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    category_id: str
    category_name: str
    amount: MoneyOut
    description: str
    date: dt.date
    month: str
    created_at: dt.datetime
    updated_at: dt.datetime


# History and dashboard


class HistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    month: str
    goal: dict[str, Any]
    transactions: list[dict[str, Any]]
    total_income: MoneyOut
    total_expenses: MoneyOut
    actual_savings: MoneyOut
    finalized_at: dt.datetime
    created_at: dt.datetime


class TopCategoryOut(BaseModel):
    category_name: str
    amount: MoneyOut
    percentage: MoneyOut


class DashboardOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    month: str
    monthly_goal: Optional[GoalOut] = None
    transactions: list[TransactionOut]
    total_income: MoneyOut
    total_expenses: MoneyOut
    actual_savings: MoneyOut
    total_expected_expenses: MoneyOut
    expected_savings: MoneyOut
    category_totals: dict[str, MoneyOut]
    top_categories: list[TopCategoryOut]
    monthly_progress: MoneyOut


class HealthOut(BaseModel):
    status: str
    version: str
