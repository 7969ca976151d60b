import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base

NEUTRAL_CATEGORY_COLOR = "#98D8C8"
NEUTRAL_CATEGORY_ICON = "tag"
CATEGORY_NAME_MAX_LENGTH = 100

DEFAULT_CATEGORIES = [
    ("Food & Groceries", "#FF6B6B", "shopping-cart"),
    ("Rent/Mortgage", "#4ECDC4", "home"),
    ("Utilities", "#45B7D1", "zap"),
    ("Transport", "#96CEB4", "car"),
    ("Health/Medical", "#FFEAA7", "heart"),
    ("Entertainment", "#DDA0DD", "music"),
    ("Miscellaneous", "#98D8C8", "more-horizontal"),
]


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


Money = Numeric(12, 2, asdecimal=True)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class Account(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (Index("ix_users_active", "is_active"),)


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str] = mapped_column(String(7), nullable=False)
    icon: Mapped[str] = mapped_column(String(50), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE")
    )

    __table_args__ = (
        UniqueConstraint("name", "user_id", name="uq_category_name_user"),
        Index("ix_categories_user", "user_id"),
        Index("ix_categories_default", "is_default"),
    )


class MonthlyGoal(Base, TimestampMixin):
    __tablename__ = "monthly_goals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    income: Mapped[Decimal] = mapped_column(Money, nullable=False)

    expenses: Mapped[list["GoalExpense"]] = relationship(
        "GoalExpense",
        back_populates="goal",
        order_by="GoalExpense.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "month", name="uq_goal_user_month"),
    )


class GoalExpense(Base):
    __tablename__ = "monthly_goal_expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    goal_id: Mapped[str] = mapped_column(
        ForeignKey("monthly_goals.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category_id: Mapped[str] = mapped_column(
        String(CATEGORY_NAME_MAX_LENGTH), nullable=False
    )
    category_name: Mapped[str] = mapped_column(String(100), nullable=False)
    expected_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    goal: Mapped["MonthlyGoal"] = relationship("MonthlyGoal", back_populates="expenses")

    __table_args__ = (
        CheckConstraint("expected_amount >= 0", name="ck_goal_expense_non_negative"),
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    category_id: Mapped[str] = mapped_column(
        ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    # Name at the time of recording; summaries group on this, not the live name.
    category_name: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    month: Mapped[str] = mapped_column(String(7), nullable=False)

    __table_args__ = (
        Index("ix_transactions_user_month", "user_id", "month"),
        Index("ix_transactions_category", "category_id"),
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )


class MonthlyHistory(Base):
    __tablename__ = "monthly_history"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    goal: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    transactions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    total_income: Mapped[Decimal] = mapped_column(Money, nullable=False)
    total_expenses: Mapped[Decimal] = mapped_column(Money, nullable=False)
    actual_savings: Mapped[Decimal] = mapped_column(Money, nullable=False)
    finalized_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "month", name="uq_history_user_month"),
    )
