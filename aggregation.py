from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional, Protocol, Sequence

ZERO = Decimal("0")
HUNDRED = Decimal("100")
TOP_CATEGORY_LIMIT = 5


class ExpenseLine(Protocol):
    expected_amount: Decimal


class GoalLike(Protocol):
    income: Decimal
    expenses: Sequence[ExpenseLine]


class TransactionLike(Protocol):
    amount: Decimal
    category_name: str


@dataclass(frozen=True)
class CategoryShare:
    category_name: str
    amount: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class DashboardSummary:
    total_income: Decimal
    total_expenses: Decimal
    actual_savings: Decimal
    total_expected_expenses: Decimal
    expected_savings: Decimal
    category_totals: dict[str, Decimal] = field(default_factory=dict)
    top_categories: list[CategoryShare] = field(default_factory=list)
    monthly_progress: Decimal = ZERO


def summarize(
    goal: Optional[GoalLike], transactions: Iterable[TransactionLike]
) -> DashboardSummary:
    """Fold a month's goal and transactions into the dashboard figures.

    Categories are grouped by the name stored on each transaction. Groups with
    equal totals keep the order in which their first transaction appeared.
    """
    txns = list(transactions)

    total_income = _coerce_amount(goal.income) if goal is not None else ZERO
    total_expenses = sum((_coerce_amount(t.amount) for t in txns), ZERO)
    actual_savings = total_income - total_expenses

    total_expected = ZERO
    if goal is not None:
        total_expected = sum(
            (_coerce_amount(line.expected_amount) for line in goal.expenses or []),
            ZERO,
        )
    expected_savings = total_income - total_expected

    category_totals: dict[str, Decimal] = {}
    for txn in txns:
        category_totals[txn.category_name] = category_totals.get(
            txn.category_name, ZERO
        ) + _coerce_amount(txn.amount)

    ranked = sorted(category_totals.items(), key=lambda item: item[1], reverse=True)
    top_categories = [
        CategoryShare(
            category_name=name,
            amount=amount,
            percentage=_percent(amount, total_expenses),
        )
        for name, amount in ranked[:TOP_CATEGORY_LIMIT]
    ]

    if total_expected > ZERO:
        monthly_progress = min(_percent(total_expenses, total_expected), HUNDRED)
    else:
        monthly_progress = ZERO

    return DashboardSummary(
        total_income=total_income,
        total_expenses=total_expenses,
        actual_savings=actual_savings,
        total_expected_expenses=total_expected,
        expected_savings=expected_savings,
        category_totals=category_totals,
        top_categories=top_categories,
        monthly_progress=monthly_progress,
    )


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    if whole <= ZERO:
        return ZERO
    return part / whole * HUNDRED


def _coerce_amount(amount) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    if amount is None:
        return ZERO
    return Decimal(str(amount))
