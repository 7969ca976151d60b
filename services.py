from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from aggregation import DashboardSummary, summarize
from auth import TokenService, hash_password, verify_password
from errors import AuthError, ConflictError, NotFoundError, ValidationError
from models import (
    CATEGORY_NAME_MAX_LENGTH,
    DEFAULT_CATEGORIES,
    NEUTRAL_CATEGORY_COLOR,
    NEUTRAL_CATEGORY_ICON,
    Account,
    Category,
    GoalExpense,
    MonthlyGoal,
    MonthlyHistory,
    Transaction,
    utcnow,
)
from periods import month_key
from schemas import (
    CategoryIn,
    GoalIn,
    ProfileUpdateIn,
    SignupIn,
    TransactionIn,
    TransactionUpdateIn,
)

logger = logging.getLogger(__name__)

IDENTIFIER_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def is_identifier(value: Optional[str]) -> bool:
    return bool(value) and bool(IDENTIFIER_RE.match(value))


def slug_to_name(value: Optional[str]) -> Optional[str]:
    """``food-groceries`` -> ``Food Groceries``; None for anything else."""
    if not value or is_identifier(value) or not SLUG_RE.match(value):
        return None
    return " ".join(word[:1].upper() + word[1:] for word in value.split("-"))


def ensure_default_categories(session: Session) -> int:
    existing = set(
        session.scalars(
            select(Category.name).where(
                Category.is_default.is_(True), Category.user_id.is_(None)
            )
        ).all()
    )
    created = 0
    for name, color, icon in DEFAULT_CATEGORIES:
        if name in existing:
            continue
        session.add(
            Category(name=name, color=color, icon=icon, is_default=True, user_id=None)
        )
        created += 1
    if created:
        session.flush()
        logger.info(f"default_categories_seeded: created={created}")
    return created


@dataclass(frozen=True)
class ResolvedCategory:
    id: str
    name: str


@dataclass(frozen=True)
class AuthResult:
    account: Account
    token: str


@dataclass(frozen=True)
class DashboardView:
    month: str
    goal: Optional[MonthlyGoal]
    transactions: list[Transaction]
    summary: DashboardSummary


class AccountService:
    def __init__(
        self,
        session: Session,
        tokens: Optional[TokenService] = None,
        bcrypt_rounds: Optional[int] = None,
    ) -> None:
        self.session = session
        self.tokens = tokens or TokenService()
        self.bcrypt_rounds = bcrypt_rounds

    def _by_email(self, email: str) -> Optional[Account]:
        return self.session.scalar(select(Account).where(Account.email == email))

    def get(self, account_id: str) -> Account:
        account = self.session.get(Account, account_id)
        if not account or not account.is_active:
            raise NotFoundError("User not found")
        return account

    def signup(self, data: SignupIn) -> AuthResult:
        email = data.email.strip().lower()
        if self._by_email(email):
            raise ConflictError("User with this email already exists")

        ensure_default_categories(self.session)
        account = Account(
            email=email,
            password_hash=hash_password(data.password, self.bcrypt_rounds),
            name=data.name.strip(),
            is_active=True,
        )
        self.session.add(account)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError(
                "User with this email already exists", {"email": email}
            ) from exc
        self.session.refresh(account)
        logger.info(f"signup: account_id={account.id}")
        return AuthResult(account=account, token=self.tokens.issue(account))

    def login(self, email: str, password: str) -> AuthResult:
        account = self._by_email(email.strip().lower())
        if (
            not account
            or not account.is_active
            or not verify_password(password, account.password_hash)
        ):
            logger.info("login_failed: reason=invalid_credentials")
            raise AuthError("Invalid email or password")
        logger.info(f"login: account_id={account.id}")
        return AuthResult(account=account, token=self.tokens.issue(account))

    def change_password(
        self, account_id: str, current_password: str, new_password: str
    ) -> None:
        account = self.get(account_id)
        if not verify_password(current_password, account.password_hash):
            raise ValidationError("Current password is incorrect")
        account.password_hash = hash_password(new_password, self.bcrypt_rounds)
        self.session.commit()
        logger.info(f"password_changed: account_id={account.id}")

    def update_profile(self, account_id: str, data: ProfileUpdateIn) -> Account:
        account = self.get(account_id)
        if data.email is not None:
            email = data.email.strip().lower()
            other = self._by_email(email)
            if other and other.id != account.id:
                raise ConflictError("User with this email already exists")
            account.email = email
        if data.name is not None:
            name = data.name.strip()
            if len(name) < 2:
                raise ValidationError("Name must be at least 2 characters long")
            account.name = name
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("User with this email already exists") from exc
        self.session.refresh(account)
        return account


class CategoryResolver:
    """Turns a client-supplied category reference into a stored category.

    A reference may be a category id, a slug such as ``food-groceries`` or be
    accompanied by a free-text name. Only defaults and the owner's own
    categories are ever returned.
    """

    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def _visible(self):
        return or_(Category.user_id == self.user_id, Category.is_default.is_(True))

    def resolve(
        self,
        category_ref: Optional[str],
        category_name: Optional[str] = None,
        *,
        create_if_missing: bool = True,
    ) -> Optional[ResolvedCategory]:
        ref = (category_ref or "").strip()
        name = (category_name or "").strip()

        if is_identifier(ref):
            found = self.session.scalar(
                select(Category).where(Category.id == ref.lower(), self._visible())
            )
            if found:
                return ResolvedCategory(id=found.id, name=found.name)

        if name:
            found = self.session.scalar(
                select(Category)
                .where(self._visible(), Category.name == name)
                .order_by(Category.is_default.desc(), Category.created_at, Category.id)
                .limit(1)
            )
            if found:
                return ResolvedCategory(id=found.id, name=found.name)

        if not create_if_missing:
            return None

        derived = (name or slug_to_name(ref) or "").strip()
        if not derived:
            return None
        if len(derived) > CATEGORY_NAME_MAX_LENGTH:
            raise ValidationError(
                "Category name is too long", {"category_name": derived}
            )
        category = self._find_or_create(derived)
        return ResolvedCategory(id=category.id, name=category.name)

    def _owned_by_name(self, name: str) -> Optional[Category]:
        return self.session.scalar(
            select(Category).where(
                Category.user_id == self.user_id, Category.name == name
            )
        )

    def _find_or_create(self, name: str) -> Category:
        existing = self._owned_by_name(name)
        if existing:
            return existing

        category = Category(
            user_id=self.user_id,
            name=name,
            color=NEUTRAL_CATEGORY_COLOR,
            icon=NEUTRAL_CATEGORY_ICON,
            is_default=False,
        )
        self.session.add(category)
        try:
            self.session.flush()
        except IntegrityError:
            # Another request created the same name first; use its row.
            self.session.rollback()
            logger.info(f"category_resolve_conflict: user_id={self.user_id}")
            existing = self._owned_by_name(name)
            if existing is None:
                raise
            return existing
        logger.info(
            f"category_created: user_id={self.user_id} category_id={category.id} source=resolver"
        )
        return category


class CategoryService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def list_visible(self) -> list[Category]:
        stmt = (
            select(Category)
            .where(or_(Category.user_id == self.user_id, Category.is_default.is_(True)))
            .order_by(Category.is_default.desc(), Category.name.asc())
        )
        return list(self.session.scalars(stmt).all())

    def create(self, data: CategoryIn) -> Category:
        name = data.name.strip()
        if not name:
            raise ValidationError("Category name cannot be empty")
        existing = self.session.scalar(
            select(Category).where(
                Category.user_id == self.user_id, Category.name == name
            )
        )
        if existing:
            raise ConflictError("Category with this name already exists")
        category = Category(
            user_id=self.user_id,
            name=name,
            color=data.color,
            icon=data.icon.strip(),
            is_default=False,
        )
        self.session.add(category)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("Category with this name already exists") from exc
        self.session.refresh(category)
        return category

    def delete(self, category_id: str) -> None:
        category = self.session.get(Category, category_id)
        if not category or category.is_default or category.user_id != self.user_id:
            raise NotFoundError("Category not found")
        removed = self.session.execute(
            delete(Transaction).where(
                Transaction.user_id == self.user_id,
                Transaction.category_id == category.id,
            )
        ).rowcount
        self.session.delete(category)
        self.session.commit()
        logger.info(
            f"category_deleted: user_id={self.user_id} category_id={category_id} transactions_removed={removed}"
        )


class GoalService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def get_for_month(self, month: str) -> Optional[MonthlyGoal]:
        stmt = (
            select(MonthlyGoal)
            .options(selectinload(MonthlyGoal.expenses))
            .where(MonthlyGoal.user_id == self.user_id, MonthlyGoal.month == month)
        )
        return self.session.scalar(stmt)

    def upsert(self, data: GoalIn) -> MonthlyGoal:
        goal = self.get_for_month(data.month)
        if goal is None:
            goal = MonthlyGoal(user_id=self.user_id, month=data.month)
            self.session.add(goal)
        self._apply(goal, data)
        try:
            self.session.commit()
        except IntegrityError as exc:
            # Another request inserted this month first; overwrite its row.
            self.session.rollback()
            logger.info(
                f"goal_upsert_conflict: user_id={self.user_id} month={data.month}"
            )
            goal = self.get_for_month(data.month)
            if goal is None:
                raise ConflictError(
                    "Monthly goal was modified concurrently", {"month": data.month}
                ) from exc
            self._apply(goal, data)
            self.session.commit()
        self.session.refresh(goal)
        logger.info(
            f"goal_upserted: user_id={self.user_id} month={goal.month} expense_lines={len(goal.expenses)}"
        )
        return goal

    def _apply(self, goal: MonthlyGoal, data: GoalIn) -> None:
        goal.income = data.income
        goal.expenses = [
            GoalExpense(
                position=position,
                category_id=line.category_id,
                category_name=line.category_name.strip(),
                expected_amount=line.expected_amount,
            )
            for position, line in enumerate(data.expenses)
        ]
        goal.updated_at = utcnow()


class TransactionService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def list_for_month(self, month: str) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == self.user_id, Transaction.month == month)
            .order_by(Transaction.date.desc(), Transaction.created_at.desc())
        )
        return list(self.session.scalars(stmt).all())

    def get(self, transaction_id: str) -> Transaction:
        txn = self.session.scalar(
            select(Transaction).where(
                Transaction.user_id == self.user_id, Transaction.id == transaction_id
            )
        )
        if not txn:
            raise NotFoundError("Transaction not found")
        return txn

    def _resolve(
        self, category_ref: Optional[str], category_name: Optional[str]
    ) -> ResolvedCategory:
        resolved = CategoryResolver(self.session, self.user_id).resolve(
            category_ref, category_name, create_if_missing=True
        )
        if resolved is None:
            raise ValidationError(
                "Category not found",
                {"category_id": category_ref, "category_name": category_name},
            )
        return resolved

    def create(self, data: TransactionIn) -> Transaction:
        resolved = self._resolve(data.category_id, data.category_name)
        txn = Transaction(
            user_id=self.user_id,
            category_id=resolved.id,
            category_name=resolved.name,
            amount=data.amount,
            description=data.description.strip(),
            date=data.date,
            month=month_key(data.date),
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: user_id={self.user_id} transaction_id={txn.id} month={txn.month}"
        )
        return txn

    def update(self, transaction_id: str, data: TransactionUpdateIn) -> Transaction:
        txn = self.get(transaction_id)
        provided = data.provided_fields()

        changes: dict[str, object] = {}
        if provided & {"category_id", "category_name"}:
            resolved = self._resolve(
                data.category_id if "category_id" in provided else None,
                data.category_name if "category_name" in provided else None,
            )
            changes["category_id"] = resolved.id
            changes["category_name"] = resolved.name
        if "amount" in provided:
            changes["amount"] = data.amount
        if "description" in provided:
            changes["description"] = data.description.strip()
        if "date" in provided:
            changes["date"] = data.date
            changes["month"] = month_key(data.date)

        # The resolver may have rolled back a conflicting insert; reload first.
        txn = self.get(transaction_id)
        for field_name, value in changes.items():
            setattr(txn, field_name, value)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_updated: user_id={self.user_id} transaction_id={txn.id} fields={sorted(changes)}"
        )
        return txn


class HistoryService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self) -> list[MonthlyHistory]:
        stmt = (
            select(MonthlyHistory)
            .where(MonthlyHistory.user_id == self.user_id)
            .order_by(MonthlyHistory.month.desc())
        )
        return list(self.session.scalars(stmt).all())


class DashboardService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def for_month(self, month: str) -> DashboardView:
        goal = GoalService(self.session, self.user_id).get_for_month(month)
        transactions = TransactionService(self.session, self.user_id).list_for_month(
            month
        )
        return DashboardView(
            month=month,
            goal=goal,
            transactions=transactions,
            summary=summarize(goal, transactions),
        )
