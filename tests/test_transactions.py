from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from database import Base
from errors import NotFoundError, ValidationError
from models import Account, Category
from schemas import TransactionIn, TransactionUpdateIn
from services import TransactionService, ensure_default_categories


def _account(session: Session, email: str) -> Account:
    account = Account(email=email, password_hash="x", name="Test User")
    session.add(account)
    session.commit()
    return account


def _default(session: Session, name: str) -> Category:
    return session.scalar(select(Category).where(Category.name == name))


def test_create_resolves_category_and_derives_month() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        ensure_default_categories(session)
        owner = _account(session, "a@example.com")
        transport = _default(session, "Transport")

        txn = TransactionService(session, owner.id).create(
            TransactionIn(
                category_id=transport.id,
                amount=Decimal("23.40"),
                description="  Bus pass ",
                date=date(2024, 5, 31),
            )
        )

        assert txn.category_id == transport.id
        assert txn.category_name == "Transport"
        assert txn.month == "2024-05"
        assert txn.description == "Bus pass"
        assert txn.amount == Decimal("23.40")


def test_create_with_slug_creates_owned_category() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        owner = _account(session, "a@example.com")

        txn = TransactionService(session, owner.id).create(
            TransactionIn(
                category_id="pet-care",
                amount=Decimal("15"),
                description="Food for the cat",
                date=date(2024, 6, 2),
            )
        )

        category = session.get(Category, txn.category_id)
        assert category.name == "Pet Care"
        assert category.user_id == owner.id


def test_create_rejects_unresolvable_category() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        owner = _account(session, "a@example.com")

        with pytest.raises(ValidationError):
            TransactionService(session, owner.id).create(
                TransactionIn(
                    category_id="3f2b8c1e-9d4a-4b6e-8f1a-2c3d4e5f6a7b",
                    amount=Decimal("15"),
                    description="Unknown",
                    date=date(2024, 6, 2),
                )
            )


def test_update_moves_transaction_to_new_month() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        owner = _account(session, "a@example.com")
        service = TransactionService(session, owner.id)
        txn = service.create(
            TransactionIn(
                category_id="groceries",
                amount=Decimal("40"),
                description="Market",
                date=date(2024, 5, 30),
            )
        )

        updated = service.update(txn.id, TransactionUpdateIn(date=date(2024, 6, 1)))

        assert updated.date == date(2024, 6, 1)
        assert updated.month == "2024-06"
        assert updated.amount == Decimal("40")
        assert updated.category_name == "Groceries"
        assert [t.id for t in service.list_for_month("2024-06")] == [txn.id]
        assert service.list_for_month("2024-05") == []


def test_update_by_category_name_only() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        owner = _account(session, "a@example.com")
        service = TransactionService(session, owner.id)
        txn = service.create(
            TransactionIn(
                category_id="groceries",
                amount=Decimal("40"),
                description="Market",
                date=date(2024, 5, 30),
            )
        )

        updated = service.update(
            txn.id, TransactionUpdateIn(category_name="Household")
        )

        assert updated.category_name == "Household"
        assert session.get(Category, updated.category_id).user_id == owner.id


def test_failed_update_leaves_transaction_untouched() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        owner = _account(session, "a@example.com")
        other = _account(session, "b@example.com")
        foreign = Category(
            user_id=other.id, name="Secret", color="#111111", icon="tag"
        )
        session.add(foreign)
        session.commit()

        service = TransactionService(session, owner.id)
        txn = service.create(
            TransactionIn(
                category_id="groceries",
                amount=Decimal("40"),
                description="Market",
                date=date(2024, 5, 30),
            )
        )
        before = (txn.category_id, txn.category_name, txn.amount, txn.description, txn.date, txn.month)

        with pytest.raises(ValidationError):
            service.update(
                txn.id,
                TransactionUpdateIn(
                    category_id=foreign.id,
                    amount=Decimal("999"),
                    description="Changed",
                    date=date(2024, 7, 1),
                ),
            )

        session.expire_all()
        reloaded = service.get(txn.id)
        after = (
            reloaded.category_id,
            reloaded.category_name,
            reloaded.amount,
            reloaded.description,
            reloaded.date,
            reloaded.month,
        )
        assert after == before


def test_other_accounts_transactions_are_not_found() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        owner = _account(session, "a@example.com")
        intruder = _account(session, "b@example.com")
        txn = TransactionService(session, owner.id).create(
            TransactionIn(
                category_id="groceries",
                amount=Decimal("40"),
                description="Market",
                date=date(2024, 5, 30),
            )
        )

        with pytest.raises(NotFoundError):
            TransactionService(session, intruder.id).update(
                txn.id, TransactionUpdateIn(amount=Decimal("1"))
            )
        with pytest.raises(NotFoundError):
            TransactionService(session, intruder.id).get("missing-id")

        assert TransactionService(session, intruder.id).list_for_month("2024-05") == []


def test_month_listing_is_newest_first() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        owner = _account(session, "a@example.com")
        service = TransactionService(session, owner.id)
        for day in (3, 17, 9):
            service.create(
                TransactionIn(
                    category_id="groceries",
                    amount=Decimal("10"),
                    description=f"Day {day}",
                    date=date(2024, 5, day),
                )
            )

        listed = service.list_for_month("2024-05")

        assert [t.date.day for t in listed] == [17, 9, 3]


def test_update_requires_at_least_one_field() -> None:
    with pytest.raises(ValueError):
        TransactionUpdateIn()
    with pytest.raises(ValueError):
        TransactionUpdateIn(amount=None)


def test_category_reference_length_is_capped() -> None:
    long_ref = "a" * 101

    with pytest.raises(ValueError):
        TransactionIn(
            category_id=long_ref,
            amount=Decimal("5"),
            description="Coffee",
            date=date(2024, 5, 1),
        )
    with pytest.raises(ValueError):
        TransactionUpdateIn(category_id=long_ref)

    assert TransactionUpdateIn(category_id="a" * 100).category_id == "a" * 100
