import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session

from auth import TokenService, authenticate, parse_bearer, verify_password
from config import Settings, get_settings
from database import Base
from errors import AuthError, ConflictError, ValidationError
from models import Category
from schemas import ProfileUpdateIn, SignupIn
from services import AccountService


def _service(session: Session) -> AccountService:
    return AccountService(session, TokenService(), bcrypt_rounds=4)


def _signup(session: Session, email: str = "Jane@Example.com"):
    return _service(session).signup(
        SignupIn(email=email, password="secret1", name="  Jane Doe ")
    )


def test_signup_normalizes_and_seeds_defaults() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        result = _signup(session)

        assert result.account.email == "jane@example.com"
        assert result.account.name == "Jane Doe"
        assert result.account.password_hash != "secret1"
        assert verify_password("secret1", result.account.password_hash)
        assert result.token

        defaults = session.scalar(
            select(func.count(Category.id)).where(Category.is_default.is_(True))
        )
        assert defaults == 7

        _signup(session, "second@example.com")
        defaults_after = session.scalar(
            select(func.count(Category.id)).where(Category.is_default.is_(True))
        )
        assert defaults_after == 7


def test_duplicate_email_conflicts() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        _signup(session)
        with pytest.raises(ConflictError):
            _signup(session, "JANE@example.com")


def test_login_checks_password_and_issues_verifiable_token() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        created = _signup(session)
        service = _service(session)

        with pytest.raises(AuthError):
            service.login("jane@example.com", "wrong-password")
        with pytest.raises(AuthError):
            service.login("nobody@example.com", "secret1")

        result = service.login(" JANE@example.com ", "secret1")
        ctx = authenticate(session, TokenService(), result.token)
        assert ctx.account_id == created.account.id
        assert ctx.email == "jane@example.com"


def test_inactive_account_cannot_log_in_or_authenticate() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        created = _signup(session)
        created.account.is_active = False
        session.commit()

        with pytest.raises(AuthError):
            _service(session).login("jane@example.com", "secret1")
        with pytest.raises(AuthError):
            authenticate(session, TokenService(), created.token)


def test_tampered_and_expired_tokens_are_rejected() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        created = _signup(session)
        tokens = TokenService()

        with pytest.raises(AuthError):
            tokens.verify(created.token + "x")

        base = get_settings()
        expired = TokenService(
            Settings(
                database_url=base.database_url,
                timezone=base.timezone,
                secret_key=base.secret_key,
                token_max_age_secs=-1,
                bcrypt_rounds=4,
                cors_origins=[],
                log_level="INFO",
            )
        )
        with pytest.raises(AuthError):
            expired.verify(created.token)


def test_parse_bearer_header() -> None:
    assert parse_bearer("Bearer abc.def") == "abc.def"
    assert parse_bearer("bearer   abc") == "abc"
    for bad in (None, "", "Basic abc", "Bearer", "Bearer   "):
        with pytest.raises(AuthError):
            parse_bearer(bad)


def test_change_password() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        created = _signup(session)
        service = _service(session)

        with pytest.raises(ValidationError):
            service.change_password(created.account.id, "not-it", "another1")

        service.change_password(created.account.id, "secret1", "another1")

        with pytest.raises(AuthError):
            service.login("jane@example.com", "secret1")
        assert service.login("jane@example.com", "another1").account.id == created.account.id


def test_update_profile_rejects_taken_email() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        jane = _signup(session)
        _signup(session, "john@example.com")
        service = _service(session)

        with pytest.raises(ConflictError):
            service.update_profile(
                jane.account.id, ProfileUpdateIn(email="John@example.com")
            )

        updated = service.update_profile(
            jane.account.id, ProfileUpdateIn(name="Jane Smith", email="js@example.com")
        )
        assert updated.name == "Jane Smith"
        assert updated.email == "js@example.com"
