from dataclasses import dataclass
from typing import Optional

import bcrypt
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy.orm import Session

from config import Settings, get_settings
from errors import AuthError
from models import Account


@dataclass(frozen=True)
class AuthContext:
    account_id: str
    email: str
    name: str


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    rounds = rounds or get_settings().bcrypt_rounds
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds)).decode(
        "utf-8"
    )


def verify_password(password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


class TokenService:
    """Issues and checks signed bearer tokens for accounts."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        settings = settings or get_settings()
        self.max_age = settings.token_max_age_secs
        self._serializer = URLSafeTimedSerializer(
            settings.secret_key, salt="access-token"
        )

    def issue(self, account: Account) -> str:
        return self._serializer.dumps({"sub": account.id, "email": account.email})

    def verify(self, token: str) -> str:
        try:
            data = self._serializer.loads(token, max_age=self.max_age)
        except SignatureExpired as exc:
            raise AuthError("Token expired") from exc
        except BadSignature as exc:
            raise AuthError("Invalid token") from exc

        account_id = data.get("sub") if isinstance(data, dict) else None
        if not account_id:
            raise AuthError("Invalid token")
        return account_id


def parse_bearer(authorization: Optional[str]) -> str:
    if not authorization:
        raise AuthError("Access token required")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Access token required")
    return token.strip()


def authenticate(session: Session, tokens: TokenService, token: str) -> AuthContext:
    account_id = tokens.verify(token)
    account = session.get(Account, account_id)
    if not account or not account.is_active:
        raise AuthError("Invalid token or user not found")
    return AuthContext(account_id=account.id, email=account.email, name=account.name)
