import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        secret_key: str,
        token_max_age_secs: int,
        bcrypt_rounds: int,
        cors_origins: list[str],
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.secret_key = secret_key
        self.token_max_age_secs = token_max_age_secs
        self.bcrypt_rounds = bcrypt_rounds
        self.cors_origins = cors_origins
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("BUDGET_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _split_origins(raw: str) -> list[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "budget.db"
    database_url = os.getenv("BUDGET_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("BUDGET_TIMEZONE", "UTC")
    secret_key = os.getenv(
        "BUDGET_SECRET_KEY",
        "5b0f3c9e61a24d8f9e2c7a4b1d6e8f03a9c2b7d4e1f6a8c3b5d7e9f1a2c4e6b8",
    )
    token_max_age_secs = int(os.getenv("BUDGET_TOKEN_MAX_AGE_SECS", str(7 * 24 * 3600)))
    bcrypt_rounds = int(os.getenv("BUDGET_BCRYPT_ROUNDS", "12"))
    cors_origins = _split_origins(
        os.getenv("BUDGET_CORS_ORIGINS", "http://localhost:3000")
    )
    log_level = os.getenv("BUDGET_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        timezone=timezone,
        secret_key=secret_key,
        token_max_age_secs=token_max_age_secs,
        bcrypt_rounds=bcrypt_rounds,
        cors_origins=cors_origins,
        log_level=log_level,
    )
