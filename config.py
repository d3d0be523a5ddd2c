import logging
import os
import secrets
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        jwt_secret: str,
        jwt_issuer: str,
        jwt_audience: str,
        token_ttl_hours: int,
        password_min_length: int,
        cors_origins: list[str],
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.jwt_secret = jwt_secret
        self.jwt_issuer = jwt_issuer
        self.jwt_audience = jwt_audience
        self.token_ttl_hours = token_ttl_hours
        self.password_min_length = password_min_length
        self.cors_origins = cors_origins
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _jwt_secret() -> str:
    secret = os.getenv("FINANCE_JWT_SECRET")
    if secret:
        return secret
    logger.warning(
        "FINANCE_JWT_SECRET is not set; using a random key, tokens will not "
        "survive a restart"
    )
    return secrets.token_hex(32)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "finance.db"
    database_url = os.getenv("FINANCE_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("FINANCE_TIMEZONE", "Europe/Berlin")
    jwt_issuer = os.getenv("FINANCE_JWT_ISSUER", "finance-tracker")
    jwt_audience = os.getenv("FINANCE_JWT_AUDIENCE", "finance-tracker-client")
    token_ttl_hours = int(os.getenv("FINANCE_TOKEN_TTL_HOURS", "3"))
    password_min_length = int(os.getenv("FINANCE_PASSWORD_MIN_LENGTH", "6"))
    cors_origins = [
        origin.strip()
        for origin in os.getenv("FINANCE_CORS_ORIGINS", "http://localhost:3000").split(",")
        if origin.strip()
    ]
    log_level = os.getenv("FINANCE_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        timezone=timezone,
        jwt_secret=_jwt_secret(),
        jwt_issuer=jwt_issuer,
        jwt_audience=jwt_audience,
        token_ttl_hours=token_ttl_hours,
        password_min_length=password_min_length,
        cors_origins=cors_origins,
        log_level=log_level,
    )
