import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    # Factory preselected on forms for users who have none on their profile.
    default_factory: str
    max_upload_mb: int
    session_hours: int

    @property
    def is_production(self) -> bool:
        return self.env in ("prod", "production")


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getint(name: str, default: int) -> int:
    try:
        return int(_getenv(name, str(default)))
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development").lower(),
        database_url=_getenv("DATABASE_URL", "sqlite:///salesops.db"),
        default_factory=_getenv("DEFAULT_FACTORY", "").upper(),
        max_upload_mb=_getint("MAX_UPLOAD_MB", 10),
        session_hours=_getint("SESSION_HOURS", 8),
    )


def load_config() -> dict:
    s = load_settings()
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "DEFAULT_FACTORY": s.default_factory,
        "SESSION_HOURS": s.session_hours,
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": s.is_production,
        # Quote import uploads (CSV / XLSX)
        "MAX_CONTENT_LENGTH": s.max_upload_mb * 1024 * 1024,
    }
