import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from santadraw.services.assignment import DEFAULT_MAX_ATTEMPTS

load_dotenv()


@dataclass(frozen=True)
class SmtpSettings:
    host: Optional[str]
    port: int
    secure: bool
    user_name: Optional[str]
    password: Optional[str]
    sender: Optional[str]


@dataclass(frozen=True)
class Settings:
    database_url: str
    log_level: str
    log_path: str
    http_host: str
    http_port: int
    base_url: str
    max_draw_attempts: int
    smtp: SmtpSettings


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}.") from exc


def load_smtp_settings() -> SmtpSettings:
    return SmtpSettings(
        host=os.getenv("SMTP_HOST") or None,
        port=_env_int("SMTP_PORT", 587),
        secure=_env_flag("SMTP_SECURE"),
        user_name=os.getenv("SMTP_USER") or None,
        password=os.getenv("SMTP_PASS") or None,
        sender=os.getenv("SMTP_SENDER") or None,
    )


def load_settings() -> Settings:
    database_url = os.getenv("DATABASE_URL")
    log_level = os.getenv("LOG_LEVEL", "INFO")
    log_path = os.getenv("LOG_PATH", "logs/santadraw.log")

    if not database_url:
        raise ValueError("DATABASE_URL is required. Set it in the environment or .env file.")

    max_draw_attempts = _env_int("MAX_DRAW_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)
    if max_draw_attempts < 1:
        raise ValueError("MAX_DRAW_ATTEMPTS must be at least 1.")

    return Settings(
        database_url=database_url,
        log_level=log_level,
        log_path=log_path,
        http_host=os.getenv("HTTP_HOST", "0.0.0.0"),
        http_port=_env_int("HTTP_PORT", 8080),
        base_url=os.getenv("BASE_URL", "http://localhost:8080").rstrip("/"),
        max_draw_attempts=max_draw_attempts,
        smtp=load_smtp_settings(),
    )
