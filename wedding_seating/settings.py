"""
Konfiguracja aplikacji (pydantic-settings).

Wartości domyślne wystarczają do lokalnego uruchomienia; w produkcji
nadpisujemy je zmiennymi środowiskowymi z prefiksem SEATING_ lub plikiem .env.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SEATING_",
        extra="ignore",
        case_sensitive=False,
    )

    # --- Baza danych ---
    database_url: str = Field(
        default="sqlite:///./wedding_seating.db",
        description="SQLAlchemy URL, np. postgresql://user:pass@db:5432/seating",
    )

    # --- Serwer HTTP ---
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, ge=1, le=65535)

    # --- Domyślne ustawienia rozsadzania (nowe wesela) ---
    default_seats_per_table: int = Field(default=12, ge=1)
    max_table_size: int = Field(default=24, ge=1, description="Górny limit miejsc przy jednym stole")
    default_kids_table_min_age: int = Field(default=6, ge=0)
    default_kids_table_min_count: int = Field(default=6, ge=1)

    # --- Logowanie ---
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


@lru_cache
def get_settings() -> Settings:
    return Settings()
