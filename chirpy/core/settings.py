import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load environment variables from .env if present.
load_dotenv()

DATABASE_FILENAME = "database.json"


@dataclass(frozen=True)
class Settings:
    """Application settings loaded once from environment variables."""

    jwt_secret: str
    polka_api_key: str
    data_dir: str
    jwt_issuer: str = "chirpy"
    access_token_exp_seconds: int = 3600
    refresh_token_exp_days: int = 60
    reset_db_on_startup: bool = True
    static_dir: str = "."
    cors_allow_origins: tuple[str, ...] = ("*",)
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8080

    @property
    def database_path(self) -> str:
        return os.path.join(self.data_dir, DATABASE_FILENAME)


def _parse_csv(value: str) -> tuple[str, ...]:
    return tuple(v.strip() for v in value.split(",") if v.strip())


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return strongly-typed settings for the application."""
    cors = os.getenv("CORS_ALLOW_ORIGINS", "*")
    return Settings(
        jwt_secret=os.getenv("JWT_SECRET_KEY", "dev-secret-change-me-before-deploying"),
        polka_api_key=os.getenv("POLKA_API_KEY", ""),
        data_dir=os.getenv("DATA_DIR", "."),
        jwt_issuer=os.getenv("JWT_ISSUER", "chirpy"),
        access_token_exp_seconds=int(os.getenv("ACCESS_TOKEN_EXPIRE_SECONDS", "3600")),
        refresh_token_exp_days=int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "60")),
        reset_db_on_startup=_parse_bool(os.getenv("RESET_DB_ON_STARTUP", "true")),
        static_dir=os.getenv("STATIC_DIR", "."),
        cors_allow_origins=("*",) if cors.strip() == "*" else _parse_csv(cors),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8080")),
    )
