import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass(slots=True)
class BaseConfig:
    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me")
    FLASK_ENV: str = os.getenv("FLASK_ENV", "development")
    DEBUG: bool = os.getenv("FLASK_DEBUG", "0") == "1"
    TESTING: bool = False

    # Storage: "memory" keeps everything in-process, "firestore" uses Firebase
    STORE_BACKEND: str = os.getenv("STORE_BACKEND", "memory")

    # Sessions
    DEFAULT_MATCH_THRESHOLD: float = float(os.getenv("DEFAULT_MATCH_THRESHOLD", "0.5"))
    SESSION_TTL_HOURS: int = int(os.getenv("SESSION_TTL_HOURS", "24"))
    MATCH_DEBOUNCE_MS: int = int(os.getenv("MATCH_DEBOUNCE_MS", "500"))
    MIN_PARTICIPANTS_TO_START: int = int(os.getenv("MIN_PARTICIPANTS_TO_START", "2"))

    # TMDB
    TMDB_API_KEY: str | None = os.getenv("TMDB_API_KEY")
    TMDB_REGION: str = os.getenv("TMDB_REGION", "US")

    # Prepared catalog file; when set it is used instead of TMDB
    CATALOG_CSV_PATH: str | None = os.getenv("CATALOG_CSV_PATH")

    # Device identity
    DEVICE_ID_PATH: str = os.getenv(
        "DEVICE_ID_PATH", os.path.expanduser("~/.flickpick/device_id")
    )

    # Firebase
    FIREBASE_PROJECT_ID: str | None = os.getenv("FIREBASE_PROJECT_ID")
    FIREBASE_CLIENT_EMAIL: str | None = os.getenv("FIREBASE_CLIENT_EMAIL")
    FIREBASE_PRIVATE_KEY: str | None = os.getenv("FIREBASE_PRIVATE_KEY")
    FIREBASE_DATABASE_URL: str | None = os.getenv("FIREBASE_DATABASE_URL")


@dataclass(slots=True)
class DevelopmentConfig(BaseConfig):
    DEBUG: bool = True


@dataclass(slots=True)
class ProductionConfig(BaseConfig):
    DEBUG: bool = False


@dataclass(slots=True)
class TestingConfig(BaseConfig):
    TESTING: bool = True
    STORE_BACKEND: str = "memory"
    MATCH_DEBOUNCE_MS: int = 0
    TMDB_API_KEY: str | None = None
    CATALOG_CSV_PATH: str | None = None


_CONFIG_MAP = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}


def get_config(name: str | None) -> type[BaseConfig]:
    env_name = name or os.getenv("FLASK_ENV", "development").lower()
    return _CONFIG_MAP.get(env_name, DevelopmentConfig)


def config_value(name: str, default):
    """Read a setting from the active Flask app, falling back outside an app context."""
    from flask import current_app, has_app_context

    if has_app_context():
        return current_app.config.get(name, default)
    return default
