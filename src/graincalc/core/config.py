from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# .env file sits at the repository root (parent of src/)
# Only use if it exists (CI uses environment variables directly)
# Path: core/config.py -> graincalc -> src -> repo root -> .env
_ENV_FILE = Path(__file__).parent.parent.parent.parent / ".env"
_ENV_FILE = _ENV_FILE if _ENV_FILE.exists() else None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Firestore project hosting the Farms/Fields/calculations collections
    firestore_project_id: str | None = None
    firestore_database: str = "(default)"

    # Service account key file; application default credentials when unset
    firestore_credentials_file: str | None = None

    # "host:port" of a local Firestore emulator, e.g. "localhost:8080"
    firestore_emulator_host: str | None = None

    # How often a live query checks that its listen stream is still open (seconds)
    live_query_interval_seconds: float = 5.0

    request_timeout_seconds: float = 30.0

    # Grain calculator defaults (percent moisture, lb per bushel)
    default_target_moisture: float = 15.5
    default_test_weight: float = 56.0

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


def get_settings(**overrides) -> Settings:
    """Build a fresh Settings instance, applying keyword overrides."""
    return Settings(**overrides)


settings = Settings()
