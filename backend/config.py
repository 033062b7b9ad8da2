"""
Application configuration with Docker secrets support.

Secrets are read using the _read_secret() pattern:
  1. Direct env var (e.g., CLOUDINARY_API_SECRET)
  2. File-based env var (e.g., CLOUDINARY_API_SECRET_FILE → reads file path)
  3. Raises ValueError if neither is set
"""

import os
import logging

from grants.tokens import MIN_TOKEN_LENGTH

logger = logging.getLogger(__name__)

RECORD_STORE_BACKENDS = ("sql", "redis")


def _read_secret(env_var: str, file_env_var: str | None = None) -> str:
    """Read a secret from env var or Docker secrets file.

    Args:
        env_var: Direct environment variable name (e.g., CLOUDINARY_API_KEY)
        file_env_var: File path env var name (e.g., CLOUDINARY_API_KEY_FILE).
                      If None, defaults to env_var + '_FILE'.

    Returns:
        The secret value.

    Raises:
        ValueError: If neither source provides a value.
    """
    if file_env_var is None:
        file_env_var = f"{env_var}_FILE"

    # Priority 1: Direct env var
    value = os.environ.get(env_var)
    if value:
        return value

    # Priority 2: File-based (Docker secrets pattern)
    file_path = os.environ.get(file_env_var)
    if file_path:
        try:
            with open(file_path, "r") as f:
                value = f.read().strip()
            if value:
                return value
        except FileNotFoundError:
            logger.error(f"Secret file not found: {file_path} (from {file_env_var})")
        except PermissionError:
            logger.error(f"Permission denied reading: {file_path} (from {file_env_var})")

    raise ValueError(
        f"Secret not configured. Set {env_var} env var or {file_env_var} pointing to a file."
    )


class Settings:
    """Application settings loaded from environment and Docker secrets."""

    def __init__(self):
        # Record store
        self.record_store_backend = os.environ.get("RECORD_STORE_BACKEND", "sql").lower()
        if self.record_store_backend not in RECORD_STORE_BACKENDS:
            raise ValueError(
                f"Unknown RECORD_STORE_BACKEND {self.record_store_backend!r}. "
                f"Expected one of: {', '.join(RECORD_STORE_BACKENDS)}"
            )
        self.database_url = self._build_database_url()
        self.redis_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")

        # Grant lifecycle
        self.grant_ttl_seconds = int(os.environ.get("GRANT_TTL_SECONDS", "3600"))
        self.store_timeout_seconds = float(os.environ.get("STORE_TIMEOUT_SECONDS", "5"))
        self.sweep_interval_seconds = float(os.environ.get("SWEEP_INTERVAL_SECONDS", "300"))
        self.token_length = int(os.environ.get("TOKEN_LENGTH", "8"))
        if self.token_length < MIN_TOKEN_LENGTH:
            raise ValueError(f"TOKEN_LENGTH must be at least {MIN_TOKEN_LENGTH}")

        # Delivery
        self.public_base_url = os.environ.get("PUBLIC_BASE_URL", "http://localhost:5000").rstrip("/")
        self.cors_origins = [
            origin.strip()
            for origin in os.environ.get("CORS_ORIGINS", "*").split(",")
            if origin.strip()
        ]
        self.view_countdown_seconds = int(os.environ.get("VIEW_COUNTDOWN_SECONDS", "5"))
        self.max_upload_bytes = int(os.environ.get("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

        # Object store (secrets loaded lazily on first access via properties)
        self.cloudinary_cloud_name = os.environ.get("CLOUDINARY_CLOUD_NAME", "")
        self._cloudinary_api_key: str | None = None
        self._cloudinary_api_secret: str | None = None

    def _build_database_url(self) -> str:
        """Build async database URL with password from secrets."""
        base_url = os.environ.get(
            "DATABASE_URL", "postgresql+asyncpg://burnview@postgres:5432/burnview"
        )
        try:
            password = _read_secret("POSTGRES_PASSWORD")
            # Insert password into URL: postgresql+asyncpg://user@host → user:pass@host
            if "://" in base_url and "@" in base_url:
                scheme_user, rest = base_url.split("@", 1)
                if ":" not in scheme_user.split("://")[1]:
                    # No password in URL yet, add it
                    base_url = f"{scheme_user}:{password}@{rest}"
        except ValueError:
            logger.warning("POSTGRES_PASSWORD not set, using DATABASE_URL as-is")
        return base_url

    @property
    def cloudinary_api_key(self) -> str:
        if self._cloudinary_api_key is None:
            self._cloudinary_api_key = _read_secret("CLOUDINARY_API_KEY")
        return self._cloudinary_api_key

    @property
    def cloudinary_api_secret(self) -> str:
        if self._cloudinary_api_secret is None:
            self._cloudinary_api_secret = _read_secret("CLOUDINARY_API_SECRET")
        return self._cloudinary_api_secret


settings = Settings()
