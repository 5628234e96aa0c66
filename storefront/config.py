import os
from dataclasses import dataclass
from typing import Optional

# Optional: load a local .env file if present.
try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    # If python-dotenv isn't installed or .env isn't present, that's fine.
    pass


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    IMPORTANT: Provide secrets via environment variables or a .env file.
    Do not hardcode secrets in source code.
    """

    # -----------------
    # Core (MongoDB)
    # -----------------
    MONGO_URI: str = (
        os.environ.get("STOREFRONT_MONGO_URI")
        or os.environ.get("MONGO_URI")
        or "mongodb://127.0.0.1:27017"
    )
    MONGO_DB_NAME: str = os.environ.get("STOREFRONT_DB_NAME", "my_store")

    # Server selection timeout; startup fails if Mongo isn't reachable within it.
    MONGO_TIMEOUT_MS: int = int(os.environ.get("MONGO_TIMEOUT_MS", "5000"))

    # -----------------
    # Auth (JWT)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set AUTH_JWT_SECRET to a strong random value.
    AUTH_JWT_SECRET: str = (
        os.environ.get("AUTH_JWT_SECRET")
        or os.environ.get("JWT_SECRET")
        or "dev_change_me"
    )
    AUTH_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("AUTH_TOKEN_EXPIRE_MINUTES", "1440"))  # 1 day

    # Password reset
    AUTH_RESET_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("AUTH_RESET_TOKEN_EXPIRE_MINUTES", "60"))
    # There is no mail delivery yet, so the reset token is echoed back to the caller.
    # Set to 0 once a real notifier is wired in.
    AUTH_RESET_TOKEN_IN_RESPONSE: bool = _env_bool("AUTH_RESET_TOKEN_IN_RESPONSE", True) is True

    # Bootstrap first admin user if the users collection is empty.
    # Clear the email or password to disable.
    AUTH_BOOTSTRAP_ADMIN_EMAIL: str = os.environ.get("AUTH_BOOTSTRAP_ADMIN_EMAIL", "admin@example.com")
    AUTH_BOOTSTRAP_ADMIN_PASSWORD: str = os.environ.get("AUTH_BOOTSTRAP_ADMIN_PASSWORD", "admin")
    AUTH_BOOTSTRAP_ADMIN_NAME: str = os.environ.get("AUTH_BOOTSTRAP_ADMIN_NAME", "Administrator")

    # -----------------
    # CORS (development)
    # -----------------
    CORS_ALLOW_ORIGINS: str = os.environ.get(
        "CORS_ALLOW_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
    )


def load_config() -> Config:
    return Config()
