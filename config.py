import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        token_secret: str,
        token_ttl_hours: int,
        auth_cookie_name: str,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.token_secret = token_secret
        self.token_ttl_hours = token_ttl_hours
        self.auth_cookie_name = auth_cookie_name
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("EXPENSES_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "expenses.db"
    database_url = os.getenv("EXPENSES_DATABASE_URL", f"sqlite:///{default_db}")
    token_secret = os.getenv(
        "EXPENSES_TOKEN_SECRET",
        "3f9c2a71d84be0c6a5f7e912b3d04c8e6a1f25b7c9d3e8f0a2b4c6d8e0f1a3b5",
    )
    token_ttl_hours = int(os.getenv("EXPENSES_TOKEN_TTL_HOURS", "24"))
    auth_cookie_name = os.getenv("EXPENSES_AUTH_COOKIE", "authToken")
    log_level = os.getenv("EXPENSES_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        token_secret=token_secret,
        token_ttl_hours=token_ttl_hours,
        auth_cookie_name=auth_cookie_name,
        log_level=log_level,
    )
