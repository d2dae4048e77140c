import os
import secrets
from functools import lru_cache
from pathlib import Path

CSRF_SECRET_FILE = "csrf_secret"


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        csrf_secret: str,
        default_currency: str,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.csrf_secret = csrf_secret
        self.default_currency = default_currency
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _load_csrf_secret(data_dir: Path) -> str:
    """Env secret, else a generated one persisted in the data dir."""
    from_env = os.getenv("FINANCE_CSRF_SECRET", "").strip()
    if from_env:
        return from_env
    path = data_dir / CSRF_SECRET_FILE
    if path.exists():
        stored = path.read_text(encoding="utf-8").strip()
        if stored:
            return stored
    secret = secrets.token_hex(32)
    path.write_text(secret, encoding="utf-8")
    path.chmod(0o600)
    return secret


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "finance.db"
    return Settings(
        database_url=os.getenv("FINANCE_DATABASE_URL", f"sqlite:///{default_db}"),
        timezone=os.getenv("FINANCE_TIMEZONE", "Asia/Kolkata"),
        csrf_secret=_load_csrf_secret(data_dir),
        default_currency=os.getenv("FINANCE_DEFAULT_CURRENCY", "₹"),
        log_level=os.getenv("FINANCE_LOG_LEVEL", "INFO").upper(),
    )
