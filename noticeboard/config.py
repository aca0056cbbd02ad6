from dataclasses import dataclass
from pathlib import Path
import os

from dotenv import load_dotenv


@dataclass
class Config:
    store_path: Path
    logs_dir: Path
    failed_emails_dir: Path
    log_level: str
    web_host: str
    web_port: int
    default_deadline_days: int
    date_day_first: bool
    webhook_secret: str


def load_config() -> Config:
    """Load configuration from environment variables with defaults."""
    load_dotenv()
    return Config(
        store_path=Path(os.getenv("STORE_PATH", "./data/notifications.json")).resolve(),
        logs_dir=Path(os.getenv("LOGS_DIR", "./data/logs")).resolve(),
        failed_emails_dir=Path(os.getenv("FAILED_EMAILS_DIR", "./data/failed_emails")).resolve(),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        web_host=os.getenv("WEB_HOST", "0.0.0.0"),
        web_port=int(os.getenv("WEB_PORT", "8000")),
        default_deadline_days=int(os.getenv("DEFAULT_DEADLINE_DAYS", "7")),
        date_day_first=os.getenv("DATE_DAY_FIRST", "true").lower() == "true",
        webhook_secret=os.getenv("WEBHOOK_SECRET", ""),
    )
