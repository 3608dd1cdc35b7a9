from __future__ import annotations
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# .env з кореня проєкту, якщо є
ROOT = Path(__file__).resolve().parents[2]
ENV_PATH = ROOT / '.env'
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)
else:
    load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=False, extra='ignore')

    # Source fetcher
    fetch_timeout_seconds: float = 180.0
    fetch_connect_timeout_seconds: float = 15.0
    uploads_dir: str = 'uploads'

    # Remote warehouse fallback (optional)
    warehouse_enabled: bool = False
    warehouse_base_url: Optional[str] = None
    warehouse_api_key: Optional[str] = None
    warehouse_timeout_seconds: float = 30.0
    warehouse_cache_ttl_seconds: int = 30

    # Attendance
    attendance_timezone: str = 'Asia/Kolkata'
    default_shift_start: str = '05:30:00'

    # Store connectivity retries
    store_retry_attempts: int = 3
    store_retry_backoff_seconds: float = 1.0

    # Sync runs
    sync_progress_every: int = 50
    sync_initial_run: bool = True
    sync_initial_delay_seconds: int = 5
    sync_initial_jitter_seconds: int = 10

    # Import log listing
    import_log_page_size: int = 50
    import_log_max_page_size: int = 200

    @property
    def uploads_path(self) -> Path:
        path = Path(self.uploads_dir)
        return path if path.is_absolute() else ROOT / path


settings = Settings()  # глобальний інстанс
