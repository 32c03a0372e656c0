import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional


DEFAULT_CATEGORIES = (
    "Food",
    "Groceries",
    "Travel",
    "Rent",
    "Utilities",
    "Entertainment",
    "Healthcare",
    "Shopping",
    "Miscellaneous",
    "Income",
)

SUPPORTED_CURRENCIES = (
    "ars",  # Argentine Peso
    "usd",  # US Dollar
    "eur",  # Euro
)


@dataclass(frozen=True)
class Catalog:
    default_categories: tuple[str, ...] = DEFAULT_CATEGORIES
    supported_currencies: tuple[str, ...] = SUPPORTED_CURRENCIES
    default_currency: str = "usd"
    default_start_day: int = 1


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        log_level: str,
        catalog: Catalog,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.log_level = log_level
        self.catalog = catalog


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("EXPENSES_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("EXPENSES_DATABASE_URL")
    if not database_url:
        default_db = _ensure_data_dir() / "expenses.db"
        database_url = f"sqlite:///{default_db}"
    timezone = os.getenv("EXPENSES_TIMEZONE", "UTC")
    log_level = os.getenv("EXPENSES_LOG_LEVEL", "INFO").upper()
    catalog = Catalog(
        default_currency=os.getenv("EXPENSES_DEFAULT_CURRENCY", "usd").lower(),
        default_start_day=int(os.getenv("EXPENSES_DEFAULT_START_DAY", "1")),
    )
    return Settings(
        database_url=database_url,
        timezone=timezone,
        log_level=log_level,
        catalog=catalog,
    )


def configure_logging(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
