from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the billing import tool.

Kept apart from the loader in billing_import/config/loader.py, which only
parses and validates YAML into these types.
"""

# Default spreadsheet headers of the generic tabular export
DEFAULT_TABULAR_COLUMNS: dict[str, str] = {
    "phone": "Номер телефона",
    "contract": "Договор",
    "period_start": "Дата начала периода",
    "period_end": "Дата окончания периода",
    "tariff": "Тарифный план",
    "total": "Всего по строке",
    "vat": "НДС",
    "amount": "Итого по строке",
    "tariff_fee": "Абонентская плата по тарифному плану",
}


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for the billing import tool."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    tabular_columns: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_TABULAR_COLUMNS))
    page_size: int = 1000  # execute_values page size
    logs_directory: str = "./logs"
