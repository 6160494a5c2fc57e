"""Configuration loading and validation using Pydantic."""

import os
import re
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator


ENV_VAR = re.compile(r"\$\{([^}]+)\}")


def expand_env_vars(value: str) -> str:
    """Replace ${VAR} references with environment values. Unset variables become empty."""
    return ENV_VAR.sub(lambda m: os.environ.get(m.group(1), ""), value)


class DatabaseConfig(BaseModel):
    """Database configuration."""

    # SQLite file path or a full database URL (postgresql://...)
    path: str = "./instance/ledger.db"

    @field_validator("path", mode="before")
    @classmethod
    def expand_env(cls, v: str | Path) -> str:
        """Expand environment variables in the connection string."""
        if isinstance(v, Path):
            return str(v)
        if isinstance(v, str):
            return expand_env_vars(v)
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    enabled: bool = True
    level: Literal["DEBUG", "INFO", "WARN", "WARNING", "ERROR"] = "INFO"
    format: Literal["splunk", "json"] = "splunk"
    file: Path | None = None


class BillingConfig(BaseModel):
    """Invoice numbering, rates and payment details.

    These values seed the settings row the first time the database is
    initialized. Afterwards the stored settings are authoritative.
    """

    invoice_prefix: str = "INV-"
    starting_sequence: int = Field(default=1000, ge=0)
    max_sequence: int = Field(default=999_999_999, ge=1)
    default_hourly_rate: float = Field(default=100.0, ge=0)
    payment_terms_days: int = Field(default=30, ge=0)
    payment_info: str = ""
    payment_qr_url: str = ""
    business_name: str = ""
    invoice_footer_note: str = ""

    @field_validator("payment_info", mode="before")
    @classmethod
    def expand_env(cls, v: str) -> str:
        """Expand environment variables in payment details."""
        if isinstance(v, str):
            return expand_env_vars(v)
        return v

    def settings_seed(self) -> dict:
        """Column values for a freshly created settings row."""
        return {
            "invoice_prefix": self.invoice_prefix,
            "next_invoice_seq": self.starting_sequence,
            "default_hourly_rate": self.default_hourly_rate,
            "payment_info": self.payment_info or None,
            "payment_qr_url": self.payment_qr_url or None,
            "business_name": self.business_name or None,
            "invoice_footer_note": self.invoice_footer_note or None,
        }


class SchedulerConfig(BaseModel):
    """Recurring expense evaluation."""

    # Evaluate recurring rules whenever a CLI session opens the ledger
    evaluate_on_load: bool = True


class Config(BaseModel):
    """Root configuration model."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    billing: BillingConfig = Field(default_factory=BillingConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)


DEFAULT_CONFIG_PATH = Path("config.yaml")


def load_config(config_path: Path | None = None) -> Config:
    """Read and validate the YAML configuration.

    A missing file is not an error: every section has defaults, so a fresh
    checkout runs against ./instance/ledger.db.

    Raises:
        pydantic.ValidationError: If a value fails validation.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        return Config()

    raw = yaml.safe_load(path.read_text()) or {}
    return Config.model_validate(raw)


def ensure_directories(config: Config) -> None:
    """Create parent directories for a SQLite file and the log file."""
    if "://" not in config.database.path:
        Path(config.database.path).parent.mkdir(parents=True, exist_ok=True)

    if config.logging.file:
        config.logging.file.parent.mkdir(parents=True, exist_ok=True)
