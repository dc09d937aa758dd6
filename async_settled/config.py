"""Configuration management using Pydantic Settings."""

import logging
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class MongoConfig(BaseModel):
    """MongoDB connection and per-operator routing."""

    url: str = "mongodb://localhost:27017"
    default_database: str = "default"
    operator_database_prefix: str = "op_"
    # op_code -> connection URL for operators living on their own cluster
    operator_urls: dict[str, str] = Field(default_factory=dict)
    server_selection_timeout_ms: int = 5000
    max_pool_size: int = 100


class LedgerConfig(BaseModel):
    """Settlement ledger behavior."""

    settled_collection: str = "async_settled"
    precount_fix_collection: str = "precount_fix"
    decimal_scale: int = 4
    timezone: str = "Asia/Taipei"
    settled_ttl_seconds: int = 7 * 24 * 3600

    @field_validator("decimal_scale")
    @classmethod
    def validate_scale(cls, v: int) -> int:
        if v < 0:
            raise ValueError("decimal_scale cannot be negative")
        return v


class Settings(BaseSettings):
    """Main configuration class."""

    environment: str = "development"
    log_level: str = "INFO"
    logfire_token: str = ""

    storage_backend: Literal["mongo", "memory"] = "mongo"
    config_path: Path = Path("data/config.yaml")

    mongo: MongoConfig = Field(default_factory=MongoConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)

    # op_code -> vendor_code -> rate (vendor currency units per operator unit)
    currency_rates: dict[str, dict[str, Decimal]] = Field(default_factory=dict)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def load_yaml_config(self) -> None:
        """Load and merge YAML configuration."""
        config_path = self.config_path

        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}. Using defaults.")
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            for section_name in ["mongo", "ledger"]:
                if section_name in yaml_config:
                    section = getattr(self, section_name)
                    section_dict = section.model_dump()
                    section_dict.update(yaml_config[section_name])
                    setattr(self, section_name, section.__class__(**section_dict))

            for op_code, vendor_rates in (yaml_config.get("currency_rates") or {}).items():
                merged = dict(self.currency_rates.get(op_code, {}))
                for vendor_code, rate in (vendor_rates or {}).items():
                    merged[vendor_code] = Decimal(str(rate))
                self.currency_rates[op_code] = merged

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings
