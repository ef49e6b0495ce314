"""Configuration management using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class APIConfig(BaseModel):
    """HTTP client configuration settings."""
    timeout: int = 30
    max_retries: int = 3
    retry_delay: int = 1
    exponential_backoff: bool = True


class StoreTablesConfig(BaseModel):
    """Table names in the hosted database."""
    inventory: str = "inventory"
    sales: str = "sales"
    expenses: str = "expenses"
    purchase_orders: str = "purchase_orders"


class StoreConfig(BaseModel):
    """Remote store configuration."""
    schema_name: str = "public"
    tables: StoreTablesConfig = StoreTablesConfig()


class InsightsConfig(BaseModel):
    """Insight generator configuration."""
    inventory_sample_size: int = 100
    sales_sample_size: int = 50
    thinking_budget: int = 0


class LoggingFilesConfig(BaseModel):
    """Log file paths."""
    transactions: str = "logs/transactions.log"
    store: str = "logs/store.log"
    error: str = "logs/error.log"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    max_bytes: int = 10485760  # 10MB
    backup_count: int = 5
    files: LoggingFilesConfig = LoggingFilesConfig()


class SchedulerConfig(BaseModel):
    """Scheduler configuration."""
    timezone: str = "Africa/Accra"
    max_instances: int = 1
    coalesce: bool = True
    misfire_grace_time: int = 60


class YAMLConfig(BaseModel):
    """Configuration loaded from YAML file."""
    api: APIConfig = APIConfig()
    store: StoreConfig = StoreConfig()
    insights: InsightsConfig = InsightsConfig()
    logging: LoggingConfig = LoggingConfig()
    scheduler: SchedulerConfig = SchedulerConfig()


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Supabase settings
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_key: str = Field(..., description="Supabase anon or service key")

    # Gemini settings
    google_api_key: Optional[str] = Field(default=None, description="Google Gemini API key")
    gemini_model: str = Field(default="gemini-2.5-flash", description="Gemini model name")

    # Business settings
    business_name: str = Field(default="Raha Soldi Ent", description="Business name used in prompts")
    currency_symbol: str = Field(default="GH₵", description="Currency symbol for display")

    # Application settings
    environment: str = Field(default="development", description="Environment (development/production)")
    log_level: Optional[str] = Field(default=None, description="Override log level")
    resync_interval_minutes: int = Field(default=15, description="Background re-sync interval in minutes")
    port: int = Field(default=8000, description="Server port")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


class AppConfig:
    """Combined application configuration."""

    def __init__(self):
        self.env = Settings()

        # Load YAML config
        config_path = Path(__file__).parent.parent.parent / "config" / "config.yml"
        if config_path.exists():
            with open(config_path, "r") as f:
                yaml_data = yaml.safe_load(f) or {}
                self.yaml = YAMLConfig(**yaml_data)
        else:
            self.yaml = YAMLConfig()

        # Override log level if specified in env
        if self.env.log_level:
            self.yaml.logging.level = self.env.log_level

    @property
    def api(self) -> APIConfig:
        return self.yaml.api

    @property
    def store(self) -> StoreConfig:
        return self.yaml.store

    @property
    def insights(self) -> InsightsConfig:
        return self.yaml.insights

    @property
    def logging(self) -> LoggingConfig:
        return self.yaml.logging

    @property
    def scheduler(self) -> SchedulerConfig:
        return self.yaml.scheduler

    @property
    def is_production(self) -> bool:
        return self.env.environment.lower() == "production"


@lru_cache()
def get_config() -> AppConfig:
    """Get cached configuration instance."""
    return AppConfig()
