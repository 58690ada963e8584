from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional

from subsidy.common.config import DEFAULT_CATALOG_PATH


class Settings(BaseSettings):
    # App
    app_name: str = "Rental Subsidy Engine"
    debug: bool = False

    # CORS
    cors_origins: str = "http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # Database
    database_url: str = "sqlite:///./subsidy.db"
    database_echo: bool = False

    # Storage
    storage_dir: str = "./storage/documents"
    pdf_output_dir: str = "./storage/pdfs"

    # Signed PDF header
    pdf_company_name: str = "Programa de Subsidio de Arriendo"
    pdf_company_address: Optional[str] = None

    # Document catalog (YAML)
    catalog_path: str = DEFAULT_CATALOG_PATH

    # Logging
    log_level: str = "INFO"
    log_dir: str = "./logs"
    log_to_file: bool = False

    # Decisions
    rationale_min_length: int = 10
    rationale_max_length: int = 2000

    # Reporting
    recent_activity_days: int = 30

    # Process codes: <prefix>-<year>-<seq>
    code_prefix: str = "SUB"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Allow extra env vars without raising validation errors
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
