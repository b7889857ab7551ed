"""
NSW Travel-to-Work Atlas - Application Settings
Manages environment variables and configuration using Pydantic
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List
import os


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Nothing is required: defaults reproduce the published NSW analysis
    (Sydney Inner City as the CBD proxy, 2016 -> 2021 growth window).

    Scoring weights are validated when the pipeline configuration is
    built, not here, so a bad .env fails at pipeline construction.
    """

    # Database (materialized analytical views)
    DATABASE_URL: str = "sqlite:///data/travel_atlas.db"
    TABLE_PREFIX: str = "v_"

    # Application
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    # Raw census feeds: "csv" reads <RAW_DATA_DIR>/<TABLE>.csv,
    # "database" reads <TABLE> through DATABASE_URL
    RAW_SOURCE: str = "csv"
    RAW_DATA_DIR: str = "data/raw"

    # File storage
    DATA_DIR: str = "data"
    EXPORT_DIR: str = "exports"
    LOG_DIR: str = "logs"

    # Analysis scope
    JURISDICTION_NAME: str = "New South Wales"
    CBD_PROXY_SA3_NAME: str = "Sydney Inner City"
    EXCLUDED_WORKPLACE_CODES: List[str] = ["197979799"]  # Migratory - Offshore - Shipping (NSW)

    # Candidate scoring window
    CANDIDATE_YEAR: int = 2021
    GROWTH_BASE_YEAR: int = 2016

    # Eligibility thresholds
    MIN_CBD_COMMUTERS: int = 50
    MIN_TOTAL_COMMUTERS: int = 500

    # Composite score weights (must sum to 1.0)
    WEIGHT_CBD_VOLUME: float = 0.40
    WEIGHT_CBD_GROWTH: float = 0.20
    WEIGHT_PT_GAP: float = 0.20
    WEIGHT_WFH_GAP: float = 0.10
    WEIGHT_MIXED_MODE: float = 0.10

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Create directories if they don't exist
        os.makedirs(self.DATA_DIR, exist_ok=True)
        os.makedirs(self.EXPORT_DIR, exist_ok=True)
        os.makedirs(self.LOG_DIR, exist_ok=True)


@lru_cache()
def get_settings() -> Settings:
    """
    Returns cached settings instance.
    Uses lru_cache to avoid re-reading .env on every call.
    """
    return Settings()


# Raw source table names per census year
AREA_TABLES = {
    2011: "SA2_2011_AUST",
    2016: "SA2_2016_AUST",
    2021: "SA2_2021_AUST",
}

TRANSPORT_TABLES = {
    2011: "SA2RESIDENTXMETHODOFTRANSPORT2011",
    2016: "SA2RESIDENTXMETHODOFTRANSPORT2016",
    2021: "SA2RESIDENTXMETHODOFTRANSPORT2021",
}

FLOW_TABLES = {
    2011: "SA2RESIDENTXSA2WORK2011",
    2016: "SA2RESIDENTXSA2WORK2016",
    2021: "SA2RESIDENTXSA2WORK2021",
}
