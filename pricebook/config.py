"""
Configuration management for Pricebook
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Pricebook"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./pricebook.db"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Price lists
    GENERAL_SCOPE_KEY: str = "GENERAL"  # scope key of the single general sales list
    DEFAULT_ACTOR: str = "system"       # audit name when the caller gives none

    # Demo registries (suppliers, customers, products) on first start
    SEED_DEMO_DATA: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
