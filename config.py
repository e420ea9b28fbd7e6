"""Application configuration."""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = True

    # HTTP transport
    request_timeout: float = 15.0
    # Minimum seconds between two requests of one transport
    request_interval: float = 0.4

    # Site used by the CLI when --site is omitted
    default_site: Optional[str] = None

    # Scrapy
    crawl_output_dir: str = "./data/crawl"

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
