"""
Land Registry API - Configuration
Loads environment variables and defines global settings
"""

from pydantic_settings import BaseSettings
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    # App
    app_name: str = "Land Registry API"
    app_env: str = "development"
    debug: bool = True
    api_prefix: str = "/api"
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 5000

    # Database
    database_url: str

    # JWT
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # CORS
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # Documents
    upload_folder: str = "uploads"
    documents_url_prefix: str = "/api/files/documents"
    max_upload_bytes: int = 10 * 1024 * 1024
    max_create_documents: int = 10
    max_added_documents: int = 5

    # Optimistic document appends
    append_max_retries: int = 5

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def uses_postgis(self) -> bool:
        return self.database_url.startswith("postgresql")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton"""
    return Settings()


# Global instance
settings = get_settings()
