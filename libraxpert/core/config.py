from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "LibraXpert API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://postgres:postgres@db:5432/libraxpert"
    TEST_DATABASE_URL: str = "postgresql+asyncpg://postgres:postgres@db:5432/libraxpert_test"

    # JWT
    JWT_SECRET_KEY: str = "change-me-to-a-random-secret-key-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440

    # Built-in Admin
    ADMIN_EMAIL: str = "admin@libraxpert.com"
    ADMIN_PASSWORD: str = "admin123456"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Maintenance loop interval (seconds)
    MAINTENANCE_INTERVAL: int = 3600

    # Frontend origins allowed by CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:8080",
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }


settings = Settings()
