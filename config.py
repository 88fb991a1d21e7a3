"""
Configuration settings for the Finaxial API
"""

from typing import List, Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Settings(BaseSettings):
    """Application settings"""

    # App Info
    APP_NAME: str = "Finaxial API"
    APP_VERSION: str = "1.0.0"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 5000
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = ""
    DATABASE_NAME: str = "finaxial"

    # Security
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_HOURS: int = 24 * 30
    OTP_EXPIRE_MINUTES: int = 5

    # Email
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    EMAIL_FROM: str = "noreply@finaxial.app"

    # CORS: "*" accepts any origin; list explicit origins to restrict
    CORS_ORIGINS: List[str] = ["*"]
    CLIENT_URL: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    @property
    def allowed_origins(self) -> List[str]:
        origins = list(self.CORS_ORIGINS)
        if self.CLIENT_URL:
            origins.append(self.CLIENT_URL)
        return origins

    @property
    def allow_any_origin(self) -> bool:
        return "*" in self.CORS_ORIGINS


settings = Settings()
