from pydantic_settings import BaseSettings
from typing import Optional
import secrets

class Settings(BaseSettings):
    PROJECT_NAME: str = "AlgoMakers.Ai API"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"

    # DB URL
    DATABASE_URL: str

    # Security
    SECRET_KEY: str = secrets.token_urlsafe(32)
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Public URL of the web app, used for gateway callbacks and redirects
    NEXTAUTH_URL: str = "http://localhost:3000"

    # NOWPayments
    NOWPAYMENTS_API_KEY: Optional[str] = None
    NOWPAYMENTS_IPN_KEY: Optional[str] = None
    NOWPAYMENTS_API_URL: str = "https://api.nowpayments.io"
    NOWPAYMENTS_TIMEOUT: int = 30
    PAYMENT_MIN_AMOUNT: float = 20
    INVOICE_EXPIRY_MINUTES: int = 20

    # Dashboard cache
    DASHBOARD_CACHE_TTL_SECONDS: int = 300

    # Email
    SMTP_TLS: bool = True
    SMTP_PORT: int = 587
    SMTP_HOST: Optional[str] = None
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    EMAILS_FROM_EMAIL: Optional[str] = None
    EMAILS_FROM_NAME: Optional[str] = "AlgoMakers.Ai"

    # Default Admin
    DEFAULT_ADMIN_EMAIL: str = "admin@algomakers.ai"
    DEFAULT_ADMIN_PASSWORD: str = "Admin123!"
    DEFAULT_ADMIN_NAME: str = "Admin"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    class Config:
        case_sensitive = True
        env_file = ".env"
        extra = "ignore"

settings = Settings()
