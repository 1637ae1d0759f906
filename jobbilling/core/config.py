"""Application configuration"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # API
    API_V1_PREFIX: str = "/api"
    PROJECT_NAME: str = "Job Billing API"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "postgresql://localhost:5432/jobbilling"

    # Invoicing
    # WHY: Matches the contractor's standard net-30 payment terms
    INVOICE_DUE_DAYS: int = 30

    # Document storage
    # WHY: "local" keeps development self-contained; production uses S3
    DOCUMENT_STORAGE_BACKEND: str = "local"
    LOCAL_DOCUMENT_ROOT: str = "./var/documents"
    S3_BUCKET_NAME: str = "job-billing-documents"
    S3_PRESIGNED_URL_EXPIRY: int = 3600  # seconds
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_REGION: str = "us-east-1"

    # Company branding printed on invoice PDFs
    COMPANY_NAME: str = "Roofing Contractor"
    COMPANY_ADDRESS: str = "123 Business St"
    COMPANY_CITY_STATE_ZIP: str = "Springfield, IL 62701"
    COMPANY_PHONE: str = "(555) 123-4567"
    COMPANY_EMAIL: str = "billing@example.com"

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    @property
    def async_database_url(self) -> str:
        """Get async database URL"""
        return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")


settings = Settings()
