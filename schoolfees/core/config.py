from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")
    store_timeout_seconds: float = Field(10.0, alias="STORE_TIMEOUT_SECONDS")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Approver of a payment deletion must not be the recorder or the requester.
    enforce_segregation_of_duties: bool = Field(True, alias="ENFORCE_SEGREGATION_OF_DUTIES")

    # Term 1: Jan-Apr, Term 2: May-Aug, Term 3: Sep-Dec
    term_start_months: Dict[int, int] = Field(
        default_factory=lambda: {1: 1, 2: 5, 3: 9},
        alias="TERM_START_MONTHS",
    )
    payment_grace_days: int = Field(30, alias="PAYMENT_GRACE_DAYS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
