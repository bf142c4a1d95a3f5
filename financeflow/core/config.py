from pydantic_settings import BaseSettings
from pydantic import Field
import os


class Config(BaseSettings):
    # Database Configuration
    db_url: str = Field(default="sqlite+aiosqlite:///./financeflow.db", alias="DB_URL")

    # Gmail Configuration
    gmail_credentials_path: str = Field(
        default="credentials.json", alias="GMAIL_CREDENTIALS_PATH"
    )
    gmail_tokens_dir: str = Field(default="tokens", alias="GMAIL_TOKENS_DIR")
    gmail_max_results: int = Field(default=50, alias="GMAIL_MAX_RESULTS")

    # Sync scheduling
    sync_run_timeout_seconds: float = Field(default=120.0, alias="SYNC_RUN_TIMEOUT_SECONDS")
    scheduler_tick_seconds: int = Field(default=15, alias="SCHEDULER_TICK_SECONDS")
    default_sync_frequency_minutes: int = Field(
        default=30, alias="DEFAULT_SYNC_FREQUENCY_MINUTES"
    )
    default_scan_days: int = Field(default=7, alias="DEFAULT_SCAN_DAYS")

    # Confidence scoring (penalty per missing signal, subtracted from 1.0)
    review_confidence_threshold: float = Field(default=0.7, alias="REVIEW_CONFIDENCE_THRESHOLD")
    weight_missing_reference_id: float = Field(default=0.25, alias="WEIGHT_MISSING_REFERENCE_ID")
    weight_missing_account_mask: float = Field(default=0.15, alias="WEIGHT_MISSING_ACCOUNT_MASK")
    weight_missing_date: float = Field(default=0.20, alias="WEIGHT_MISSING_DATE")
    weight_missing_merchant: float = Field(default=0.10, alias="WEIGHT_MISSING_MERCHANT")

    # Deduplication
    dedup_date_tolerance_days: int = Field(default=2, alias="DEDUP_DATE_TOLERANCE_DAYS")
    dedup_merchant_similarity: float = Field(default=0.85, alias="DEDUP_MERCHANT_SIMILARITY")
    # Matching against expenses the owner entered by hand
    dedup_manual_amount_tolerance: float = Field(
        default=0.02, alias="DEDUP_MANUAL_AMOUNT_TOLERANCE"
    )
    dedup_manual_date_tolerance_days: int = Field(
        default=1, alias="DEDUP_MANUAL_DATE_TOLERANCE_DAYS"
    )

    # Ledger
    auto_post_confident_transactions: bool = Field(
        default=True, alias="AUTO_POST_CONFIDENT_TRANSACTIONS"
    )
    default_currency: str = Field(default="INR", alias="DEFAULT_CURRENCY")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    is_production: bool = os.getenv("ENVIRONMENT", "development").lower() == "production"

    # Path to .env file (for loading env vars)
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        populate_by_name = True


# Instantiate the settings
config = Config()
