"""
Application configuration.
All settings are loaded from environment variables (or .env).
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: the PayHere merchant secret and the identity secret have no
    defaults - they MUST be set in the environment.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # Comma separated. Empty = default list in main.py.
    cors_origins: str = ""
    # Public base URL, used for PayHere return/cancel/notify URLs.
    public_base_url: str = "http://localhost:8000"

    # ===========================================
    # DATABASE
    # ===========================================
    database_url: str = "sqlite:///./smartlearn.db"
    db_pool_size: int = 10
    db_max_overflow: int = 20

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str = "redis://localhost:6379/0"
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"

    # ===========================================
    # PAYHERE GATEWAY
    # ===========================================
    payhere_merchant_id: str = ""
    payhere_merchant_secret: str  # Required, no default
    payhere_sandbox_mode: bool = True
    payhere_currency: str = "LKR"
    # PayHere includes status_code in the notify md5sig (between currency and secret hash).
    payhere_notify_sign_status_code: bool = True
    payhere_checkout_url: str = "https://www.payhere.lk/pay/checkout"
    payhere_sandbox_checkout_url: str = "https://sandbox.payhere.lk/pay/checkout"

    # Purchase rate limit (Redis, shared between workers)
    purchase_rate_limit: int = 5
    purchase_rate_window_seconds: int = 60

    # ===========================================
    # IDENTITY
    # ===========================================
    identity_secret: str  # Required, no default
    identity_token_ttl: int = 86400

    # ===========================================
    # STORAGE
    # ===========================================
    storage_backend: str = "local"  # local, r2
    storage_base_path: str = "/data/smartlearn"
    r2_account_id: str = ""
    r2_access_key_id: str = ""
    r2_secret_access_key: str = ""
    r2_bucket_name: str = "lms-resources"

    # ===========================================
    # CERTIFICATES
    # ===========================================
    certificate_download_ttl: int = 3600  # 1 hour
    certificate_email_link_ttl: int = 365 * 24 * 3600  # 1 year

    # ===========================================
    # EMAIL
    # ===========================================
    email_provider: str = "console"  # console, ses
    email_from_address: str = "no-reply@smartlearn.lk"
    email_from_name: str = "SmartLearn LMS"
    ses_region: str = "us-east-1"
    ses_access_key_id: str | None = None
    ses_secret_access_key: str | None = None

    # ===========================================
    # PROGRESS
    # ===========================================
    credits_per_video: int = 10

    # ===========================================
    # LOGGING
    # ===========================================
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("payhere_merchant_secret")
    @classmethod
    def validate_merchant_secret(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("payhere_merchant_secret must not be empty")
        return v

    @field_validator("identity_secret")
    @classmethod
    def validate_identity_secret(cls, v: str) -> str:
        """Ensure identity secret is reasonably secure."""
        if len(v) < 16:
            raise ValueError("identity_secret must be at least 16 characters")
        return v

    @field_validator("storage_backend", "email_provider")
    @classmethod
    def normalize_choice(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def payhere_checkout_endpoint(self) -> str:
        if self.payhere_sandbox_mode:
            return self.payhere_sandbox_checkout_url
        return self.payhere_checkout_url

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
