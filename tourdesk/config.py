from functools import lru_cache
import os
from pydantic import BaseModel, Field


class Settings(BaseModel):
    env: str = Field(default="dev", alias="ENV")
    timezone: str = Field(default="Asia/Tokyo", alias="TIMEZONE")

    database_url: str = Field(default="", alias="DATABASE_URL")
    postgres_db: str = Field(default="tourdesk", alias="POSTGRES_DB")
    postgres_user: str = Field(default="tourdesk", alias="POSTGRES_USER")
    postgres_password: str = Field(default="tourdesk", alias="POSTGRES_PASSWORD")
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")

    jwt_secret: str = Field(default="secret", alias="JWT_SECRET")
    jwt_expire_min: int = Field(default=720, alias="JWT_EXPIRE_MIN")

    default_admin_login: str = Field(default="admin", alias="DEFAULT_ADMIN_LOGIN")
    default_admin_password: str = Field(default="admin123", alias="DEFAULT_ADMIN_PASSWORD")

    admin_reminder_hours: float = Field(default=12, alias="ADMIN_REMINDER_HOURS")
    customer_delay_hours: float = Field(default=24, alias="CUSTOMER_DELAY_HOURS")
    auto_reject_hours: float = Field(default=48, alias="AUTO_REJECT_HOURS")
    payment_cleanup_hours: float = Field(default=72, alias="PAYMENT_CLEANUP_HOURS")

    timeout_batch_size: int = Field(default=500, alias="TIMEOUT_BATCH_SIZE")
    timeout_max_workers: int = Field(default=1, alias="TIMEOUT_MAX_WORKERS")
    reconciliation_interval_minutes: int = Field(
        default=60, alias="RECONCILIATION_INTERVAL_MINUTES"
    )
    conflict_sweep_interval_minutes: int = Field(
        default=30, alias="CONFLICT_SWEEP_INTERVAL_MINUTES"
    )

    notification_provider: str = Field(default="stub", alias="NOTIFICATION_PROVIDER")
    sendgrid_api_key: str = Field(default="", alias="SENDGRID_API_KEY")
    notification_from_email: str = Field(
        default="contact@tomodachitours.com", alias="NOTIFICATION_FROM_EMAIL"
    )
    admin_notification_emails: str = Field(default="", alias="ADMIN_NOTIFICATION_EMAILS")
    notification_timeout_seconds: float = Field(
        default=10, alias="NOTIFICATION_TIMEOUT_SECONDS"
    )

    payment_provider: str = Field(default="stub", alias="PAYMENT_PROVIDER")
    stripe_secret_key: str = Field(default="", alias="STRIPE_SECRET_KEY")
    payment_currency: str = Field(default="JPY", alias="PAYMENT_CURRENCY")
    payment_timeout_seconds: float = Field(default=15, alias="PAYMENT_TIMEOUT_SECONDS")

    class Config:
        populate_by_name = True

    @property
    def admin_emails(self) -> list[str]:
        return [
            email.strip()
            for email in self.admin_notification_emails.split(",")
            if email.strip()
        ]

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(**os.environ)
