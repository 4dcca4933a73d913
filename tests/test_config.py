import pytest

from tourdesk.config import Settings
from tourdesk.core.exceptions import ConfigurationError
from tourdesk.services.notifications import StubDispatcher, get_dispatcher
from tourdesk.services.payments import get_gateway
from tourdesk.services.timeout_policy import thresholds_from_settings


def test_defaults_match_escalation_schedule():
    settings = Settings()

    thresholds = thresholds_from_settings(settings)

    assert thresholds.admin_reminder.total_seconds() == 12 * 3600
    assert thresholds.customer_delay_notice.total_seconds() == 24 * 3600
    assert thresholds.auto_reject.total_seconds() == 48 * 3600
    assert thresholds.payment_cleanup.total_seconds() == 72 * 3600


def test_reads_environment_aliases():
    settings = Settings(
        **{
            "AUTO_REJECT_HOURS": "36",
            "ADMIN_NOTIFICATION_EMAILS": "ops@example.com, owner@example.com,",
            "DATABASE_URL": "sqlite+pysqlite:///tourdesk.db",
        }
    )

    assert settings.auto_reject_hours == 36
    assert settings.admin_emails == ["ops@example.com", "owner@example.com"]
    assert settings.sqlalchemy_url == "sqlite+pysqlite:///tourdesk.db"


def test_postgres_url_is_built_from_parts():
    settings = Settings(POSTGRES_HOST="db", POSTGRES_USER="desk", POSTGRES_PASSWORD="pw")

    assert settings.sqlalchemy_url == "postgresql+psycopg2://desk:pw@db:5432/tourdesk"


def test_provider_selection():
    assert isinstance(get_dispatcher(Settings()), StubDispatcher)
    with pytest.raises(ConfigurationError):
        get_dispatcher(Settings(NOTIFICATION_PROVIDER="pigeon"))
    with pytest.raises(ConfigurationError):
        get_dispatcher(Settings(NOTIFICATION_PROVIDER="sendgrid", SENDGRID_API_KEY="key"))
    with pytest.raises(ConfigurationError):
        get_gateway(Settings(PAYMENT_PROVIDER="stripe"))
