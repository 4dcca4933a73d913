from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

EVENT_TYPES = (
    "submitted",
    "admin_reminder_sent",
    "customer_delay_notified",
    "approved",
    "rejected",
    "auto_rejected",
    "payment_method_cleaned",
    "payment_captured",
    "payment_failed",
    "notification_failed",
    "duplicate_auto_resolved",
)


def upgrade() -> None:
    request_status = postgresql.ENUM(
        "pending_confirmation", "confirmed", "rejected", name="bookingrequeststatus"
    )
    request_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "booking_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("customer_name", sa.String(length=255)),
        sa.Column("customer_email", sa.String(length=255)),
        sa.Column("customer_phone", sa.String(length=32)),
        sa.Column("tour_type", sa.String(length=64)),
        sa.Column("tour_name", sa.String(length=255)),
        sa.Column("booking_date", sa.Date()),
        sa.Column("booking_time", sa.String(length=16)),
        sa.Column("adults", sa.Integer(), server_default="1"),
        sa.Column("children", sa.Integer(), server_default="0"),
        sa.Column("infants", sa.Integer(), server_default="0"),
        sa.Column("total_amount", sa.Numeric(10, 2), server_default="0"),
        sa.Column("special_requests", sa.Text()),
        sa.Column("payment_method_token", sa.String(length=255)),
        sa.Column(
            "status",
            postgresql.ENUM(name="bookingrequeststatus", create_type=False),
            server_default="pending_confirmation",
        ),
        sa.Column("submitted_at", sa.DateTime(timezone=True)),
        sa.Column("reviewed_at", sa.DateTime(timezone=True)),
        sa.Column("reviewed_by", sa.String(length=64)),
        sa.Column("rejection_reason", sa.Text()),
        sa.CheckConstraint(
            "(status = 'pending_confirmation') = (reviewed_at IS NULL)",
            name="ck_booking_request_reviewed_at",
        ),
    )
    op.create_index(
        "ix_booking_requests_timeout_lookup",
        "booking_requests",
        ["status", "submitted_at", "reviewed_at"],
    )
    op.create_index(
        "ix_booking_requests_resource_key",
        "booking_requests",
        ["customer_email", "tour_type", "booking_date", "booking_time"],
    )

    event_type = postgresql.ENUM(*EVENT_TYPES, name="lifecycleeventtype")
    event_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "booking_request_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "booking_request_id",
            sa.Integer(),
            sa.ForeignKey("booking_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "event_type",
            postgresql.ENUM(name="lifecycleeventtype", create_type=False),
            nullable=False,
        ),
        sa.Column("payload", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.String(length=64)),
        sa.Column("idempotency_key", sa.String(length=64)),
        sa.UniqueConstraint(
            "booking_request_id",
            "idempotency_key",
            name="uq_booking_request_event_idempotency",
        ),
    )
    op.create_index(
        "ix_booking_request_events_booking_request_id",
        "booking_request_events",
        ["booking_request_id"],
    )
    op.create_index(
        "ix_booking_request_events_event_type", "booking_request_events", ["event_type"]
    )
    op.create_index(
        "ix_booking_request_events_created_at", "booking_request_events", ["created_at"]
    )

    op.create_table(
        "timesheets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("employee_id", sa.String(length=64), nullable=False),
        sa.Column("clock_in", sa.DateTime(timezone=True), nullable=False),
        sa.Column("clock_out", sa.DateTime(timezone=True)),
        sa.Column("todo", sa.String(length=500)),
        sa.Column("note", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_timesheets_employee_id", "timesheets", ["employee_id"])

    admin_role = postgresql.ENUM("admin", "reviewer", "viewer", name="adminrole")
    admin_role.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "admin_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("login", sa.String(length=64), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column(
            "role",
            postgresql.ENUM(name="adminrole", create_type=False),
            server_default="viewer",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(timezone=True)),
    )

    actor_type = postgresql.ENUM("employee", "admin", "system", name="actortype")
    actor_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_type", postgresql.ENUM(name="actortype", create_type=False)),
        sa.Column("actor_id", sa.String(length=64)),
        sa.Column("action", sa.String(length=255)),
        sa.Column("subject_id", sa.Integer()),
        sa.Column("payload", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("admin_users")
    op.drop_index("ix_timesheets_employee_id", table_name="timesheets")
    op.drop_table("timesheets")
    op.drop_table("booking_request_events")
    op.drop_index("ix_booking_requests_resource_key", table_name="booking_requests")
    op.drop_index("ix_booking_requests_timeout_lookup", table_name="booking_requests")
    op.drop_table("booking_requests")
    for name in ("actortype", "adminrole", "lifecycleeventtype", "bookingrequeststatus"):
        postgresql.ENUM(name=name).drop(op.get_bind(), checkfirst=True)
