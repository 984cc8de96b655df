"""Initial staff management schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = postgresql.ENUM(
    "owner", "admin", "cfo", "hr_admin", "manager", "supervisor", "staff",
    name="user_role",
    create_type=False,
)
user_standing = postgresql.ENUM("all_good", "good", "at_risk", name="user_standing", create_type=False)
request_type = postgresql.ENUM("request", "report", name="request_type", create_type=False)
request_status = postgresql.ENUM("pending", "approved", "declined", name="request_status", create_type=False)
warning_status = postgresql.ENUM("active", "resolved", name="warning_status", create_type=False)
cash_status = postgresql.ENUM("shortage", "exact", "extra", name="cash_status", create_type=False)
sos_type = postgresql.ENUM("police", "security", "ambulance", "firefighters", name="sos_type", create_type=False)
notification_type = postgresql.ENUM(
    "warning", "request", "report", "cash", "break", "contract", "sos", "general",
    name="notification_type",
    create_type=False,
)
audit_actor_type = postgresql.ENUM("USER", "SYSTEM", name="audit_actor_type", create_type=False)

ENUM_TYPES = (
    user_role,
    user_standing,
    request_type,
    request_status,
    warning_status,
    cash_status,
    sos_type,
    notification_type,
    audit_actor_type,
)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def _owner_column() -> sa.Column:
    return sa.Column("user_id", sa.Integer(), nullable=False)


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ENUM_TYPES:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("address", sa.String(length=500), nullable=True),
        _created_at(),
        sa.UniqueConstraint("code", name="uq_companies_code"),
    )
    op.create_index("ix_companies_code", "companies", ["code"])

    op.create_table(
        "markets",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("company_id", sa.Integer(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_markets_company_id", "markets", ["company_id"])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("profile_picture", sa.Text(), nullable=True),
        sa.Column("role", user_role, nullable=False, server_default=sa.text("'staff'")),
        sa.Column("standing", user_standing, nullable=False, server_default=sa.text("'all_good'")),
        sa.Column("market_id", sa.Integer(), nullable=True),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=False, server_default=sa.text("15.00")),
        sa.Column("holiday_rate", sa.Numeric(10, 2), nullable=False, server_default=sa.text("22.50")),
        sa.Column("accumulated_salary", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0.00")),
        sa.Column("theme", sa.String(length=32), nullable=False, server_default=sa.text("'system'")),
        sa.Column("accent_color", sa.String(length=32), nullable=False, server_default=sa.text("'blue'")),
        sa.Column("language", sa.String(length=16), nullable=False, server_default=sa.text("'en'")),
        sa.Column("two_factor_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("failed_login_attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("locked_until", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["market_id"], ["markets.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("email", "company_id", name="uq_users_email_company"),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_company_id", "users", ["company_id"])
    op.create_index("ix_users_market_id", "users", ["market_id"])

    op.create_table(
        "sessions",
        sa.Column("token", sa.String(length=128), primary_key=True, nullable=False),
        _owner_column(),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])
    op.create_index("ix_sessions_expires_at", "sessions", ["expires_at"])

    op.create_table(
        "contracts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _owner_column(),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("notice_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("renewal_requested", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_contracts_user_id", "contracts", ["user_id"])

    op.create_table(
        "schedules",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _owner_column(),
        sa.Column("market_id", sa.Integer(), nullable=True),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("break_start", sa.String(length=5), nullable=True),
        sa.Column("break_end", sa.String(length=5), nullable=True),
        sa.Column("position", sa.String(length=255), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["market_id"], ["markets.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_schedules_user_id", "schedules", ["user_id"])
    op.create_index("ix_schedules_market_id", "schedules", ["market_id"])
    op.create_index("ix_schedules_date", "schedules", ["date"])

    op.create_table(
        "requests",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _owner_column(),
        sa.Column("type", request_type, nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("details", sa.Text(), nullable=False),
        sa.Column("status", request_status, nullable=False, server_default=sa.text("'pending'")),
        sa.Column("is_anonymous", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("reviewed_by", sa.Integer(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["reviewed_by"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_requests_user_id", "requests", ["user_id"])

    op.create_table(
        "warnings",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _owner_column(),
        sa.Column("issued_by", sa.Integer(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("status", warning_status, nullable=False, server_default=sa.text("'active'")),
        sa.Column("is_firing_notice", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("market_wide", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("market_id", sa.Integer(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["issued_by"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["market_id"], ["markets.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_warnings_user_id", "warnings", ["user_id"])
    op.create_index("ix_warnings_market_id", "warnings", ["market_id"])

    op.create_table(
        "cash_registers",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _owner_column(),
        sa.Column("shift_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", cash_status, nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_cash_registers_user_id", "cash_registers", ["user_id"])

    op.create_table(
        "sos_alerts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _owner_column(),
        sa.Column("type", sos_type, nullable=False),
        sa.Column("resolved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _created_at(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_sos_alerts_user_id", "sos_alerts", ["user_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _owner_column(),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", notification_type, nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _created_at(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    op.create_table(
        "salary_payments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _owner_column(),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("period", sa.String(length=64), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_salary_payments_user_id", "salary_payments", ["user_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("ts_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("company_id", sa.Integer(), nullable=True),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=255), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("ip", sa.String(length=128), nullable=True),
        sa.Column("user_agent", sa.String(length=1024), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"])
    op.create_index("ix_audit_logs_company_id", "audit_logs", ["company_id"])


def downgrade() -> None:
    for table in (
        "audit_logs",
        "salary_payments",
        "notifications",
        "sos_alerts",
        "cash_registers",
        "warnings",
        "requests",
        "schedules",
        "contracts",
        "sessions",
        "users",
        "markets",
        "companies",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in reversed(ENUM_TYPES):
        enum_type.drop(bind, checkfirst=True)
