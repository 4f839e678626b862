"""initial gate tables: users, captcha_sessions, message_logs

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 12:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _tracking_columns():
    # общие поля TrackingMixin
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("telegram_id", sa.String(), nullable=False),
        sa.Column("username", sa.String(), nullable=True),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("captcha_passed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("captcha_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_captcha_attempt", sa.DateTime(), nullable=True),
        *_tracking_columns(),
    )
    op.create_index("ix_users_telegram_id", "users", ["telegram_id"], unique=True)

    op.create_table(
        "captcha_sessions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("captcha_text", sa.String(length=32), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_tracking_columns(),
    )
    op.create_index("ix_captcha_sessions_user_id", "captcha_sessions", ["user_id"])
    op.create_index("ix_captcha_sessions_expires_at", "captcha_sessions", ["expires_at"])

    op.create_table(
        "message_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("message_text", sa.Text(), nullable=True),
        sa.Column("blocked", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_tracking_columns(),
    )
    op.create_index("ix_message_logs_user_id", "message_logs", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_message_logs_user_id", table_name="message_logs")
    op.drop_table("message_logs")
    op.drop_index("ix_captcha_sessions_expires_at", table_name="captcha_sessions")
    op.drop_index("ix_captcha_sessions_user_id", table_name="captcha_sessions")
    op.drop_table("captcha_sessions")
    op.drop_index("ix_users_telegram_id", table_name="users")
    op.drop_table("users")
