"""initial_portal_schema

Creates the analytics request portal tables:
  - admins            — login identities, provisioned out-of-band
  - otp_challenges    — at most one live challenge per email (UNIQUE email)
  - analysts          — assignable workers
  - requests          — analytics requests (pending → assigned → completed)
  - edit_history      — due-date change audit rows, owned by a request

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via db.create_all()
in a development environment.

Revision ID: 0001a7c3e5d2
Revises:
Create Date: 2026-10-19 09:12:41.118204
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '0001a7c3e5d2'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Admin ─────────────────────────────────────────────────────────────
    if "admins" not in existing:
        op.create_table(
            "admins",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column(
                "email", sa.String(length=200), nullable=False,
                comment="Stored lowercase; login identity.",
            ),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_admins_email", "admins", ["email"], unique=True)

    # ── OTPChallenge ──────────────────────────────────────────────────────
    if "otp_challenges" not in existing:
        op.create_table(
            "otp_challenges",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column(
                "code", sa.String(length=6), nullable=False,
                comment="Six decimal digits. NEVER log.",
            ),
            sa.Column("expires_at", sa.DateTime(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email", name="uq_otp_challenge_email"),
        )
        op.create_index("ix_otp_challenges_email_code", "otp_challenges", ["email", "code"])

    # ── Analyst ───────────────────────────────────────────────────────────
    if "analysts" not in existing:
        op.create_table(
            "analysts",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column(
                "email", sa.String(length=200), nullable=True,
                comment="Optional; assignment notices are skipped without it.",
            ),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )

    # ── AnalyticsRequest ──────────────────────────────────────────────────
    if "requests" not in existing:
        op.create_table(
            "requests",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("department", sa.String(length=200), nullable=False),
            sa.Column("request_type", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("due_date", sa.DateTime(), nullable=False),
            sa.Column(
                "status", sa.String(length=20), nullable=False,
                server_default="pending",
                comment="pending | assigned | completed",
            ),
            sa.Column("assigned_to_id", sa.String(length=36), nullable=True),
            sa.Column("assigned_at", sa.DateTime(), nullable=True),
            sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
            sa.Column("edited_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["assigned_to_id"], ["analysts.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_requests_status", "requests", ["status"])
        op.create_index("ix_requests_created_at", "requests", ["created_at"])

    # ── EditHistory ───────────────────────────────────────────────────────
    if "edit_history" not in existing:
        op.create_table(
            "edit_history",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("request_id", sa.String(length=36), nullable=False),
            sa.Column(
                "edited_by", sa.String(length=200), nullable=False,
                comment="Email of the admin who changed the due date.",
            ),
            sa.Column("old_date", sa.DateTime(), nullable=False),
            sa.Column("new_date", sa.DateTime(), nullable=False),
            sa.Column("reason", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["request_id"], ["requests.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_edit_history_request_id", "edit_history", ["request_id"])


def downgrade():
    op.drop_index("ix_edit_history_request_id", table_name="edit_history")
    op.drop_table("edit_history")
    op.drop_index("ix_requests_created_at", table_name="requests")
    op.drop_index("ix_requests_status", table_name="requests")
    op.drop_table("requests")
    op.drop_table("analysts")
    op.drop_index("ix_otp_challenges_email_code", table_name="otp_challenges")
    op.drop_table("otp_challenges")
    op.drop_index("ix_admins_email", table_name="admins")
    op.drop_table("admins")
