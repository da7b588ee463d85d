"""Add auto-renew flag and renewal chain to subscriptions.

Revision ID: 20261019_02
Revises: 20261019_01
Create Date: 2026-10-19 15:30:00
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261019_02"
down_revision: Union[str, None] = "20261019_01"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        "subscriptions",
        sa.Column("auto_renew", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.add_column(
        "subscriptions",
        sa.Column("renewed_from_id", sa.Integer(), nullable=True),
    )
    op.create_foreign_key(
        "fk_subscriptions_renewed_from_id",
        "subscriptions",
        "subscriptions",
        ["renewed_from_id"],
        ["id"],
        ondelete="SET NULL",
    )
    # Renewal sweep scans active rows by end date.
    op.create_index("ix_subscriptions_status_end_date", "subscriptions", ["status", "end_date"])


def downgrade() -> None:
    op.drop_index("ix_subscriptions_status_end_date", table_name="subscriptions")
    op.drop_constraint("fk_subscriptions_renewed_from_id", "subscriptions", type_="foreignkey")
    op.drop_column("subscriptions", "renewed_from_id")
    op.drop_column("subscriptions", "auto_renew")
