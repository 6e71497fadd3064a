"""submission markers on time_entries and expenses

Revision ID: c47e91b05a2d
Revises: 8d2e4b6a1c90
Create Date: 2026-10-19 14:12:51.304118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'c47e91b05a2d'
down_revision: Union[str, Sequence[str], None] = '8d2e4b6a1c90'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.add_column("time_entries", sa.Column("first_submitted_at", sa.DateTime(timezone=True), nullable=True))
    op.add_column("expenses", sa.Column("submitted_by", sa.String(), nullable=True))

    # Rows that already left draft count as submitted.
    op.execute(
        "UPDATE time_entries SET first_submitted_at = COALESCE(submitted_at, created_at) "
        "WHERE approval_status <> 'draft' OR submitted_at IS NOT NULL"
    )
    op.execute(
        "UPDATE expenses SET submitted_by = user_id "
        "WHERE submitted_at IS NOT NULL"
    )


def downgrade() -> None:
    """Downgrade schema."""
    with op.batch_alter_table("expenses") as batch_op:
        batch_op.drop_column("submitted_by")
    with op.batch_alter_table("time_entries") as batch_op:
        batch_op.drop_column("first_submitted_at")
