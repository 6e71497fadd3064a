"""audit_log append-only triggers

Revision ID: 8d2e4b6a1c90
Revises: 3f1c2a9d8b7e
Create Date: 2026-10-19 09:40:03.772915

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '8d2e4b6a1c90'
down_revision: Union[str, Sequence[str], None] = '3f1c2a9d8b7e'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    dialect = op.get_bind().dialect.name

    if dialect == "postgresql":
        op.execute(
            """
            CREATE OR REPLACE FUNCTION audit_log_block_mutation()
            RETURNS trigger AS $$
            BEGIN
                RAISE EXCEPTION 'audit_log is append-only';
            END;
            $$ LANGUAGE plpgsql;
            """
        )
        op.execute(
            """
            CREATE TRIGGER trg_audit_log_block_update
            BEFORE UPDATE ON audit_log
            FOR EACH ROW
            EXECUTE FUNCTION audit_log_block_mutation();
            """
        )
        op.execute(
            """
            CREATE TRIGGER trg_audit_log_block_delete
            BEFORE DELETE ON audit_log
            FOR EACH ROW
            EXECUTE FUNCTION audit_log_block_mutation();
            """
        )
        return

    if dialect == "sqlite":
        op.execute(
            """
            CREATE TRIGGER trg_audit_log_block_update
            BEFORE UPDATE ON audit_log
            BEGIN
                SELECT RAISE(ABORT, 'audit_log is append-only');
            END;
            """
        )
        op.execute(
            """
            CREATE TRIGGER trg_audit_log_block_delete
            BEFORE DELETE ON audit_log
            BEGIN
                SELECT RAISE(ABORT, 'audit_log is append-only');
            END;
            """
        )


def downgrade() -> None:
    """Downgrade schema."""
    dialect = op.get_bind().dialect.name

    if dialect == "postgresql":
        op.execute("DROP TRIGGER IF EXISTS trg_audit_log_block_update ON audit_log;")
        op.execute("DROP TRIGGER IF EXISTS trg_audit_log_block_delete ON audit_log;")
        op.execute("DROP FUNCTION IF EXISTS audit_log_block_mutation();")
        return

    if dialect == "sqlite":
        op.execute("DROP TRIGGER IF EXISTS trg_audit_log_block_update;")
        op.execute("DROP TRIGGER IF EXISTS trg_audit_log_block_delete;")
