"""004: create fees_config and seed platform commission

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE fees_config (
            id          SERIAL          PRIMARY KEY,
            scope       VARCHAR(50)     NOT NULL,
            value       NUMERIC(5, 2)   NOT NULL,
            is_active   BOOLEAN         NOT NULL DEFAULT TRUE,
            updated_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_fees_config_value CHECK (value >= 0 AND value <= 100)
        );
    """)
    op.execute("CREATE INDEX idx_fees_config_scope ON fees_config (scope) WHERE is_active;")
    op.execute("""
        INSERT INTO fees_config (scope, value, is_active)
        VALUES ('platform_commission', 5, TRUE);
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS fees_config;")
