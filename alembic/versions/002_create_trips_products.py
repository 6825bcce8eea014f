"""002: create trips and products tables

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE trips (
            id              VARCHAR(36)     PRIMARY KEY DEFAULT gen_random_uuid()::text,
            jastiper_id     VARCHAR(36)     NOT NULL,
            title           VARCHAR(200)    NOT NULL,
            payment_type    VARCHAR(10)     NOT NULL DEFAULT 'dp',
            dp_percentage   SMALLINT,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_trips_payment_type  CHECK (payment_type IN ('full', 'dp')),
            CONSTRAINT ck_trips_dp_percentage CHECK (dp_percentage IS NULL OR dp_percentage BETWEEN 1 AND 100)
        );
    """)
    op.execute("CREATE INDEX idx_trips_jastiper ON trips (jastiper_id);")

    op.execute("""
        CREATE TABLE products (
            id              VARCHAR(36)     PRIMARY KEY DEFAULT gen_random_uuid()::text,
            trip_id         VARCHAR(36)     NOT NULL REFERENCES trips(id),
            title           VARCHAR(200)    NOT NULL,
            type            VARCHAR(10)     NOT NULL DEFAULT 'goods',
            price           BIGINT          NOT NULL,
            stock           INT,
            markup_type     VARCHAR(10)     NOT NULL DEFAULT 'percent',
            markup_value    NUMERIC(12, 2)  NOT NULL DEFAULT 0,
            weight_gram     INT,
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_products_type         CHECK (type IN ('goods', 'tasks')),
            CONSTRAINT ck_products_price        CHECK (price >= 0),
            CONSTRAINT ck_products_stock        CHECK (stock IS NULL OR stock >= 0),
            CONSTRAINT ck_products_markup_type  CHECK (markup_type IN ('percent', 'flat')),
            CONSTRAINT ck_products_markup_value CHECK (markup_value >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_products_trip ON products (trip_id);")
    op.execute("""
        CREATE TRIGGER trg_products_updated_at
            BEFORE UPDATE ON products
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS products;")
    op.execute("DROP TABLE IF EXISTS trips;")
