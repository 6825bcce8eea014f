"""003: create orders and order_items tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id                  VARCHAR(36)     PRIMARY KEY DEFAULT gen_random_uuid()::text,
            order_code          VARCHAR(20)     NOT NULL,
            trip_id             VARCHAR(36)     NOT NULL REFERENCES trips(id),
            participant_id      VARCHAR(36),
            guest_id            VARCHAR(36),
            status              VARCHAR(30)     NOT NULL DEFAULT 'pending_dp',
            total_price         BIGINT          NOT NULL DEFAULT 0,
            dp_amount           BIGINT          NOT NULL DEFAULT 0,
            final_amount        BIGINT          NOT NULL DEFAULT 0,
            shipping_fee        BIGINT          NOT NULL DEFAULT 0,
            service_fee         BIGINT          NOT NULL DEFAULT 0,
            platform_commission BIGINT          NOT NULL DEFAULT 0,
            final_breakdown     JSONB,
            dp_paid_at          TIMESTAMPTZ,
            validated_at        TIMESTAMPTZ,
            validated_by        VARCHAR(36),
            rejection_reason    TEXT,
            dp_proof_url        TEXT,
            final_proof_url     TEXT,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_orders_order_code     UNIQUE (order_code),
            CONSTRAINT ck_orders_status         CHECK (status IN (
                'pending_dp', 'awaiting_validation', 'rejected',
                'awaiting_final_payment', 'awaiting_final_validation', 'paid'
            )),
            CONSTRAINT ck_orders_single_buyer   CHECK ((participant_id IS NULL) <> (guest_id IS NULL)),
            CONSTRAINT ck_orders_amounts        CHECK (
                total_price >= 0 AND dp_amount >= 0 AND final_amount >= 0
                AND shipping_fee >= 0 AND service_fee >= 0 AND platform_commission >= 0
            ),
            CONSTRAINT ck_orders_rejected_reason CHECK (
                status <> 'rejected' OR rejection_reason IS NOT NULL
            )
        );
    """)
    op.execute("CREATE INDEX idx_orders_trip_status ON orders (trip_id, status);")
    op.execute("""
        CREATE INDEX idx_orders_awaiting_validation ON orders (dp_paid_at)
            WHERE status = 'awaiting_validation';
    """)
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)

    op.execute("""
        CREATE TABLE order_items (
            id              VARCHAR(36)     PRIMARY KEY DEFAULT gen_random_uuid()::text,
            order_id        VARCHAR(36)     NOT NULL REFERENCES orders(id) ON DELETE CASCADE,
            product_id      VARCHAR(36)     NOT NULL REFERENCES products(id),
            product_type    VARCHAR(10)     NOT NULL,
            price_at_order  BIGINT          NOT NULL,
            quantity        INT             NOT NULL,
            item_subtotal   BIGINT          NOT NULL,
            markup_type     VARCHAR(10)     NOT NULL DEFAULT 'percent',
            markup_value    NUMERIC(12, 2)  NOT NULL DEFAULT 0,
            weight_gram     INT,
            note            TEXT,
            CONSTRAINT ck_order_items_type      CHECK (product_type IN ('goods', 'tasks')),
            CONSTRAINT ck_order_items_quantity  CHECK (quantity > 0),
            CONSTRAINT ck_order_items_subtotal  CHECK (item_subtotal = price_at_order * quantity)
        );
    """)
    op.execute("CREATE INDEX idx_order_items_order ON order_items (order_id);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS order_items;")
    op.execute("DROP TABLE IF EXISTS orders;")
