"""003: create orders table

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
            id                      VARCHAR(64)     PRIMARY KEY,
            tracking_number         VARCHAR(32)     NOT NULL,
            restaurant_id           VARCHAR(64)     NOT NULL REFERENCES restaurants(id),
            customer_id             VARCHAR(64),
            customer_name           VARCHAR(120)    NOT NULL,
            customer_phone          VARCHAR(30)     NOT NULL,
            customer_email          VARCHAR(200),
            items                   JSONB           NOT NULL,
            order_type              VARCHAR(20)     NOT NULL,
            delivery_method         VARCHAR(30),
            delivery_address        TEXT,
            delivery_latitude       DOUBLE PRECISION,
            delivery_longitude      DOUBLE PRECISION,
            delivery_instructions   TEXT,
            subtotal                BIGINT          NOT NULL,
            delivery_fee            BIGINT          NOT NULL DEFAULT 0,
            platform_commission     BIGINT          NOT NULL DEFAULT 0,
            total                   BIGINT          NOT NULL,
            payment_method          VARCHAR(20)     NOT NULL,
            payment_status          VARCHAR(20)     NOT NULL DEFAULT 'pending',
            order_status            VARCHAR(20)     NOT NULL DEFAULT 'received',
            courier_id              VARCHAR(64),
            revenue_recognized_at   TIMESTAMPTZ,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            delivered_at            TIMESTAMPTZ,
            CONSTRAINT uq_orders_tracking_number    UNIQUE (tracking_number),
            CONSTRAINT ck_orders_order_type         CHECK (order_type IN ('delivery', 'pickup')),
            CONSTRAINT ck_orders_delivery_method    CHECK (
                delivery_method IS NULL
                OR delivery_method IN ('restaurant_operated', 'platform_operated')
            ),
            CONSTRAINT ck_orders_delivery_shape     CHECK (
                (order_type = 'delivery' AND delivery_method IS NOT NULL AND delivery_address IS NOT NULL)
                OR (order_type = 'pickup' AND delivery_method IS NULL)
            ),
            CONSTRAINT ck_orders_payment_method     CHECK (
                payment_method IN ('cash', 'card', 'mercadopago', 'pse', 'nequi')
            ),
            CONSTRAINT ck_orders_payment_status     CHECK (
                payment_status IN ('pending', 'paid', 'failed', 'refund_requested', 'refunded')
            ),
            CONSTRAINT ck_orders_order_status       CHECK (
                order_status IN ('received', 'preparing', 'ready', 'on_the_way', 'delivered', 'cancelled')
            ),
            CONSTRAINT ck_orders_amounts_gte_0      CHECK (
                subtotal >= 0 AND delivery_fee >= 0 AND platform_commission >= 0
            ),
            CONSTRAINT ck_orders_total              CHECK (total = subtotal + delivery_fee),
            CONSTRAINT ck_orders_commission_lte_sub CHECK (platform_commission <= subtotal)
        );
    """)
    op.execute("CREATE INDEX idx_orders_customer ON orders (customer_id, id DESC);")
    op.execute("CREATE INDEX idx_orders_restaurant_status ON orders (restaurant_id, order_status, id DESC);")
    op.execute("""
        CREATE INDEX idx_orders_claimable
        ON orders (id DESC)
        WHERE order_status = 'ready' AND courier_id IS NULL;
    """)
    op.execute("""
        CREATE INDEX idx_orders_courier_active
        ON orders (courier_id, order_status)
        WHERE order_status IN ('ready', 'on_the_way');
    """)
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE orders IS 'Order lifecycle; items hold price snapshots taken at creation';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
