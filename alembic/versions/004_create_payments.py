"""004: create payments table

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
        CREATE TABLE payments (
            id                      VARCHAR(64)     PRIMARY KEY,
            order_id                VARCHAR(64)     NOT NULL REFERENCES orders(id),
            amount                  BIGINT          NOT NULL,
            payment_method          VARCHAR(20)     NOT NULL,
            status                  VARCHAR(20)     NOT NULL DEFAULT 'pending',
            intent_id               VARCHAR(128),
            external_payment_id     VARCHAR(128),
            gateway_status          VARCHAR(40),
            refund_reason           TEXT,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_payments_external_payment_id UNIQUE (external_payment_id),
            CONSTRAINT ck_payments_amount           CHECK (amount >= 0),
            CONSTRAINT ck_payments_payment_method   CHECK (
                payment_method IN ('cash', 'card', 'mercadopago', 'pse', 'nequi')
            ),
            CONSTRAINT ck_payments_status           CHECK (
                status IN ('pending', 'paid', 'failed', 'refund_requested', 'refunded')
            )
        );
    """)
    op.execute("CREATE INDEX idx_payments_order ON payments (order_id, created_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_payments_updated_at
            BEFORE UPDATE ON payments
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS payments CASCADE;")
