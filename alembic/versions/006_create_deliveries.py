"""006: create deliveries table

Revision ID: 006
Revises: 005
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE deliveries (
            id                  VARCHAR(64)     PRIMARY KEY,
            order_id            VARCHAR(64)     NOT NULL REFERENCES orders(id),
            courier_id          VARCHAR(64)     NOT NULL,
            fee                 BIGINT          NOT NULL,
            status              VARCHAR(20)     NOT NULL DEFAULT 'delivered',
            delivered_at        TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_deliveries_order_id   UNIQUE (order_id),
            CONSTRAINT ck_deliveries_fee        CHECK (fee >= 0),
            CONSTRAINT ck_deliveries_status     CHECK (status IN ('delivered'))
        );
    """)
    op.execute("CREATE INDEX idx_deliveries_courier ON deliveries (courier_id, created_at DESC);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS deliveries CASCADE;")
