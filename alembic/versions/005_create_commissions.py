"""005: create commission tables

Revision ID: 005
Revises: 004
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE team_members (
            id                  VARCHAR(64)     PRIMARY KEY,
            user_id             VARCHAR(64)     NOT NULL,
            name                VARCHAR(120)    NOT NULL,
            email               VARCHAR(200),
            percentage_bps      INT             NOT NULL,
            is_active           BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_team_members_user_id      UNIQUE (user_id),
            CONSTRAINT ck_team_members_percentage   CHECK (percentage_bps BETWEEN 0 AND 10000)
        );
    """)
    op.execute("""
        CREATE TABLE commission_payments (
            id                  VARCHAR(64)     PRIMARY KEY,
            member_id           VARCHAR(64)     NOT NULL REFERENCES team_members(id),
            amount              BIGINT          NOT NULL,
            payment_method      VARCHAR(40)     NOT NULL,
            notes               TEXT,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_commission_payments_amount CHECK (amount > 0)
        );
    """)
    op.execute("""
        CREATE TABLE commissions (
            id                  VARCHAR(64)     PRIMARY KEY,
            member_id           VARCHAR(64)     NOT NULL REFERENCES team_members(id),
            order_id            VARCHAR(64)     NOT NULL REFERENCES orders(id),
            percentage_bps      INT             NOT NULL,
            amount              BIGINT          NOT NULL,
            status              VARCHAR(20)     NOT NULL DEFAULT 'pending',
            payment_id          VARCHAR(64)     REFERENCES commission_payments(id),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_commissions_order_member  UNIQUE (order_id, member_id),
            CONSTRAINT ck_commissions_amount        CHECK (amount >= 0),
            CONSTRAINT ck_commissions_status        CHECK (
                status IN ('pending', 'approved', 'paid', 'cancelled')
            )
        );
    """)
    op.execute("""
        CREATE TABLE commission_materializations (
            order_id            VARCHAR(64)     PRIMARY KEY REFERENCES orders(id),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_commissions_member_status ON commissions (member_id, status);")
    op.execute("CREATE INDEX idx_commissions_created ON commissions (created_at DESC);")
    for table in ("team_members", "commissions"):
        op.execute(f"""
            CREATE TRIGGER trg_{table}_updated_at
                BEFORE UPDATE ON {table}
                FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
        """)
    op.execute(
        "COMMENT ON TABLE commission_materializations IS "
        "'One row per order whose commission pool has been split; the claim for exactly-once';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS commission_materializations CASCADE;")
    op.execute("DROP TABLE IF EXISTS commissions CASCADE;")
    op.execute("DROP TABLE IF EXISTS commission_payments CASCADE;")
    op.execute("DROP TABLE IF EXISTS team_members CASCADE;")
