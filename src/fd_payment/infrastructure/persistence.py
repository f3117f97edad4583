"""PaymentRepository — raw SQL over the payments table.

external_payment_id is UNIQUE: it is the idempotency key for gateway
notifications, so redelivered notifications always land on the same row.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_common.enums import PaymentMethod, PaymentStatus
from src.fd_payment.domain.models import Payment

_COLUMNS = """
    id, order_id, amount, payment_method, status, intent_id,
    external_payment_id, gateway_status, refund_reason, created_at, updated_at
"""

_INSERT_SQL = text(f"""
    INSERT INTO payments (id, order_id, amount, payment_method, status, intent_id,
        external_payment_id, gateway_status)
    VALUES (:id, :order_id, :amount, :payment_method, :status, :intent_id,
        :external_payment_id, :gateway_status)
    RETURNING {_COLUMNS}
""")

_GET_BY_ID_SQL = text(f"SELECT {_COLUMNS} FROM payments WHERE id = :id")

_GET_BY_ID_FOR_UPDATE_SQL = text(f"SELECT {_COLUMNS} FROM payments WHERE id = :id FOR UPDATE")

_GET_BY_EXTERNAL_ID_SQL = text(f"""
    SELECT {_COLUMNS} FROM payments
    WHERE external_payment_id = :external_payment_id
    FOR UPDATE
""")

# Binds the first gateway payment id to the checkout record created with the intent
_ATTACH_EXTERNAL_ID_SQL = text(f"""
    UPDATE payments
    SET external_payment_id = :external_payment_id, gateway_status = :gateway_status,
        updated_at = NOW()
    WHERE id = (
        SELECT id FROM payments
        WHERE order_id = :order_id AND external_payment_id IS NULL
        ORDER BY created_at DESC
        LIMIT 1
        FOR UPDATE
    )
    RETURNING {_COLUMNS}
""")

_UPSERT_BY_EXTERNAL_ID_SQL = text(f"""
    INSERT INTO payments (id, order_id, amount, payment_method, status,
        external_payment_id, gateway_status)
    VALUES (:id, :order_id, :amount, :payment_method, :status,
        :external_payment_id, :gateway_status)
    ON CONFLICT (external_payment_id) DO UPDATE
    SET gateway_status = EXCLUDED.gateway_status, updated_at = NOW()
    RETURNING {_COLUMNS}
""")

_SET_STATUS_SQL = text(f"""
    UPDATE payments
    SET status = :status,
        refund_reason = COALESCE(:refund_reason, refund_reason),
        updated_at = NOW()
    WHERE id = :id
    RETURNING {_COLUMNS}
""")

_LIST_FOR_ORDER_SQL = text(f"""
    SELECT {_COLUMNS} FROM payments
    WHERE order_id = :order_id
    ORDER BY created_at DESC
""")


def _row_to_payment(row: Any) -> Payment:
    return Payment(
        id=str(row.id),
        order_id=str(row.order_id),
        amount=row.amount,
        payment_method=PaymentMethod(row.payment_method),
        status=PaymentStatus(row.status),
        intent_id=row.intent_id,
        external_payment_id=row.external_payment_id,
        gateway_status=row.gateway_status,
        refund_reason=row.refund_reason,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _one(result: Any) -> Payment | None:
    row = result.fetchone()
    return _row_to_payment(row) if row else None


def _params(payment: Payment) -> dict[str, Any]:
    return {
        "id": payment.id,
        "order_id": payment.order_id,
        "amount": payment.amount,
        "payment_method": payment.payment_method.value,
        "status": payment.status.value,
        "intent_id": payment.intent_id,
        "external_payment_id": payment.external_payment_id,
        "gateway_status": payment.gateway_status,
    }


class PaymentRepository:
    """Concrete implementation of PaymentRepositoryProtocol using raw SQL."""

    async def insert(self, payment: Payment, db: AsyncSession) -> Payment:
        result = await db.execute(_INSERT_SQL, _params(payment))
        return _row_to_payment(result.fetchone())

    async def get_by_id(
        self, payment_id: str, db: AsyncSession, for_update: bool = False
    ) -> Payment | None:
        sql = _GET_BY_ID_FOR_UPDATE_SQL if for_update else _GET_BY_ID_SQL
        return _one(await db.execute(sql, {"id": payment_id}))

    async def get_by_external_id(
        self, external_payment_id: str, db: AsyncSession
    ) -> Payment | None:
        return _one(
            await db.execute(_GET_BY_EXTERNAL_ID_SQL, {"external_payment_id": external_payment_id})
        )

    async def attach_external_id(
        self, order_id: str, external_payment_id: str, gateway_status: str, db: AsyncSession
    ) -> Payment | None:
        result = await db.execute(
            _ATTACH_EXTERNAL_ID_SQL,
            {
                "order_id": order_id,
                "external_payment_id": external_payment_id,
                "gateway_status": gateway_status,
            },
        )
        return _one(result)

    async def upsert_by_external_id(self, payment: Payment, db: AsyncSession) -> Payment:
        params = _params(payment)
        params.pop("intent_id")
        result = await db.execute(_UPSERT_BY_EXTERNAL_ID_SQL, params)
        return _row_to_payment(result.fetchone())

    async def set_status(
        self,
        payment_id: str,
        status: PaymentStatus,
        db: AsyncSession,
        refund_reason: str | None = None,
    ) -> Payment | None:
        result = await db.execute(
            _SET_STATUS_SQL,
            {"id": payment_id, "status": status.value, "refund_reason": refund_reason},
        )
        return _one(result)

    async def list_for_order(self, order_id: str, db: AsyncSession) -> list[Payment]:
        result = await db.execute(_LIST_FOR_ORDER_SQL, {"order_id": order_id})
        return [_row_to_payment(row) for row in result.fetchall()]
