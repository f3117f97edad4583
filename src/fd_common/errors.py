"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Identity / capability
  2xxx: Catalog / pricing
  3xxx: Order lifecycle
  4xxx: Payment
  5xxx: Commission
  6xxx: Delivery
  9xxx: System

`retryable` marks conditions the calling actor is expected to resolve by
re-reading current state (or backing off) and trying again.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
        retryable: bool = False,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        self.retryable = retryable
        super().__init__(message)


# --- 1xxx: Identity / capability ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Invalid or expired token", 401)


class ForbiddenError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(1002, f"Forbidden: {detail}", 403)


# --- 2xxx: Catalog / pricing ---

class RestaurantNotFoundError(AppError):
    def __init__(self, restaurant_id: str) -> None:
        super().__init__(2001, f"Restaurant not found: {restaurant_id}", 404)


class RestaurantInactiveError(AppError):
    def __init__(self, restaurant_id: str) -> None:
        super().__init__(2002, f"Restaurant is not active: {restaurant_id}", 422)


class ProductUnavailableError(AppError):
    def __init__(self, product_id: str) -> None:
        self.product_id = product_id
        super().__init__(2003, f"Product unavailable: {product_id}", 422)


class InvalidOrderDraftError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2004, f"Invalid order: {detail}", 400)


# --- 3xxx: Order lifecycle ---

class OrderNotFoundError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(3001, f"Order not found: {order_id}", 404)


class StaleStatusError(AppError):
    def __init__(self, order_id: str, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            3002,
            f"Order {order_id} is in status {actual}, expected {expected}",
            409,
            retryable=True,
        )


class IllegalTransitionError(AppError):
    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(3003, f"Illegal transition: {current} -> {requested}", 422)


class OrderFinalizedError(AppError):
    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(3004, f"Order {order_id} is final ({status})", 422)


# --- 4xxx: Payment ---

class PaymentNotFoundError(AppError):
    def __init__(self, payment_id: str) -> None:
        super().__init__(4001, f"Payment not found: {payment_id}", 404)


class IllegalPaymentTransitionError(AppError):
    def __init__(self, current: str, requested: str) -> None:
        super().__init__(
            4002, f"Illegal payment transition: {current} -> {requested}", 422
        )


class PaymentGatewayError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4003, f"Payment gateway error: {detail}", 502, retryable=True)


# --- 5xxx: Commission ---

class CommissionNotFoundError(AppError):
    def __init__(self, commission_id: str) -> None:
        super().__init__(5001, f"Commission not found: {commission_id}", 404)


class CommissionAlreadyMaterializedError(AppError):
    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(5002, f"Commissions already materialized for order {order_id}", 409)


class CommissionNotPayableError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5003, f"Commissions not payable: {detail}", 422)


class TeamMemberNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(5004, f"Not a team member: {user_id}", 404)


# --- 6xxx: Delivery ---

class AlreadyClaimedError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(6001, f"Order {order_id} already claimed", 409, retryable=True)


class NotAssignedCourierError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(6002, f"Courier is not assigned to order {order_id}", 403)


class OrderNotClaimableError(AppError):
    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(6003, f"Order {order_id} in status {status} cannot be claimed", 422)


# --- 9xxx: System ---

class StoreUnavailableError(AppError):
    def __init__(self, detail: str = "Store unavailable") -> None:
        super().__init__(9001, detail, 503, retryable=True)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
