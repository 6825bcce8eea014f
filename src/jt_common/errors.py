"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth / ownership
  2xxx: Order
  3xxx: Stock
  9xxx: System / dependencies

Category classes (NotFoundError, UnauthorizedError, InvalidStateError,
InputValidationError, StockUnavailableError, DependencyFailureError) let the
HTTP layer and callers branch on the kind of failure; concrete subclasses
carry the specific reason string shown to the seller or buyer.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- Categories ---

class NotFoundError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 404)


class UnauthorizedError(AppError):
    def __init__(self, code: int, message: str, http_status: int = 403) -> None:
        super().__init__(code, message, http_status)


class InvalidStateError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 409)


class InputValidationError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 422)


class StockUnavailableError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 409)


class DependencyFailureError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 503)


# --- 1xxx: Auth / ownership ---

class InvalidCredentialsError(UnauthorizedError):
    def __init__(self) -> None:
        super().__init__(1001, "Invalid or expired token", 401)


class NotTripOwnerError(UnauthorizedError):
    def __init__(self) -> None:
        super().__init__(1002, "Unauthorized: you are not the owner of this trip")


# --- 2xxx: Order ---

class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str) -> None:
        super().__init__(2001, f"Order not found: {order_id}")


class TripNotFoundError(NotFoundError):
    def __init__(self, trip_id: str) -> None:
        super().__init__(2002, f"Trip not found: {trip_id}")


class OrderNotValidatableError(InvalidStateError):
    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(2003, f"Order {order_id} cannot be validated in status: {status}")


class InvalidTransitionError(InvalidStateError):
    def __init__(self, current: str, target: str, terminal: bool = False) -> None:
        message = f"Invalid order transition: {current} -> {target}"
        if terminal:
            message += f" (order is already {current})"
        super().__init__(2004, message)


class ConcurrentOrderUpdateError(InvalidStateError):
    def __init__(self, order_id: str) -> None:
        super().__init__(2009, f"Order {order_id} was modified by another request, reload and retry")


class RejectionReasonRequiredError(InputValidationError):
    def __init__(self) -> None:
        super().__init__(2005, "Rejection reason required")


class ShippingFeeRequiredError(InputValidationError):
    def __init__(self) -> None:
        super().__init__(2006, "Shipping fee required for orders with goods")


class BuyerIdentityError(InputValidationError):
    def __init__(self) -> None:
        super().__init__(2007, "Exactly one of participant_id or guest_id must be set")


class InvalidOrderInputError(InputValidationError):
    def __init__(self, detail: str) -> None:
        super().__init__(2008, f"Invalid order input: {detail}")


# --- 3xxx: Stock ---

class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: str) -> None:
        super().__init__(3001, f"Product not found: {product_id}")


class InsufficientStockError(StockUnavailableError):
    def __init__(self, title: str, available: int | None, requested: int) -> None:
        self.available = available
        self.requested = requested
        super().__init__(
            3002,
            f'Insufficient stock for "{title}". Available: {available}, Requested: {requested}',
        )


# --- 9xxx: System / dependencies ---

class CommissionRateUnavailableError(DependencyFailureError):
    def __init__(self, detail: str) -> None:
        super().__init__(9001, f"Commission rate lookup failed: {detail}")


class NotificationDeliveryError(DependencyFailureError):
    def __init__(self, detail: str) -> None:
        super().__init__(9002, f"Notification delivery failed: {detail}")


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9009, detail, 500)
