"""Custom exceptions for storefront."""

from typing import Any


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    pass


# --- Validation ---


class ValidationError(StorefrontError):
    """Raised when caller input is rejected before any side effect."""

    pass


class EmptyCartError(ValidationError):
    """Raised when checkout is attempted with no items."""

    def __init__(self) -> None:
        super().__init__("No items provided")


class InvalidLineItemError(ValidationError):
    """Raised when a line item is missing data or has out-of-range values."""

    def __init__(self, item: Any, reason: str):
        self.item = item
        self.reason = reason
        super().__init__(f"Invalid item data: {item!r} ({reason})")


class InvalidCustomerInfoError(ValidationError):
    """Raised when required customer fields are missing."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing customer information: {', '.join(missing)}")


class InvalidSessionIdError(ValidationError):
    """Raised when a checkout session id is missing or malformed."""

    def __init__(self, session_id: str | None):
        self.session_id = session_id
        if not session_id:
            msg = "Session ID is required"
        else:
            msg = f"Invalid session ID format: {session_id}"
        super().__init__(msg)


class InvalidStatusError(ValidationError):
    """Raised when a status value is not part of its axis."""

    def __init__(self, axis: str, value: str, allowed: list[str]):
        self.axis = axis
        self.value = value
        self.allowed = allowed
        super().__init__(
            f"Invalid {axis} status '{value}'. Expected one of: {', '.join(allowed)}"
        )


class InsufficientStockError(ValidationError):
    """Raised when an order asks for more units than are in stock."""

    def __init__(self, product_id: str, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {product_id}: requested {requested}, available {available}"
        )


# --- Gateway ---


class GatewayError(StorefrontError):
    """Raised when the payment gateway reports a domain error."""

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code
        super().__init__(message)


class SessionNotFoundError(GatewayError):
    """Raised when the gateway does not recognise a checkout session."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Checkout session not found: {session_id}", code="resource_missing")


class GatewayConfigurationError(GatewayError):
    """Raised when the gateway cannot be used because it is not configured."""

    def __init__(self, reason: str):
        super().__init__(f"Payment gateway configuration error: {reason}")


class NetworkError(StorefrontError):
    """Raised on timeouts and connection failures talking to the gateway."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Could not reach the payment gateway: {message}. Please try again.")


# --- Order store ---


class OrderNotFoundError(StorefrontError):
    """Raised when an order ID doesn't exist."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class DuplicateOrderError(StorefrontError):
    """Raised when appending an order whose ID is already stored."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order already exists: {order_id}")


class ConcurrentUpdateError(StorefrontError):
    """Raised when an update was based on a stale order version."""

    def __init__(self, order_id: str, expected: int, actual: int):
        self.order_id = order_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Order {order_id} was modified concurrently "
            f"(expected version {expected}, found {actual})"
        )


class InvalidSchemaVersionError(StorefrontError):
    """Raised when stored data has an unsupported schema version."""

    def __init__(self, found: int, supported: int):
        self.found = found
        self.supported = supported
        super().__init__(
            f"Unsupported schema version {found}. This tool supports version {supported}."
        )


class InvalidOrderRecordError(StorefrontError):
    """Raised when a persisted order record cannot be read or upgraded."""

    def __init__(self, record_id: str | None, reason: str):
        self.record_id = record_id
        self.reason = reason
        super().__init__(f"Invalid order record {record_id or '<unknown>'}: {reason}")
