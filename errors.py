"""Error taxonomy for the order service.

Service code raises these; the HTTP layer in main.py maps each class to a
status code and a message-only envelope.
"""


class FarmspotError(Exception):
    """Base exception for all order service errors."""

    pass


class ValidationError(FarmspotError):
    """Raised when a payload fails structural validation."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}" if field else message)

    @classmethod
    def from_errors(cls, errors) -> "ValidationError":
        """Build from a pydantic ``errors()`` list, keeping only the first violation."""
        first = errors[0]
        loc = [str(part) for part in first.get("loc", ()) if part != "body"]
        return cls(".".join(loc), first.get("msg", "Invalid value"))


class NotFoundError(FarmspotError):
    """Raised when an id does not resolve to a stored document."""

    def __init__(self, kind: str, ref: str, message: str | None = None):
        self.kind = kind
        self.ref = ref
        super().__init__(message or f"{kind} not found: {ref}")


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str):
        super().__init__("Order", order_id)


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: str, name: str | None = None):
        self.name = name
        msg = f"Product {name} not found" if name else None
        super().__init__("Product", product_id, msg)


class InsufficientStockError(FarmspotError):
    """Raised when a product cannot cover the requested quantity."""

    def __init__(self, product_id: str, name: str, requested: int, available: int):
        self.product_id = product_id
        self.name = name
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient stock for {name}. Available: {available}")


class InvalidStatusError(FarmspotError):
    """Raised when a status literal is not part of its enumeration."""

    def __init__(self, value: str, kind: str = "status"):
        self.value = value
        self.kind = kind
        super().__init__(f"Invalid {kind}: {value}")


class InvalidOperationError(FarmspotError):
    """Raised when an operation is not allowed in the order's current state."""

    def __init__(self, message: str, status: str | None = None):
        self.status = status
        super().__init__(message)


class UnauthorizedError(FarmspotError):
    """Raised when the acting user does not own the order."""

    def __init__(self, message: str = "Not allowed to modify this order"):
        super().__init__(message)


class ConcurrentUpdateError(FarmspotError):
    """Raised when a versioned write loses a race with another writer."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} was modified concurrently, reload and retry")


class DatabaseUnavailableError(FarmspotError):
    def __init__(self):
        super().__init__("Database not available")
