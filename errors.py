"""Custom exceptions for the store API."""


class StoreError(Exception):
    """Base exception for all store errors."""

    status_code = 500


class ValidationError(StoreError):
    """Raised when a request is missing required input or carries bad values."""

    status_code = 400


class NotFoundError(StoreError):
    """Raised when a record id doesn't exist in its collection."""

    status_code = 404

    def __init__(self, entity: str, record_id=None):
        self.entity = entity
        self.record_id = record_id
        msg = f"{entity.capitalize()} not found"
        if record_id is not None:
            msg = f"{entity.capitalize()} {record_id} not found"
        super().__init__(msg)


class InsufficientStockError(StoreError):
    """Raised when an order line asks for more units than a product holds."""

    status_code = 400

    def __init__(self, product_name: str, requested: int, in_stock: int):
        self.product_name = product_name
        self.requested = requested
        self.in_stock = in_stock
        super().__init__(
            f"Insufficient stock for product {product_name} "
            f"(requested {requested}, in stock {in_stock})"
        )
