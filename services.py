"""
Domain operations over a ``RecordStore``.

Each function takes the store as its first argument and either returns the
affected record(s) or raises a ``StoreError`` subclass. Nothing here knows
about HTTP.
"""

from typing import Iterable, List, Optional

from config import logger
from errors import InsufficientStockError, NotFoundError, ValidationError
from schemas import (
    LineItem,
    Order,
    OrderItemPayload,
    OrderPayload,
    OrderStatus,
    Product,
    ProductPayload,
    StoreStats,
    User,
    UserPayload,
    utcnow,
)
from store import RecordStore, find_by_id, next_id, parse_id, remove_by_id

VALID_STATUSES = [status.value for status in OrderStatus]


def _apply_partial_update(record, payload, not_null: Iterable[str], not_blank: Iterable[str] = ()):
    """Copy the fields the client actually sent onto ``record``.

    Presence is decided by ``model_fields_set``, so ``0``, ``""`` and
    ``false`` are applied like any other value.
    """
    changes = {name: getattr(payload, name) for name in payload.model_fields_set}
    for name in not_null:
        if name in changes and changes[name] is None:
            raise ValidationError(f"{name} cannot be null")
    for name in not_blank:
        if name in changes and not changes[name].strip():
            raise ValidationError(f"{name} cannot be empty")
    for name, value in changes.items():
        setattr(record, name, value)
    return record


# -----------------------------
# Users
# -----------------------------

def list_users(store: RecordStore, city: Optional[str] = None, min_age: Optional[int] = None) -> List[User]:
    users = store.users
    if city:
        needle = city.lower()
        users = [u for u in users if u.city is not None and needle in u.city.lower()]
    if min_age is not None:
        users = [u for u in users if u.age is not None and u.age >= min_age]
    return list(users)


def get_user(store: RecordStore, user_id) -> User:
    user = find_by_id(store.users, user_id)
    if user is None:
        raise NotFoundError("user", user_id)
    return user


def create_user(store: RecordStore, payload: UserPayload) -> User:
    if not payload.name or not payload.email:
        raise ValidationError("name and email are required")
    with store.lock:
        user = User(
            id=next_id(store.users),
            name=payload.name,
            email=payload.email,
            age=payload.age,
            city=payload.city,
        )
        store.users.append(user)
    logger.info("Created user %s (%s)", user.id, user.email)
    return user


def update_user(store: RecordStore, user_id, payload: UserPayload) -> User:
    with store.lock:
        user = get_user(store, user_id)
        _apply_partial_update(user, payload, not_null=("name", "email"), not_blank=("name", "email"))
    logger.info("Updated user %s: %s", user.id, sorted(payload.model_fields_set))
    return user


def delete_user(store: RecordStore, user_id) -> User:
    with store.lock:
        user = remove_by_id(store.users, user_id)
    if user is None:
        raise NotFoundError("user", user_id)
    logger.info("Deleted user %s", user.id)
    return user


# -----------------------------
# Products
# -----------------------------

def list_products(
    store: RecordStore,
    category: Optional[str] = None,
    available: Optional[bool] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
) -> List[Product]:
    products = store.products
    if category:
        needle = category.lower()
        products = [p for p in products if needle in p.category.lower()]
    if available is not None:
        products = [p for p in products if p.available is available]
    if min_price is not None:
        products = [p for p in products if p.price >= min_price]
    if max_price is not None:
        products = [p for p in products if p.price <= max_price]
    return list(products)


def get_product(store: RecordStore, product_id) -> Product:
    product = find_by_id(store.products, product_id)
    if product is None:
        raise NotFoundError("product", product_id)
    return product


def create_product(store: RecordStore, payload: ProductPayload) -> Product:
    if not payload.name or payload.price is None or not payload.category:
        raise ValidationError("name, price and category are required")
    with store.lock:
        product = Product(
            id=next_id(store.products),
            name=payload.name,
            price=payload.price,
            category=payload.category,
            description=payload.description or "",
            stock=payload.stock or 0,
        )
        store.products.append(product)
    logger.info("Created product %s (%s), stock %s", product.id, product.name, product.stock)
    return product


def update_product(store: RecordStore, product_id, payload: ProductPayload) -> Product:
    with store.lock:
        product = get_product(store, product_id)
        _apply_partial_update(
            product,
            payload,
            not_null=("name", "price", "category", "description", "stock"),
            not_blank=("name", "category"),
        )
    logger.info("Updated product %s: %s", product.id, sorted(payload.model_fields_set))
    return product


def delete_product(store: RecordStore, product_id) -> Product:
    with store.lock:
        product = remove_by_id(store.products, product_id)
    if product is None:
        raise NotFoundError("product", product_id)
    logger.info("Deleted product %s", product.id)
    return product


# -----------------------------
# Orders
# -----------------------------

def list_orders(store: RecordStore, user_id=None, status: Optional[str] = None) -> List[Order]:
    """Filter orders by owner and status.

    A ``user_id`` that is not an integer matches no order.
    """
    orders = store.orders
    if user_id is not None and user_id != "":
        wanted_user = parse_id(user_id)
        orders = [o for o in orders if wanted_user is not None and o.user_id == wanted_user]
    if status:
        wanted = status.lower()
        orders = [o for o in orders if o.status.value == wanted]
    return list(orders)


def get_order(store: RecordStore, order_id) -> Order:
    order = find_by_id(store.orders, order_id)
    if order is None:
        raise NotFoundError("order", order_id)
    return order


def _check_stock(store: RecordStore, items: List[OrderItemPayload]) -> None:
    """Validate a whole batch without touching stock.

    Quantities for a product listed more than once are added up.
    """
    requested = {}
    for item in items:
        product = find_by_id(store.products, item.product_id)
        if product is None:
            raise NotFoundError("product", item.product_id)
        requested[product.id] = requested.get(product.id, 0) + item.quantity
        if product.stock < requested[product.id]:
            raise InsufficientStockError(product.name, requested[product.id], product.stock)


def place_order(store: RecordStore, payload: OrderPayload, atomic: bool = False) -> Order:
    """Create an order, snapshotting prices and decrementing stock.

    Line items are processed in the order given. Unless ``atomic`` is set, a
    failure on a later line leaves the stock already taken by earlier lines
    decremented. With ``atomic`` the whole batch is validated first, so a
    rejected order changes nothing.
    """
    if not payload.user_id or not payload.line_items:
        raise ValidationError("userId and products are required")

    with store.lock:
        user = find_by_id(store.users, payload.user_id)
        if user is None:
            raise NotFoundError("user", payload.user_id)

        if atomic:
            _check_stock(store, payload.line_items)

        total = 0.0
        line_items = []
        for item in payload.line_items:
            product = find_by_id(store.products, item.product_id)
            if product is None:
                logger.warning("Order for user %s rejected: product %s not found", user.id, item.product_id)
                raise NotFoundError("product", item.product_id)
            if product.stock < item.quantity:
                logger.warning(
                    "Order for user %s rejected: product %s has %s units, %s requested",
                    user.id, product.id, product.stock, item.quantity,
                )
                raise InsufficientStockError(product.name, item.quantity, product.stock)

            total += product.price * item.quantity
            line_items.append(
                LineItem(product_id=product.id, quantity=item.quantity, unit_price=product.price)
            )
            product.stock -= item.quantity

        order = Order(
            id=next_id(store.orders),
            user_id=user.id,
            line_items=line_items,
            total=round(total, 2),
            status=OrderStatus.PROCESSING,
            created_at=utcnow(),
            delivered_at=None,
        )
        store.orders.append(order)

    logger.info("Placed order %s for user %s: %s lines, total %.2f", order.id, user.id, len(line_items), order.total)
    return order


def update_order_status(store: RecordStore, order_id, status: Optional[str]) -> Order:
    with store.lock:
        order = get_order(store, order_id)
        if not status or status not in VALID_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(VALID_STATUSES)}")
        previous = order.status
        order.status = OrderStatus(status)
        if order.status is OrderStatus.DELIVERED:
            order.delivered_at = utcnow()
    logger.info("Order %s status %s -> %s", order.id, previous.value, order.status.value)
    return order


# -----------------------------
# Statistics
# -----------------------------

def compute_stats(store: RecordStore) -> StoreStats:
    orders = list(store.orders)
    revenue = sum(order.total for order in orders)
    average = revenue / len(orders) if orders else 0
    by_status = {status: 0 for status in VALID_STATUSES}
    for order in orders:
        by_status[order.status.value] += 1
    return StoreStats(
        total_users=len(store.users),
        total_products=len(store.products),
        total_orders=len(orders),
        total_revenue=round(revenue, 2),
        average_order_value=round(average, 2),
        orders_by_status=by_status,
    )

