"""
In-memory record store.

``RecordStore`` owns the three collections. It is created by the application
factory and handed to every operation, so each test can build its own.
"""

import threading
from datetime import datetime, timezone
from typing import List, Optional, Sequence, TypeVar

from schemas import LineItem, Order, OrderStatus, Product, User

R = TypeVar("R")


def parse_id(record_id) -> Optional[int]:
    """Coerce a path/query id to int; None when it is not an integer."""
    if isinstance(record_id, bool):
        return None
    if isinstance(record_id, int):
        return record_id
    try:
        return int(str(record_id).strip())
    except (TypeError, ValueError):
        return None


def next_id(collection: Sequence) -> int:
    if not collection:
        return 1
    return max(record.id for record in collection) + 1


def find_by_id(collection: Sequence[R], record_id) -> Optional[R]:
    wanted = parse_id(record_id)
    if wanted is None:
        return None
    for record in collection:
        if record.id == wanted:
            return record
    return None


def remove_by_id(collection: List[R], record_id) -> Optional[R]:
    wanted = parse_id(record_id)
    if wanted is None:
        return None
    for index, record in enumerate(collection):
        if record.id == wanted:
            return collection.pop(index)
    return None


class RecordStore:
    def __init__(self, users=None, products=None, orders=None):
        self.users: List[User] = list(users or [])
        self.products: List[Product] = list(products or [])
        self.orders: List[Order] = list(orders or [])
        # Held by every mutating operation; order placement holds it for the
        # whole stock check + decrement sequence.
        self.lock = threading.RLock()

    @classmethod
    def with_sample_data(cls) -> "RecordStore":
        return cls(
            users=_sample_users(),
            products=_sample_products(),
            orders=_sample_orders(),
        )

    def __repr__(self) -> str:
        return (
            f"RecordStore(users={len(self.users)}, products={len(self.products)}, "
            f"orders={len(self.orders)})"
        )


# -----------------------------
# Demo data
# -----------------------------

def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


def _sample_users() -> List[User]:
    return [
        User(id=1, name="João Silva", email="joao@email.com", age=28, city="São Paulo",
             created_at=_ts("2024-01-15T10:30:00")),
        User(id=2, name="Maria Santos", email="maria@email.com", age=32, city="Rio de Janeiro",
             created_at=_ts("2024-01-20T14:45:00")),
        User(id=3, name="Pedro Oliveira", email="pedro@email.com", age=25, city="Belo Horizonte",
             created_at=_ts("2024-02-01T09:15:00")),
        User(id=4, name="Ana Costa", email="ana@email.com", age=29, city="Porto Alegre",
             created_at=_ts("2024-02-10T16:20:00")),
    ]


def _sample_products() -> List[Product]:
    return [
        Product(id=1, name="Galaxy Smartphone", price=1299.99, category="Electronics",
                description="Smartphone with 128GB of storage", stock=50),
        Product(id=2, name="Gaming Laptop", price=2899.99, category="Electronics",
                description="Gaming laptop with a dedicated graphics card", stock=15),
        Product(id=3, name="Bluetooth Headphones", price=199.99, category="Accessories",
                description="Wireless headphones with noise cancelling", stock=100),
        Product(id=4, name="55'' Smart TV", price=1899.99, category="Electronics",
                description="4K TV running Android", stock=0),
        Product(id=5, name="Mechanical Keyboard", price=299.99, category="Accessories",
                description="Gaming keyboard with blue switches", stock=25),
    ]


def _sample_orders() -> List[Order]:
    return [
        Order(
            id=1,
            user_id=1,
            line_items=[
                LineItem(product_id=1, quantity=1, unit_price=1299.99),
                LineItem(product_id=3, quantity=2, unit_price=199.99),
            ],
            total=1699.97,
            status=OrderStatus.DELIVERED,
            created_at=_ts("2024-02-15T10:30:00"),
            delivered_at=_ts("2024-02-20T14:00:00"),
        ),
        Order(
            id=2,
            user_id=2,
            line_items=[LineItem(product_id=2, quantity=1, unit_price=2899.99)],
            total=2899.99,
            status=OrderStatus.PROCESSING,
            created_at=_ts("2024-02-18T16:45:00"),
        ),
        Order(
            id=3,
            user_id=3,
            line_items=[
                LineItem(product_id=5, quantity=1, unit_price=299.99),
                LineItem(product_id=3, quantity=1, unit_price=199.99),
            ],
            total=499.98,
            status=OrderStatus.SHIPPED,
            created_at=_ts("2024-02-20T09:15:00"),
        ),
    ]
