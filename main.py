import time
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import services
from config import Settings, configure_logging, logger
from errors import StoreError
from schemas import OrderPayload, OrderStatusPayload, ProductPayload, StoreModel, UserPayload
from store import RecordStore

API_VERSION = "1.0.0"

router = APIRouter(prefix="/api")


def get_store(request: Request) -> RecordStore:
    return request.app.state.store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def serialize(record: StoreModel) -> dict:
    return record.model_dump(mode="json", by_alias=True)


def ok(data: Any, message: Optional[str] = None) -> dict:
    body = {"success": True}
    if message:
        body["message"] = message
    body["data"] = serialize(data)
    return body


def ok_list(records: List[StoreModel]) -> dict:
    return {
        "success": True,
        "count": len(records),
        "data": [serialize(r) for r in records],
    }


# -----------------------------
# Users
# -----------------------------

@router.get("/users")
def list_users(
    city: Optional[str] = None,
    age: Optional[int] = Query(None, description="Minimum age"),
    store: RecordStore = Depends(get_store),
):
    return ok_list(services.list_users(store, city=city, min_age=age))


@router.get("/users/{user_id}")
def get_user(user_id: str, store: RecordStore = Depends(get_store)):
    return ok(services.get_user(store, user_id))


@router.post("/users", status_code=201)
def create_user(payload: UserPayload, store: RecordStore = Depends(get_store)):
    return ok(services.create_user(store, payload), "User created successfully")


@router.put("/users/{user_id}")
def update_user(user_id: str, payload: UserPayload, store: RecordStore = Depends(get_store)):
    return ok(services.update_user(store, user_id, payload), "User updated successfully")


@router.delete("/users/{user_id}")
def delete_user(user_id: str, store: RecordStore = Depends(get_store)):
    return ok(services.delete_user(store, user_id), "User deleted successfully")


# -----------------------------
# Products
# -----------------------------

@router.get("/products")
def list_products(
    category: Optional[str] = None,
    available: Optional[bool] = None,
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    store: RecordStore = Depends(get_store),
):
    products = services.list_products(
        store,
        category=category,
        available=available,
        min_price=min_price,
        max_price=max_price,
    )
    return ok_list(products)


@router.get("/products/{product_id}")
def get_product(product_id: str, store: RecordStore = Depends(get_store)):
    return ok(services.get_product(store, product_id))


@router.post("/products", status_code=201)
def create_product(payload: ProductPayload, store: RecordStore = Depends(get_store)):
    return ok(services.create_product(store, payload), "Product created successfully")


@router.put("/products/{product_id}")
def update_product(product_id: str, payload: ProductPayload, store: RecordStore = Depends(get_store)):
    return ok(services.update_product(store, product_id, payload), "Product updated successfully")


@router.delete("/products/{product_id}")
def delete_product(product_id: str, store: RecordStore = Depends(get_store)):
    return ok(services.delete_product(store, product_id), "Product deleted successfully")


# -----------------------------
# Orders
# -----------------------------

@router.get("/orders")
def list_orders(
    user_id: Optional[str] = Query(None, alias="userId"),
    status: Optional[str] = None,
    store: RecordStore = Depends(get_store),
):
    return ok_list(services.list_orders(store, user_id=user_id, status=status))


@router.get("/orders/{order_id}")
def get_order(order_id: str, store: RecordStore = Depends(get_store)):
    return ok(services.get_order(store, order_id))


@router.post("/orders", status_code=201)
def create_order(
    payload: OrderPayload,
    store: RecordStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    order = services.place_order(store, payload, atomic=settings.atomic_orders)
    return ok(order, "Order created successfully")


@router.put("/orders/{order_id}/status")
def update_order_status(order_id: str, payload: OrderStatusPayload, store: RecordStore = Depends(get_store)):
    order = services.update_order_status(store, order_id, payload.status)
    return ok(order, "Order status updated successfully")


# -----------------------------
# Analytics
# -----------------------------

@router.get("/stats")
def stats(store: RecordStore = Depends(get_store)):
    return ok(services.compute_stats(store))


# -----------------------------
# Application
# -----------------------------

def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())[1:])
        parts.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return "; ".join(parts) or "Invalid request"


def create_app(store: Optional[RecordStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    if store is None:
        store = RecordStore.with_sample_data() if settings.seed_sample_data else RecordStore()

    app = FastAPI(title="Store API", version=API_VERSION, redirect_slashes=False)
    app.state.store = store
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def strip_trailing_slash(request: Request, call_next):
        path = request.scope["path"]
        if path != "/" and path.endswith("/"):
            request.scope["path"] = path.rstrip("/") or "/"
        return await call_next(request)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("%s %s -> %s (%.1fms)", request.method, request.url.path, response.status_code, elapsed_ms)
        return response

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc)},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = _validation_message(exc)
        logger.warning("%s %s invalid: %s", request.method, request.url.path, message)
        return JSONResponse(status_code=400, content={"success": False, "message": message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # Unknown paths and unrouted methods on known paths answer alike.
        if exc.status_code in (404, 405):
            return JSONResponse(
                status_code=404,
                content={
                    "error": "Endpoint not found",
                    "message": f"Route {request.url.path} does not exist in this API",
                },
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "message": "Something went wrong"},
        )

    @app.get("/")
    def read_root():
        return {
            "message": "Welcome to the Store API",
            "version": API_VERSION,
            "endpoints": {
                "users": "/api/users",
                "products": "/api/products",
                "orders": "/api/orders",
                "stats": "/api/stats",
            },
        }

    app.include_router(router)
    logger.info("Store API ready: %r", store)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port)
