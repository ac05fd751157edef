import logging
from contextlib import asynccontextmanager
from typing import Generic, List, Optional, TypeVar

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import settings
from database import ensure_indexes, get_database
from errors import (
    ConcurrentUpdateError,
    DatabaseUnavailableError,
    FarmspotError,
    InsufficientStockError,
    InvalidOperationError,
    InvalidStatusError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from orders import OrderService
from schemas import CamelModel, FarmerStats, Order, OrderCreate

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    database = get_database()
    if database is not None:
        try:
            ensure_indexes(database)
        except PyMongoError:
            logger.exception("Could not create indexes")
    else:
        logger.warning("DATABASE_URL / DATABASE_NAME not set, running without a database")
    yield


app = FastAPI(title="Farmspot API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Envelope
T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str
    data: Optional[T] = None


def ok(message: str, data=None) -> dict:
    return {"success": True, "message": message, "data": data}


def fail(status_code: int, message: str, error_type: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "errorType": error_type},
    )


ERROR_STATUS_CODES = {
    ValidationError: 400,
    NotFoundError: 404,
    InsufficientStockError: 400,
    InvalidStatusError: 400,
    InvalidOperationError: 400,
    UnauthorizedError: 403,
    ConcurrentUpdateError: 409,
    DatabaseUnavailableError: 500,
}


@app.exception_handler(FarmspotError)
async def farmspot_error_handler(request: Request, exc: FarmspotError) -> JSONResponse:
    status_code = next((ERROR_STATUS_CODES[c] for c in type(exc).__mro__ if c in ERROR_STATUS_CODES), 500)
    return fail(status_code, str(exc), type(exc).__name__)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    err = ValidationError.from_errors(exc.errors())
    return fail(400, str(err), "ValidationError")


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return fail(500, f"Database error: {exc}", "DatabaseError")


def get_order_service(database: Optional[Database] = Depends(get_database)) -> OrderService:
    if database is None:
        raise DatabaseUnavailableError()
    return OrderService(database)


# Request bodies
class StatusUpdateRequest(CamelModel):
    status: str
    note: Optional[str] = None
    farmer_id: Optional[str] = None


class PaymentUpdateRequest(CamelModel):
    payment_status: str
    payment_reference: Optional[str] = None


class CancelRequest(CamelModel):
    reason: Optional[str] = None
    customer_id: Optional[str] = None


@app.get("/")
def read_root():
    return {"message": "Farmspot API Running"}


@app.post("/api/orders/create", response_model=ApiResponse[Order])
def create_order(payload: OrderCreate, service: OrderService = Depends(get_order_service)):
    return ok("Order created successfully", service.create_order(payload))


@app.get("/api/orders/customer/{customer_id}", response_model=ApiResponse[List[Order]])
def list_customer_orders(customer_id: str, service: OrderService = Depends(get_order_service)):
    return ok("Success", service.list_orders_by_customer(customer_id))


@app.get("/api/orders/farmer/{farmer_id}", response_model=ApiResponse[List[Order]])
def list_farmer_orders(farmer_id: str, service: OrderService = Depends(get_order_service)):
    return ok("Success", service.list_orders_by_farmer(farmer_id))


@app.get("/api/orders/farmer/{farmer_id}/stats", response_model=ApiResponse[FarmerStats])
def farmer_stats(farmer_id: str, service: OrderService = Depends(get_order_service)):
    return ok("Success", service.get_farmer_stats(farmer_id))


@app.get("/api/orders/{order_id}", response_model=ApiResponse[Order])
def get_order(order_id: str, service: OrderService = Depends(get_order_service)):
    return ok("Success", service.get_order(order_id))


@app.patch("/api/orders/{order_id}/status", response_model=ApiResponse[Order])
def update_order_status(
    order_id: str,
    req: StatusUpdateRequest,
    service: OrderService = Depends(get_order_service),
):
    order = service.update_status(order_id, req.status, req.note, farmer_id=req.farmer_id)
    return ok("Order status updated", order)


@app.patch("/api/orders/{order_id}/payment", response_model=ApiResponse[Order])
def update_order_payment(
    order_id: str,
    req: PaymentUpdateRequest,
    service: OrderService = Depends(get_order_service),
):
    order = service.update_payment(order_id, req.payment_status, req.payment_reference)
    return ok("Payment status updated", order)


@app.post("/api/orders/{order_id}/cancel", response_model=ApiResponse[Order])
def cancel_order(
    order_id: str,
    req: Optional[CancelRequest] = None,
    service: OrderService = Depends(get_order_service),
):
    req = req or CancelRequest()
    order = service.cancel_order(order_id, req.reason, customer_id=req.customer_id)
    return ok("Order cancelled", order)


@app.get("/api/health")
def health(database: Optional[Database] = Depends(get_database)):
    response = {
        "backend": "Running",
        "database": "Not Available",
        "database_url": "Set" if settings.database_url else "Not Set",
        "database_name": "Set" if settings.database_name else "Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    if database is not None:
        response["connection_status"] = "Connected"
        try:
            response["collections"] = database.list_collection_names()[:10]
            response["database"] = "Connected & Working"
        except PyMongoError as e:
            response["database"] = f"Connected but Error: {str(e)[:50]}"
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
