"""
Order lifecycle: checkout, status changes, cancellation and payment updates.

Stock and order documents live in different collections, so checkout is not a
single store operation. It is ordered so that a failure leaves nothing
half-applied:

    check stock -> reserve stock (guarded $inc per item) -> insert order -> clear cart

A reservation that fails partway, or an insert that fails after all items are
reserved, releases every unit already taken before the error propagates.
Cancellation flips the order to "cancelled" with one conditional update first
and only then puts stock back, so two concurrent cancels cannot both restore.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from carts import CartStore
from database import create_document, get_documents, now_utc, to_object_id
from errors import (
    ConcurrentUpdateError,
    InsufficientStockError,
    InvalidOperationError,
    InvalidStatusError,
    NotFoundError,
    OrderNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from inventory import InventoryLedger
from order_numbers import OrderNumberGenerator, default_generator
from schemas import (
    ORDER_STATUSES,
    PAYMENT_STATUSES,
    TERMINAL_STATUSES,
    FarmerStats,
    Order,
    OrderCreate,
    OrderStatus,
    PaymentStatus,
)
from stats import compute_farmer_stats

logger = logging.getLogger(__name__)

Reservation = Tuple[str, int]


def parse_order_payload(payload: Dict[str, Any]) -> OrderCreate:
    try:
        return OrderCreate.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError.from_errors(e.errors()) from e


class OrderService:
    def __init__(
        self,
        database: Database,
        ledger: Optional[InventoryLedger] = None,
        carts: Optional[CartStore] = None,
        numbers: Optional[OrderNumberGenerator] = None,
    ):
        self.db = database
        self.orders = database["order"]
        self.ledger = ledger or InventoryLedger(database)
        self.carts = carts or CartStore(database)
        self.numbers = numbers or default_generator

    # Checkout

    def create_order(self, payload) -> Order:
        """Validate, reserve stock, persist the order and empty the customer's cart."""
        order_in = payload if isinstance(payload, OrderCreate) else parse_order_payload(payload)

        for index, item in enumerate(order_in.items):
            availability = self.ledger.check_availability(item.product_id, item.quantity, item.name)
            listed_by = availability.product.get("listed_by")
            if listed_by is not None and str(listed_by) != order_in.farmer_id:
                raise ValidationError(
                    f"items.{index}.productId",
                    f"{item.name} is not listed by farmer {order_in.farmer_id}",
                )
            if not availability.available:
                raise InsufficientStockError(item.product_id, item.name, item.quantity, availability.current_stock)

        order_number = self.numbers.next()
        document = self._new_order_document(order_in, order_number)

        reserved = self._reserve_stock(order_in, order_number)
        try:
            order_id = create_document("order", document, database=self.db)
        except PyMongoError:
            logger.exception("Failed to persist order %s, releasing reserved stock", order_number)
            self._release_stock(reserved, order_number)
            raise

        self.carts.clear(order_in.customer_id)
        logger.info(
            "Order %s created for customer %s (%d items, total %s)",
            order_number, order_in.customer_id, len(order_in.items), order_in.total_amount,
        )
        return self.get_order(order_id)

    def _new_order_document(self, order_in: OrderCreate, order_number: str) -> Dict[str, Any]:
        data = order_in.model_dump(exclude_none=True)
        address = data["delivery_address"]
        location = address.get("location")
        if location is not None and not location.get("coordinates"):
            del address["location"]

        now = now_utc()
        data.update({
            "order_number": order_number,
            "status": OrderStatus.PENDING.value,
            "payment_status": PaymentStatus.PENDING.value,
            "confirmed_at": None,
            "delivered_at": None,
            "cancellation_reason": None,
            "timeline": [{"status": OrderStatus.PENDING.value, "timestamp": now, "note": "Order placed"}],
            "version": 1,
            "created_at": now,
        })
        return data

    def _reserve_stock(self, order_in: OrderCreate, order_number: str) -> List[Reservation]:
        reserved: List[Reservation] = []
        try:
            for item in order_in.items:
                if not self.ledger.decrement(item.product_id, item.quantity):
                    # lost a race since the availability check; report what is left now
                    current = self.ledger.check_availability(item.product_id, item.quantity, item.name)
                    raise InsufficientStockError(item.product_id, item.name, item.quantity, current.current_stock)
                reserved.append((item.product_id, item.quantity))
        except Exception:
            if reserved:
                logger.warning("Reservation for %s failed, releasing %d items", order_number, len(reserved))
                self._release_stock(reserved, order_number)
            raise
        return reserved

    def _release_stock(self, reservations: Iterable[Reservation], order_number: str) -> List[str]:
        """Put stock back item by item. Returns the product ids that could not be restored."""
        failed = []
        for product_id, quantity in reservations:
            try:
                restored = self.ledger.increment(product_id, quantity)
            except PyMongoError:
                logger.exception("Restoring %d of %s for %s failed", quantity, product_id, order_number)
                restored = False
            if not restored:
                failed.append(product_id)
        if failed:
            logger.warning("Order %s: stock not restored for %s", order_number, ", ".join(failed))
        return failed

    # Queries

    def _find(self, order_id: str) -> Dict[str, Any]:
        oid = to_object_id(order_id)
        doc = self.orders.find_one({"_id": oid}) if oid is not None else None
        if not doc:
            raise OrderNotFoundError(order_id)
        return doc

    def get_order(self, order_id: str) -> Order:
        return Order.from_document(self._find(order_id))

    def _list_by(self, field: str, ref: str, kind: str) -> List[Order]:
        if to_object_id(ref) is None:
            raise NotFoundError(kind, ref, f"Invalid {kind} ID")
        docs = get_documents("order", {field: ref}, sort=[("created_at", DESCENDING)], database=self.db)
        return [Order.from_document(d) for d in docs]

    def list_orders_by_customer(self, customer_id: str) -> List[Order]:
        return self._list_by("customer_id", customer_id, "Customer")

    def list_orders_by_farmer(self, farmer_id: str) -> List[Order]:
        return self._list_by("farmer_id", farmer_id, "Farmer")

    def get_farmer_stats(self, farmer_id: str) -> FarmerStats:
        if to_object_id(farmer_id) is None:
            raise NotFoundError("Farmer", farmer_id, "Invalid Farmer ID")
        docs = self.orders.find(
            {"farmer_id": farmer_id},
            {"status": 1, "payment_status": 1, "total_amount": 1},
        )
        return compute_farmer_stats(docs)

    # Mutations

    @staticmethod
    def _check_owner(doc: Dict[str, Any], field: str, actor_id: Optional[str]) -> None:
        if actor_id is not None and str(doc.get(field)) != actor_id:
            raise UnauthorizedError()

    def _versioned_update(self, doc: Dict[str, Any], update: Dict[str, Any]) -> Order:
        version = doc.get("version")
        guard = {"_id": doc["_id"], "version": version if version is not None else {"$exists": False}}
        update.setdefault("$inc", {})["version"] = 1
        updated = self.orders.find_one_and_update(guard, update, return_document=ReturnDocument.AFTER)
        if updated is None:
            raise ConcurrentUpdateError(str(doc["_id"]))
        return Order.from_document(updated)

    def update_status(
        self,
        order_id: str,
        status: str,
        note: Optional[str] = None,
        farmer_id: Optional[str] = None,
    ) -> Order:
        """Move an order to ``status`` and record it on the timeline.

        Any non-terminal status may move to any other; delivered and cancelled
        orders are final. Moving to cancelled goes through cancel_order so the
        stock comes back.
        """
        doc = self._find(order_id)
        if status not in ORDER_STATUSES:
            raise InvalidStatusError(status)
        self._check_owner(doc, "farmer_id", farmer_id)

        if status == OrderStatus.CANCELLED.value:
            return self.cancel_order(order_id, note)
        if doc["status"] in TERMINAL_STATUSES:
            raise InvalidOperationError(f"Cannot move a {doc['status']} order to {status}", doc["status"])

        now = now_utc()
        changes: Dict[str, Any] = {"status": status, "updated_at": now}
        if status == OrderStatus.CONFIRMED.value and not doc.get("confirmed_at"):
            changes["confirmed_at"] = now
        elif status == OrderStatus.DELIVERED.value and not doc.get("delivered_at"):
            changes["delivered_at"] = now
        entry = {"status": status, "timestamp": now, "note": note or f"Order {status}"}

        order = self._versioned_update(doc, {"$set": changes, "$push": {"timeline": entry}})
        logger.info("Order %s: %s -> %s", order.order_number, doc["status"], status)
        return order

    def cancel_order(
        self,
        order_id: str,
        reason: Optional[str] = None,
        customer_id: Optional[str] = None,
    ) -> Order:
        doc = self._find(order_id)
        self._check_owner(doc, "customer_id", customer_id)
        if doc["status"] in TERMINAL_STATUSES:
            raise InvalidOperationError("Cannot cancel this order", doc["status"])

        now = now_utc()
        claimed = self.orders.find_one_and_update(
            {"_id": doc["_id"], "status": {"$nin": sorted(TERMINAL_STATUSES)}},
            {
                "$set": {
                    "status": OrderStatus.CANCELLED.value,
                    "cancellation_reason": reason,
                    "updated_at": now,
                },
                "$push": {"timeline": {
                    "status": OrderStatus.CANCELLED.value,
                    "timestamp": now,
                    "note": reason or "Order cancelled",
                }},
                "$inc": {"version": 1},
            },
            return_document=ReturnDocument.AFTER,
        )
        if claimed is None:
            # someone else delivered or cancelled it since we read it
            raise InvalidOperationError("Cannot cancel this order")

        reservations = [(item["product_id"], int(item["quantity"])) for item in claimed.get("items", [])]
        self._release_stock(reservations, claimed["order_number"])
        logger.info("Order %s cancelled: %s", claimed["order_number"], reason or "no reason given")
        return Order.from_document(claimed)

    def update_payment(
        self,
        order_id: str,
        payment_status: str,
        payment_reference: Optional[str] = None,
    ) -> Order:
        """Record payment progress. Fulfillment status and timeline are left alone."""
        doc = self._find(order_id)
        if payment_status not in PAYMENT_STATUSES:
            raise InvalidStatusError(payment_status, "payment status")

        changes: Dict[str, Any] = {"payment_status": payment_status, "updated_at": now_utc()}
        if payment_reference:
            changes["payment_reference"] = payment_reference
        return self._versioned_update(doc, {"$set": changes})
