"""Stock ledger over the product collection.

All writes are single-document ``$inc`` updates so the store applies them
atomically. ``decrement`` carries a ``stock >= qty`` guard in its filter,
which keeps stock from going negative even when two checkouts race for the
last unit.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from database import now_utc, to_object_id
from errors import ProductNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class Availability:
    available: bool
    current_stock: int
    product: Dict[str, Any]


class InventoryLedger:
    def __init__(self, database: Database):
        self.products = database["product"]

    def get_product(self, product_id: str, name: Optional[str] = None) -> Dict[str, Any]:
        oid = to_object_id(product_id)
        product = self.products.find_one({"_id": oid}) if oid is not None else None
        if not product:
            raise ProductNotFoundError(product_id, name)
        return product

    def check_availability(self, product_id: str, requested_qty: int, name: Optional[str] = None) -> Availability:
        """Read-only stock check; raises ProductNotFoundError for unknown ids."""
        product = self.get_product(product_id, name)
        stock = int(product.get("stock", 0))
        return Availability(available=stock >= requested_qty, current_stock=stock, product=product)

    def decrement(self, product_id: str, qty: int) -> bool:
        """Take qty units if at least qty are in stock.

        Returns False, without writing, when the product is gone or short.
        """
        oid = to_object_id(product_id)
        if oid is None:
            return False
        updated = self.products.find_one_and_update(
            {"_id": oid, "stock": {"$gte": qty}},
            {"$inc": {"stock": -qty}, "$set": {"updated_at": now_utc()}},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            logger.info("Stock guard rejected decrement of %s by %d", product_id, qty)
            return False
        return True

    def increment(self, product_id: str, qty: int) -> bool:
        """Put qty units back. Returns whether the product still exists."""
        oid = to_object_id(product_id)
        if oid is None:
            return False
        result = self.products.update_one(
            {"_id": oid},
            {"$inc": {"stock": qty}, "$set": {"updated_at": now_utc()}},
        )
        return result.matched_count == 1

    def stock_of(self, product_id: str) -> int:
        return int(self.get_product(product_id).get("stock", 0))
