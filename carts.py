"""Customer carts. Checkout only ever empties them."""

import logging

from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import now_utc

logger = logging.getLogger(__name__)


class CartStore:
    def __init__(self, database: Database):
        self.carts = database["cart"]

    def clear(self, customer_id: str) -> bool:
        """Empty the customer's cart. Missing carts and store errors are logged, not raised."""
        try:
            result = self.carts.update_one(
                {"user_id": customer_id},
                {"$set": {"items": [], "updated_at": now_utc()}},
            )
        except PyMongoError:
            logger.warning("Could not clear cart for customer %s", customer_id, exc_info=True)
            return False
        if result.matched_count == 0:
            logger.debug("No cart to clear for customer %s", customer_id)
            return False
        return True
