"""
Stock reservation

Decrements are conditional writes, so two checkouts racing for the last unit
of a size cannot both succeed. Sized products are updated with a
compare-and-set on the whole `sizes` array, which also keeps `total_stock`
equal to the sum of the size stocks. Unsized products use a guarded `$inc`.
"""
import logging
from typing import List, Optional

from bson import ObjectId

from database import now
from schemas import total_size_stock

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5


def _oid(value):
    return value if isinstance(value, ObjectId) else ObjectId(value)


class InsufficientStock(Exception):
    def __init__(self, product_name: str):
        super().__init__(f"Insufficient stock for {product_name}")
        self.product_name = product_name


def find_size(product: dict, size: Optional[str]) -> Optional[dict]:
    for entry in product.get("sizes") or []:
        if entry.get("size") == size:
            return entry
    return None


def has_stock(product: dict, size: Optional[str], quantity: int) -> bool:
    if size and product.get("sizes"):
        entry = find_size(product, size)
        return entry is not None and entry.get("stock", 0) >= quantity
    return product.get("total_stock", 0) >= quantity


def _adjust_total(collection, product_id, delta: int) -> bool:
    query = {"_id": product_id}
    if delta < 0:
        query["total_stock"] = {"$gte": -delta}
    result = collection.update_one(query, {"$inc": {"total_stock": delta}, "$set": {"updated_at": now()}})
    return result.matched_count == 1


def _adjust_size(collection, product_id, size: str, delta: int) -> bool:
    for _ in range(MAX_ATTEMPTS):
        product = collection.find_one({"_id": product_id}, {"sizes": 1})
        if not product:
            return False
        current = product.get("sizes") or []
        if not current:
            return _adjust_total(collection, product_id, delta)
        updated = []
        found = False
        for entry in current:
            entry = dict(entry)
            if entry.get("size") == size:
                entry["stock"] = entry.get("stock", 0) + delta
                if entry["stock"] < 0:
                    return False
                found = True
            updated.append(entry)
        if not found:
            return False
        result = collection.update_one(
            {"_id": product_id, "sizes": current},
            {"$set": {"sizes": updated, "total_stock": total_size_stock(updated), "updated_at": now()}},
        )
        if result.matched_count == 1:
            return True
        logger.info("Stock for product %s changed concurrently, retrying", product_id)
    logger.warning("Gave up adjusting stock for product %s size %s", product_id, size)
    return False


def _adjust(collection, product_id, size: Optional[str], delta: int) -> bool:
    product_id = _oid(product_id)
    if size:
        return _adjust_size(collection, product_id, size, delta)
    return _adjust_total(collection, product_id, delta)


def reserve(collection, product_id, size: Optional[str], quantity: int) -> bool:
    return _adjust(collection, product_id, size, -quantity)


def release(collection, product_id, size: Optional[str], quantity: int) -> bool:
    restored = _adjust(collection, product_id, size, quantity)
    if not restored:
        logger.error("Could not restore %s units of product %s size %s", quantity, product_id, size)
    return restored


def reserve_all(collection, lines: List[dict]) -> List[dict]:
    """Reserve every line or none of them.

    Lines carry `product_id`, `size`, `quantity` and `name`.
    Raises InsufficientStock after releasing whatever was already taken.
    """
    taken = []
    for line in lines:
        if not reserve(collection, line["product_id"], line.get("size"), line["quantity"]):
            release_all(collection, taken)
            raise InsufficientStock(line["name"])
        taken.append(line)
    return taken


def release_all(collection, lines: List[dict]):
    for line in lines:
        release(collection, line["product_id"], line.get("size"), line["quantity"])
