import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from pymongo.errors import DuplicateKeyError

import config
from database import as_utc, db, now, parse_object_id, serialize_doc
from inventory import InsufficientStock, has_stock, release_all, reserve_all
from invoices import order_context, render_invoice
from pricing import order_totals
from schemas import Order, PaymentMethod, ShippingAddress, effective_price
from security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])

NOT_CANCELLABLE = ("shipped", "out_for_delivery", "delivered", "cancelled", "returned", "refunded")
ORDER_NUMBER_ATTEMPTS = 5


# Order models
class OrderLineInput(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    size: Optional[str] = None
    color: Optional[str] = None


class CreateOrderPayload(BaseModel):
    items: List[OrderLineInput] = Field(..., min_length=1)
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    payment_details: Optional[dict] = None
    coupon_code: Optional[str] = None
    customer_notes: Optional[str] = Field(None, max_length=500)
    is_gift: bool = False
    gift_message: Optional[str] = Field(None, max_length=200)


class ReturnRequest(BaseModel):
    reason: str = Field(..., min_length=1)


# Helpers

def order_prefix(when: datetime) -> str:
    return f"{config.ORDER_NUMBER_PREFIX}{when:%y%m%d}"


def next_order_number(collection, when: datetime) -> str:
    """CS + yymmdd + a daily sequence, zero-padded to at least 4 digits."""
    prefix = order_prefix(when)
    latest = collection.find_one(
        {"order_number": {"$regex": f"^{prefix}"}},
        sort=[("order_sequence", -1), ("order_number", -1)],
    )
    sequence = 1
    if latest:
        sequence = int(latest["order_number"][len(prefix):]) + 1
    return f"{prefix}{sequence:04d}"


def insert_order(doc: Dict[str, Any]) -> ObjectId:
    for _ in range(ORDER_NUMBER_ATTEMPTS):
        doc["order_number"] = next_order_number(db["order"], doc["created_at"])
        doc["order_sequence"] = int(doc["order_number"][len(order_prefix(doc["created_at"])):])
        try:
            return db["order"].insert_one(doc).inserted_id
        except DuplicateKeyError:
            doc.pop("_id", None)
            logger.info("Order number %s taken, regenerating", doc["order_number"])
    raise HTTPException(status_code=503, detail="Could not allocate an order number, please retry")


def status_entry(status: str, note: Optional[str] = None, updated_by: Optional[str] = None) -> Dict[str, Any]:
    return {"status": status, "timestamp": now(), "note": note, "updated_by": updated_by}


def apply_status(order: Dict[str, Any], status: str, note: Optional[str], updated_by: Optional[str], extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Move an order to `status`, guarded on the status it was read with.

    Stock comes back the first time an order enters `cancelled`; the
    `stock_restored` flag keeps a later re-cancel from releasing it again.
    """
    fields = {**(extra or {}), "order_status": status, "updated_at": now()}
    release = status == "cancelled" and order.get("order_status") != "cancelled" and not order.get("stock_restored")
    guard = {"_id": order["_id"], "order_status": order.get("order_status")}
    if release:
        fields["stock_restored"] = True
        guard["stock_restored"] = {"$ne": True}
    result = db["order"].update_one(
        guard,
        {"$set": fields, "$push": {"order_status_history": status_entry(status, note, updated_by)}},
    )
    if result.matched_count == 0:
        raise HTTPException(status_code=409, detail="Order was updated by someone else, please retry")
    if release:
        release_all(db["product"], order.get("items", []))
    logger.info("Order %s moved %s -> %s", order.get("order_number"), order.get("order_status"), status)
    return db["order"].find_one({"_id": order["_id"]})


def load_order(order_id: str, current_user: dict, action: str = "view") -> Dict[str, Any]:
    order = db["order"].find_one({"_id": parse_object_id(order_id, "order id")})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if order.get("user_id") != current_user["id"]:
        raise HTTPException(status_code=403, detail=f"Not authorized to {action} this order")
    return order


# Routes
@router.post("", status_code=201)
def create_order(payload: CreateOrderPayload, current_user: dict = Depends(get_current_user)):
    lines = []
    for item in payload.items:
        product = db["product"].find_one({"_id": parse_object_id(item.product_id, "product id")})
        if not product or not product.get("is_active", True):
            raise HTTPException(status_code=404, detail=f"Product not found: {item.product_id}")
        if product.get("sizes") and not item.size:
            raise HTTPException(status_code=400, detail=f"Please select a size for {product['name']}")
        if not has_stock(product, item.size, item.quantity):
            raise HTTPException(status_code=400, detail=f"Insufficient stock for {product['name']}")
        images = product.get("images") or [None]
        lines.append({
            "product_id": str(product["_id"]),
            "name": product["name"],
            "price": effective_price(product),
            "quantity": item.quantity,
            "size": item.size,
            "color": item.color,
            "image": images[0],
            "sku": product.get("sku"),
        })

    totals = order_totals(lines, payload.coupon_code)

    try:
        reserve_all(db["product"], lines)
    except InsufficientStock as exc:
        logger.warning("Order by %s refused: %s", current_user.get("email"), exc)
        raise HTTPException(status_code=400, detail=str(exc))

    order = Order(
        user_id=current_user["id"],
        items=lines,
        shipping_address=payload.shipping_address,
        payment_method=payload.payment_method,
        payment_details=payload.payment_details,
        coupon_code=payload.coupon_code.strip() if payload.coupon_code else None,
        order_status_history=[status_entry("pending", "Order placed", current_user["id"])],
        customer_notes=payload.customer_notes,
        is_gift=payload.is_gift,
        gift_message=payload.gift_message,
        **totals,
    )
    created = now()
    doc = {**order.model_dump(), "created_at": created, "updated_at": created}
    try:
        order_id = insert_order(doc)
    except Exception:
        release_all(db["product"], lines)
        raise

    db["user"].update_one({"_id": ObjectId(current_user["id"])}, {"$set": {"cart": [], "updated_at": now()}})
    logger.info("Order %s placed by %s, total %.2f", doc["order_number"], current_user.get("email"), totals["total"])
    return {"order": serialize_doc(db["order"].find_one({"_id": order_id}))}


@router.get("")
def list_orders(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100), current_user: dict = Depends(get_current_user)):
    query = {"user_id": current_user["id"]}
    total = db["order"].count_documents(query)
    cursor = db["order"].find(query).sort("created_at", -1).skip((page - 1) * limit).limit(limit)
    orders = [serialize_doc(o) for o in cursor]
    return {"orders": orders, "count": len(orders), "total": total, "page": page, "pages": math.ceil(total / limit)}


@router.get("/{order_id}")
def get_order(order_id: str, current_user: dict = Depends(get_current_user)):
    return {"order": serialize_doc(load_order(order_id, current_user))}


@router.put("/{order_id}/cancel")
def cancel_order(order_id: str, current_user: dict = Depends(get_current_user)):
    order = load_order(order_id, current_user, "cancel")
    if order.get("order_status") in NOT_CANCELLABLE:
        raise HTTPException(status_code=400, detail="Order cannot be cancelled")
    updated = apply_status(order, "cancelled", "Cancelled by customer", current_user["id"])
    return {"order": serialize_doc(updated)}


@router.post("/{order_id}/return")
def return_order(order_id: str, data: ReturnRequest, current_user: dict = Depends(get_current_user)):
    order = load_order(order_id, current_user, "return")
    if order.get("order_status") != "delivered":
        raise HTTPException(status_code=400, detail="Only delivered orders can be returned")
    delivered_at = as_utc(order.get("actual_delivery"))
    if delivered_at is None or now() > delivered_at + timedelta(days=config.RETURN_WINDOW_DAYS):
        raise HTTPException(status_code=400, detail="Return period has expired")
    updated = apply_status(
        order,
        "returned",
        f"Return requested: {data.reason}",
        current_user["id"],
        {"return_reason": data.reason, "return_date": now()},
    )
    return {"order": serialize_doc(updated)}


@router.get("/{order_id}/invoice")
def order_invoice(order_id: str, current_user: dict = Depends(get_current_user)):
    order = load_order(order_id, current_user)
    return {"html": render_invoice(order_context(order)), "order_number": order.get("order_number") or "N/A"}
