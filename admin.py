import logging
import math
import re
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, EmailStr, Field
from pymongo.errors import DuplicateKeyError

from database import db, now, parse_object_id, serialize_doc
from orders import apply_status
from schemas import Category, OrderStatus, Product, ProductColor, ProductSize, total_size_stock
from security import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])

USER_SORTS = {
    "first_name": ("first_name", 1),
    "email": ("email", 1),
    "created_at": ("created_at", -1),
    "last_login": ("last_login", -1),
}
USER_SUMMARY = {"first_name": 1, "last_name": 1, "email": 1}


def _page(collection, query: Dict[str, Any], sort, page: int, limit: int, projection=None):
    total = db[collection].count_documents(query)
    cursor = db[collection].find(query, projection).sort(*sort).skip((page - 1) * limit).limit(limit)
    return list(cursor), {"total": total, "page": page, "pages": math.ceil(total / limit)}


def _with_customers(orders: List[dict]) -> List[dict]:
    ids = {o.get("user_id") for o in orders if ObjectId.is_valid(o.get("user_id") or "")}
    users = {str(u["_id"]): serialize_doc(u) for u in db["user"].find({"_id": {"$in": [ObjectId(i) for i in ids]}}, USER_SUMMARY)}
    return [{**serialize_doc(o), "user": users.get(o.get("user_id"))} for o in orders]


def _sum_total(match: Dict[str, Any]) -> float:
    rows = list(db["order"].aggregate([{"$match": match}, {"$group": {"_id": None, "total": {"$sum": "$total"}}}]))
    return round(rows[0]["total"], 2) if rows else 0


# Dashboard
@router.get("/dashboard")
def dashboard():
    today = now()
    start_of_month = today.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    start_of_year = start_of_month.replace(month=1)

    top_products = db["order"].aggregate([
        {"$match": {"payment_status": "paid"}},
        {"$unwind": "$items"},
        {"$group": {"_id": "$items.product_id", "name": {"$first": "$items.name"}, "total_sold": {"$sum": "$items.quantity"}}},
        {"$sort": {"total_sold": -1}},
        {"$limit": 5},
    ])
    status_stats = db["order"].aggregate([
        {"$group": {"_id": "$order_status", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}},
    ])
    monthly_sales = db["order"].aggregate([
        {"$match": {"created_at": {"$gte": start_of_year}, "payment_status": "paid"}},
        {"$group": {"_id": {"$month": "$created_at"}, "revenue": {"$sum": "$total"}, "orders": {"$sum": 1}}},
        {"$sort": {"_id": 1}},
    ])
    recent = list(db["order"].find().sort("created_at", -1).limit(10))
    low_stock = db["product"].find(
        {"is_active": True, "$expr": {"$lte": ["$total_stock", "$low_stock_threshold"]}},
        {"reviews": 0},
    ).sort("total_stock", 1).limit(10)

    return {
        "dashboard": {
            "total_products": db["product"].count_documents({"is_active": True}),
            "total_users": db["user"].count_documents({"role": "user"}),
            "total_orders": db["order"].count_documents({}),
            "monthly_orders": db["order"].count_documents({"created_at": {"$gte": start_of_month}}),
            "monthly_revenue": _sum_total({"created_at": {"$gte": start_of_month}, "payment_status": "paid"}),
            "yearly_revenue": _sum_total({"created_at": {"$gte": start_of_year}, "payment_status": "paid"}),
            "top_products": [{"product_id": r["_id"], "name": r["name"], "total_sold": r["total_sold"]} for r in top_products],
            "recent_orders": _with_customers(recent),
            "low_stock_products": [serialize_doc(p) for p in low_stock],
            "order_status_stats": [{"status": r["_id"], "count": r["count"]} for r in status_stats],
            "monthly_sales": [{"month": r["_id"], "revenue": round(r["revenue"], 2), "orders": r["orders"]} for r in monthly_sales],
        }
    }


@router.get("/stats")
def stats():
    return {
        "stats": {
            "total_products": db["product"].count_documents({"is_active": True}),
            "total_users": db["user"].count_documents({}),
            "total_orders": db["order"].count_documents({}),
            "pending_orders": db["order"].count_documents({"order_status": "pending"}),
        }
    }


# Products
class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    price: Optional[float] = Field(None, ge=0)
    sale_price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    discount: Optional[float] = Field(None, ge=0, le=100)
    category: Optional[Category] = None
    sub_category: Optional[str] = None
    brand: Optional[str] = Field(None, min_length=1)
    colors: Optional[List[ProductColor]] = None
    sizes: Optional[List[ProductSize]] = None
    images: Optional[List[str]] = None
    gender: Optional[Literal["Men", "Women", "Unisex", "Kids"]] = None
    age_group: Optional[Literal["Adult", "Teen", "Kid", "All Ages"]] = None
    material: Optional[str] = None
    care_instructions: Optional[str] = None
    features: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    total_stock: Optional[int] = Field(None, ge=0)
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    is_on_sale: Optional[bool] = None
    sku: Optional[str] = Field(None, min_length=1)
    barcode: Optional[str] = None


@router.get("/products")
def admin_products(
    search: Optional[str] = None,
    category: Optional[str] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    query: Dict[str, Any] = {}
    if search:
        pattern = re.escape(search)
        query["$or"] = [{field: {"$regex": pattern, "$options": "i"}} for field in ("name", "brand", "sku")]
    if category:
        query["category"] = category
    if is_active is not None:
        query["is_active"] = is_active
    products, meta = _page("product", query, ("created_at", -1), page, limit, {"reviews": 0})
    return {"products": [serialize_doc(p) for p in products], "count": len(products), **meta}


@router.post("/products", status_code=201)
def create_product(data: Product, admin: dict = Depends(require_admin)):
    if not data.images or not data.sizes or not data.colors:
        raise HTTPException(status_code=400, detail="At least one image, size and color are required")
    if db["product"].find_one({"sku": data.sku}):
        raise HTTPException(status_code=400, detail="Product with this SKU already exists")
    doc = {**data.model_dump(), "created_by": admin["id"], "created_at": now(), "updated_at": now()}
    try:
        product_id = db["product"].insert_one(doc).inserted_id
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Product with this SKU already exists")
    logger.info("Product %s (%s) created by %s", data.name, data.sku, admin.get("email"))
    return {"product": serialize_doc(db["product"].find_one({"_id": product_id}))}


@router.put("/products/{product_id}")
def update_product(product_id: str, data: ProductUpdate):
    obj_id = parse_object_id(product_id, "product id")
    product = db["product"].find_one({"_id": obj_id})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    update_dict = data.model_dump(exclude_unset=True)
    if not update_dict:
        raise HTTPException(status_code=400, detail="No fields to update")
    if "sku" in update_dict and db["product"].find_one({"sku": update_dict["sku"], "_id": {"$ne": obj_id}}):
        raise HTTPException(status_code=400, detail="Product with this SKU already exists")
    sizes = update_dict["sizes"] if "sizes" in update_dict else product.get("sizes")
    if "total_stock" in update_dict and sizes:
        raise HTTPException(status_code=400, detail="Stock of a sized product is set per size")
    if update_dict.get("sizes"):
        update_dict["total_stock"] = total_size_stock(update_dict["sizes"])
    update_dict["updated_at"] = now()
    db["product"].update_one({"_id": obj_id}, {"$set": update_dict})
    return {"product": serialize_doc(db["product"].find_one({"_id": obj_id}))}


@router.delete("/products/{product_id}")
def delete_product(product_id: str, admin: dict = Depends(require_admin)):
    obj_id = parse_object_id(product_id, "product id")
    res = db["product"].update_one({"_id": obj_id}, {"$set": {"is_active": False, "updated_at": now()}})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    logger.info("Product %s deactivated by %s", product_id, admin.get("email"))
    return {"ok": True}


# Orders
class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    note: Optional[str] = None


@router.get("/orders")
def admin_orders(
    status: Optional[OrderStatus] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    query: Dict[str, Any] = {}
    if status:
        query["order_status"] = status
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"order_number": {"$regex": pattern, "$options": "i"}},
            {"shipping_address.email": {"$regex": pattern, "$options": "i"}},
            {"shipping_address.phone": {"$regex": pattern, "$options": "i"}},
        ]
    orders, meta = _page("order", query, ("created_at", -1), page, limit)
    return {"orders": _with_customers(orders), "count": len(orders), **meta}


@router.put("/orders/{order_id}/status")
def update_order_status(order_id: str, data: OrderStatusUpdate, admin: dict = Depends(require_admin)):
    order = db["order"].find_one({"_id": parse_object_id(order_id, "order id")})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    extra = {k: v for k, v in data.model_dump(include={"tracking_number", "carrier", "estimated_delivery"}).items() if v}
    if data.status == "delivered":
        extra["actual_delivery"] = now()
    updated = apply_status(order, data.status, data.note, admin["id"], extra)
    return {"order": serialize_doc(updated)}


# Users
class AdminUserUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(None, min_length=2, max_length=50)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, pattern=r"^[0-9]{10}$")
    avatar: Optional[str] = None
    is_active: Optional[bool] = None
    is_email_verified: Optional[bool] = None


class RoleUpdate(BaseModel):
    role: Literal["user", "admin"]


def _load_user(user_id: str) -> Dict[str, Any]:
    user = db["user"].find_one({"_id": parse_object_id(user_id, "user id")})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _set_user(user: dict, fields: Dict[str, Any]) -> Dict[str, Any]:
    db["user"].update_one({"_id": user["_id"]}, {"$set": {**fields, "updated_at": now()}})
    return {"user": serialize_doc(db["user"].find_one({"_id": user["_id"]}))}


@router.get("/users")
def admin_users(
    search: Optional[str] = None,
    role: Optional[Literal["user", "admin"]] = None,
    is_active: Optional[bool] = None,
    sort_by: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    query: Dict[str, Any] = {}
    if search:
        pattern = re.escape(search)
        query["$or"] = [{field: {"$regex": pattern, "$options": "i"}} for field in ("first_name", "last_name", "email")]
    if role:
        query["role"] = role
    if is_active is not None:
        query["is_active"] = is_active
    sort = USER_SORTS.get(sort_by or "", ("created_at", -1))
    users, meta = _page("user", query, sort, page, limit, {"password_hash": 0})
    return {"users": [serialize_doc(u) for u in users], "count": len(users), **meta}


@router.put("/users/{user_id}")
def update_user(user_id: str, data: AdminUserUpdate):
    user = _load_user(user_id)
    fields = data.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")
    if fields.get("is_active") is False and user.get("role") == "admin":
        raise HTTPException(status_code=400, detail="Cannot deactivate admin users")
    if fields.get("email"):
        fields["email"] = fields["email"].lower()
        if db["user"].find_one({"email": fields["email"], "_id": {"$ne": user["_id"]}}):
            raise HTTPException(status_code=400, detail="Email already in use")
    return _set_user(user, fields)


@router.put("/users/{user_id}/role")
def change_role(user_id: str, data: RoleUpdate, admin: dict = Depends(require_admin)):
    user = _load_user(user_id)
    logger.info("Role of %s set to %s by %s", user.get("email"), data.role, admin.get("email"))
    return _set_user(user, {"role": data.role})


@router.put("/users/{user_id}/activate")
def activate_user(user_id: str):
    return _set_user(_load_user(user_id), {"is_active": True})


@router.put("/users/{user_id}/deactivate")
def deactivate_user(user_id: str, admin: dict = Depends(require_admin)):
    user = _load_user(user_id)
    if user.get("role") == "admin":
        logger.warning("%s tried to deactivate admin %s", admin.get("email"), user.get("email"))
        raise HTTPException(status_code=400, detail="Cannot deactivate admin users")
    return _set_user(user, {"is_active": False})


@router.delete("/users/{user_id}")
def delete_user(user_id: str, admin: dict = Depends(require_admin)):
    user = _load_user(user_id)
    if user.get("role") == "admin":
        logger.warning("%s tried to delete admin %s", admin.get("email"), user.get("email"))
        raise HTTPException(status_code=400, detail="Cannot delete admin users")
    db["user"].delete_one({"_id": user["_id"]})
    logger.info("User %s deleted by %s", user.get("email"), admin.get("email"))
    return {"ok": True}
