import logging
import math
import re
from datetime import datetime
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from database import db, now, parse_object_id, serialize_doc
from schemas import stock_status
from security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])

SORT_OPTIONS = {
    "price": ("price", 1),
    "price_low": ("price", 1),
    "-price": ("price", -1),
    "price_high": ("price", -1),
    "rating": ("ratings.average", -1),
    "name": ("name", 1),
    "name_asc": ("name", 1),
    "-name": ("name", -1),
    "name_desc": ("name", -1),
    "createdAt": ("created_at", -1),
    "newest": ("created_at", -1),
    "-createdAt": ("created_at", 1),
    "oldest": ("created_at", 1),
}


def present(doc: Dict[str, Any]) -> Dict[str, Any]:
    product = serialize_doc(doc)
    product["stock_status"] = stock_status(product)
    return product


def load_active_product(product_id: str) -> Dict[str, Any]:
    product = db["product"].find_one({"_id": parse_object_id(product_id, "product id")})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    if not product.get("is_active", True):
        raise HTTPException(status_code=404, detail="Product is not available")
    return product


def recalculate_ratings(reviews) -> Dict[str, Any]:
    if not reviews:
        return {"average": 0, "count": 0}
    average = sum(r["rating"] for r in reviews) / len(reviews)
    return {"average": round(average, 1), "count": len(reviews)}


@router.get("")
def list_products(
    search: Optional[str] = None,
    category: Optional[str] = None,
    brand: Optional[str] = None,
    gender: Optional[str] = None,
    age_group: Optional[str] = None,
    sub_category: Optional[str] = None,
    size: Optional[str] = None,
    color: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    in_stock: Optional[bool] = None,
    featured: Optional[bool] = None,
    on_sale: Optional[bool] = None,
    created_after: Optional[datetime] = None,
    sort: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
):
    query: Dict[str, Any] = {"is_active": True}
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
            {"brand": {"$regex": pattern, "$options": "i"}},
            {"tags": {"$regex": pattern, "$options": "i"}},
        ]
    for field, value in (
        ("category", category),
        ("brand", brand),
        ("gender", gender),
        ("age_group", age_group),
        ("sub_category", sub_category),
    ):
        if value:
            query[field] = value
    if size:
        query["sizes.size"] = size
    if color:
        query["colors.name"] = {"$regex": re.escape(color), "$options": "i"}
    price_filter: Dict[str, Any] = {}
    if min_price is not None:
        price_filter["$gte"] = float(min_price)
    if max_price is not None:
        price_filter["$lte"] = float(max_price)
    if price_filter:
        query["price"] = price_filter
    if min_rating is not None:
        query["ratings.average"] = {"$gte": min_rating}
    if in_stock:
        query["total_stock"] = {"$gt": 0}
    if featured:
        query["is_featured"] = True
    if on_sale:
        query["is_on_sale"] = True
    if created_after:
        query["created_at"] = {"$gte": created_after}

    sort_field, direction = SORT_OPTIONS.get(sort or "", ("created_at", -1))
    collection = db["product"]
    total = collection.count_documents(query)
    skip = (page - 1) * limit
    cursor = collection.find(query, {"reviews": 0}).sort(sort_field, direction).skip(skip).limit(limit)
    products = [present(d) for d in cursor]
    return {
        "products": products,
        "count": len(products),
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit),
    }


@router.get("/featured")
def featured_products(limit: int = Query(8, ge=1, le=50)):
    cursor = db["product"].find({"is_active": True, "is_featured": True}, {"reviews": 0}).sort("created_at", -1).limit(limit)
    products = [present(d) for d in cursor]
    return {"products": products, "count": len(products)}


def _facet(field: str):
    pipeline = [
        {"$match": {"is_active": True}},
        {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
        {"$sort": {"_id": 1}},
    ]
    return [{"name": row["_id"], "count": row["count"]} for row in db["product"].aggregate(pipeline)]


@router.get("/categories")
def categories():
    return {"categories": _facet("category")}


@router.get("/brands")
def brands():
    return {"brands": _facet("brand")}


@router.get("/{product_id}")
def get_product(product_id: str):
    return present(load_active_product(product_id))


# Reviews
class ReviewInput(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1, max_length=500)
    title: Optional[str] = Field(None, max_length=100)


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, min_length=1, max_length=500)
    title: Optional[str] = Field(None, max_length=100)


def _save_reviews(product_id: ObjectId, reviews):
    db["product"].update_one(
        {"_id": product_id},
        {"$set": {"reviews": reviews, "ratings": recalculate_ratings(reviews), "updated_at": now()}},
    )


def _find_review(product: dict, review_id: str):
    for review in product.get("reviews", []):
        if str(review.get("_id")) == review_id:
            return review
    raise HTTPException(status_code=404, detail="Review not found")


@router.post("/{product_id}/reviews", status_code=201)
def add_review(product_id: str, data: ReviewInput, current_user: dict = Depends(get_current_user)):
    product = load_active_product(product_id)
    reviews = product.get("reviews", [])
    if any(r.get("user_id") == current_user["id"] for r in reviews):
        raise HTTPException(status_code=400, detail="You have already reviewed this product")
    review = {
        "_id": ObjectId(),
        "user_id": current_user["id"],
        "user_name": f"{current_user.get('first_name', '')} {current_user.get('last_name', '')}".strip(),
        "rating": data.rating,
        "comment": data.comment.strip(),
        "title": data.title,
        "helpful": 0,
        "created_at": now(),
    }
    reviews.append(review)
    _save_reviews(product["_id"], reviews)
    return {"review": serialize_doc(review), "ratings": recalculate_ratings(reviews)}


@router.put("/{product_id}/reviews/{review_id}")
def update_review(product_id: str, review_id: str, data: ReviewUpdate, current_user: dict = Depends(get_current_user)):
    product = load_active_product(product_id)
    review = _find_review(product, review_id)
    if review.get("user_id") != current_user["id"]:
        raise HTTPException(status_code=403, detail="Not authorized to update this review")
    review.update(data.model_dump(exclude_unset=True, exclude_none=True))
    _save_reviews(product["_id"], product["reviews"])
    return {"review": serialize_doc(review)}


@router.delete("/{product_id}/reviews/{review_id}")
def delete_review(product_id: str, review_id: str, current_user: dict = Depends(get_current_user)):
    product_oid = parse_object_id(product_id, "product id")
    product = db["product"].find_one({"_id": product_oid})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    review = _find_review(product, review_id)
    if review.get("user_id") != current_user["id"] and current_user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Not authorized to delete this review")
    remaining = [r for r in product.get("reviews", []) if r is not review]
    _save_reviews(product_oid, remaining)
    return {"ok": True}
