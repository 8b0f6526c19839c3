import logging
from typing import Any, Dict, List, Literal, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from database import db, now, parse_object_id, plain, serialize_doc
from inventory import has_stock
from schemas import Address, effective_price
from security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["account"])

CART_PRODUCT_FIELDS = {"name": 1, "price": 1, "sale_price": 1, "images": 1, "brand": 1, "total_stock": 1, "sizes": 1, "colors": 1}
WISHLIST_PRODUCT_FIELDS = {"name": 1, "price": 1, "sale_price": 1, "images": 1, "brand": 1, "ratings": 1}


def _user(current_user: dict) -> Dict[str, Any]:
    return db["user"].find_one({"_id": ObjectId(current_user["id"])})


def _set_user(current_user: dict, fields: Dict[str, Any]):
    db["user"].update_one({"_id": ObjectId(current_user["id"])}, {"$set": {**fields, "updated_at": now()}})


def _products_by_id(ids: List[str], projection: Dict[str, int]) -> Dict[str, Dict[str, Any]]:
    oids = [ObjectId(i) for i in ids if ObjectId.is_valid(i)]
    return {str(p["_id"]): p for p in db["product"].find({"_id": {"$in": oids}}, projection)}


def cart_view(cart: List[dict]) -> Dict[str, Any]:
    products = _products_by_id([line["product_id"] for line in cart], CART_PRODUCT_FIELDS)
    items = []
    total_items = 0
    total_price = 0.0
    for line in cart:
        product = products.get(line["product_id"])
        if not product:
            continue
        total_items += line["quantity"]
        total_price += effective_price(product) * line["quantity"]
        items.append({**serialize_doc(line), "product": serialize_doc(product)})
    return {
        "cart": items,
        "total_items": total_items,
        "total_price": round(total_price, 2),
        "item_count": len(items),
    }


# Cart
class CartItemInput(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)
    size: Optional[str] = None
    color: Optional[str] = None


class CartQuantity(BaseModel):
    quantity: int = Field(..., ge=1)


@router.get("/cart")
def get_cart(current_user: dict = Depends(get_current_user)):
    return cart_view(_user(current_user).get("cart", []))


@router.post("/cart")
def add_to_cart(item: CartItemInput, current_user: dict = Depends(get_current_user)):
    product = db["product"].find_one({"_id": parse_object_id(item.product_id, "product id")})
    if not product or not product.get("is_active", True):
        raise HTTPException(status_code=404, detail="Product not found")
    cart = _user(current_user).get("cart", [])
    # merge if same product, size and color
    existing = next(
        (line for line in cart if line["product_id"] == item.product_id and line.get("size") == item.size and line.get("color") == item.color),
        None,
    )
    wanted = item.quantity + (existing["quantity"] if existing else 0)
    if not has_stock(product, item.size, wanted):
        raise HTTPException(status_code=400, detail="Insufficient stock for selected size" if item.size else "Insufficient stock")
    if existing:
        existing["quantity"] = wanted
    else:
        cart.append({"_id": ObjectId(), **item.model_dump(), "added_at": now()})
    _set_user(current_user, {"cart": cart})
    return cart_view(cart)


@router.put("/cart/{item_id}")
def update_cart_item(item_id: str, data: CartQuantity, current_user: dict = Depends(get_current_user)):
    cart = _user(current_user).get("cart", [])
    line = next((line for line in cart if str(line["_id"]) == item_id), None)
    if line is None:
        raise HTTPException(status_code=404, detail="Cart item not found")
    product = db["product"].find_one({"_id": ObjectId(line["product_id"])})
    if not product or not has_stock(product, line.get("size"), data.quantity):
        raise HTTPException(status_code=400, detail="Insufficient stock")
    line["quantity"] = data.quantity
    _set_user(current_user, {"cart": cart})
    return cart_view(cart)


@router.delete("/cart/{item_id}")
def remove_cart_item(item_id: str, current_user: dict = Depends(get_current_user)):
    cart = [line for line in _user(current_user).get("cart", []) if str(line["_id"]) != item_id]
    _set_user(current_user, {"cart": cart})
    return cart_view(cart)


@router.delete("/cart")
def clear_cart(current_user: dict = Depends(get_current_user)):
    _set_user(current_user, {"cart": []})
    return {"ok": True}


# Wishlist
@router.get("/wishlist")
def get_wishlist(current_user: dict = Depends(get_current_user)):
    wishlist = _user(current_user).get("wishlist", [])
    products = _products_by_id(wishlist, WISHLIST_PRODUCT_FIELDS)
    return {"wishlist": [serialize_doc(products[pid]) for pid in wishlist if pid in products]}


@router.post("/wishlist/{product_id}")
def add_to_wishlist(product_id: str, current_user: dict = Depends(get_current_user)):
    if not db["product"].find_one({"_id": parse_object_id(product_id, "product id")}):
        raise HTTPException(status_code=404, detail="Product not found")
    wishlist = _user(current_user).get("wishlist", [])
    if product_id in wishlist:
        raise HTTPException(status_code=400, detail="Product already in wishlist")
    wishlist.append(product_id)
    _set_user(current_user, {"wishlist": wishlist})
    return {"ok": True, "wishlist": wishlist}


@router.delete("/wishlist/{product_id}")
def remove_from_wishlist(product_id: str, current_user: dict = Depends(get_current_user)):
    wishlist = [pid for pid in _user(current_user).get("wishlist", []) if pid != product_id]
    _set_user(current_user, {"wishlist": wishlist})
    return {"ok": True, "wishlist": wishlist}


# Addresses
class AddressUpdate(BaseModel):
    type: Optional[Literal["home", "work", "other"]] = None
    street: Optional[str] = Field(None, min_length=1)
    city: Optional[str] = Field(None, min_length=1)
    state: Optional[str] = Field(None, min_length=1)
    zip_code: Optional[str] = Field(None, min_length=1)
    country: Optional[str] = Field(None, min_length=1)
    is_default: Optional[bool] = None


def with_single_default(addresses: List[dict], default_id: Optional[ObjectId] = None) -> List[dict]:
    """Leave at most one default address.

    `default_id` wins when given; otherwise the last flagged address does.
    """
    if default_id is None:
        flagged = [a["_id"] for a in addresses if a.get("is_default")]
        default_id = flagged[-1] if flagged else None
    for address in addresses:
        address["is_default"] = address["_id"] == default_id
    return addresses


@router.get("/addresses")
def list_addresses(current_user: dict = Depends(get_current_user)):
    return {"addresses": plain(_user(current_user).get("addresses", []))}


@router.post("/addresses", status_code=201)
def add_address(data: Address, current_user: dict = Depends(get_current_user)):
    addresses = _user(current_user).get("addresses", [])
    address = {"_id": ObjectId(), **data.model_dump()}
    addresses.append(address)
    if data.is_default or len(addresses) == 1:
        addresses = with_single_default(addresses, address["_id"])
    _set_user(current_user, {"addresses": addresses})
    return {"addresses": plain(addresses)}


@router.put("/addresses/{address_id}")
def update_address(address_id: str, data: AddressUpdate, current_user: dict = Depends(get_current_user)):
    addresses = _user(current_user).get("addresses", [])
    address = next((a for a in addresses if str(a["_id"]) == address_id), None)
    if address is None:
        raise HTTPException(status_code=404, detail="Address not found")
    address.update(data.model_dump(exclude_unset=True, exclude_none=True))
    addresses = with_single_default(addresses, address["_id"] if data.is_default else None)
    _set_user(current_user, {"addresses": addresses})
    return {"addresses": plain(addresses)}


@router.delete("/addresses/{address_id}")
def delete_address(address_id: str, current_user: dict = Depends(get_current_user)):
    addresses = [a for a in _user(current_user).get("addresses", []) if str(a["_id"]) != address_id]
    _set_user(current_user, {"addresses": addresses})
    return {"addresses": plain(addresses)}
