"""
Database Schemas

Each Pydantic model represents a collection in the database.
Model name lowercased is the collection name:
- User -> "user"
- Product -> "product"
- Order -> "order"
- Client -> "client"
- Invoice -> "invoice"

Embedded models (addresses, sizes, reviews, order items...) live inside
their parent document.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

CATEGORIES = (
    "T-Shirts", "Hoodies", "Jackets", "Shorts", "Pants",
    "Shoes", "Accessories", "Sportswear", "Athleisure", "Swimwear",
)
ORDER_STATUSES = (
    "pending", "confirmed", "processing", "shipped", "out_for_delivery",
    "delivered", "cancelled", "returned", "refunded",
)
PAYMENT_METHODS = ("card", "upi", "netbanking", "cod")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded", "partial_refund")
INVOICE_STATUSES = ("Pending", "Paid", "Overdue", "Cancelled")

Category = Literal[CATEGORIES]
OrderStatus = Literal[ORDER_STATUSES]
PaymentMethod = Literal[PAYMENT_METHODS]
PaymentStatus = Literal[PAYMENT_STATUSES]
InvoiceStatus = Literal[INVOICE_STATUSES]


# -----------------------------
# Users
# -----------------------------

class Address(BaseModel):
    type: Literal["home", "work", "other"] = "home"
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = "India"
    is_default: bool = False


class User(BaseModel):
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password_hash: str = Field(..., description="BCrypt hashed password")
    phone: Optional[str] = Field(None, pattern=r"^[0-9]{10}$")
    role: Literal["user", "admin"] = "user"
    avatar: str = ""
    is_active: bool = True
    is_email_verified: bool = False
    cart: List[dict] = Field(default_factory=list, description="[{_id, product_id, quantity, size, color, added_at}]")
    wishlist: List[str] = Field(default_factory=list)
    addresses: List[dict] = Field(default_factory=list)
    last_login: Optional[datetime] = None


# -----------------------------
# Products
# -----------------------------

class ProductColor(BaseModel):
    name: Optional[str] = None
    hex: Optional[str] = None
    images: List[str] = Field(default_factory=list)


class ProductSize(BaseModel):
    size: str
    stock: int = Field(..., ge=0)


class Ratings(BaseModel):
    average: float = Field(0, ge=0, le=5)
    count: int = 0


class Dimensions(BaseModel):
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None


class Product(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=2000)
    price: float = Field(..., ge=0)
    sale_price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    discount: float = Field(0, ge=0, le=100)
    category: Category
    sub_category: str = "General"
    brand: str = Field(..., min_length=1)
    colors: List[ProductColor] = Field(default_factory=list)
    sizes: List[ProductSize] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    gender: Literal["Men", "Women", "Unisex", "Kids"] = "Unisex"
    age_group: Literal["Adult", "Teen", "Kid", "All Ages"] = "Adult"
    material: str = ""
    care_instructions: str = ""
    features: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    ratings: Ratings = Field(default_factory=Ratings)
    reviews: List[dict] = Field(default_factory=list)
    total_stock: int = Field(0, ge=0)
    low_stock_threshold: int = 10
    is_active: bool = True
    is_featured: bool = False
    is_on_sale: bool = False
    weight: float = 0
    dimensions: Optional[Dimensions] = None
    sku: str = Field(..., min_length=1)
    barcode: Optional[str] = None
    created_by: Optional[str] = None

    @model_validator(mode="after")
    def sum_size_stock(self):
        if self.sizes:
            self.total_stock = sum(s.stock for s in self.sizes)
        return self


def total_size_stock(sizes: List[dict]) -> int:
    return sum(int(s.get("stock", 0)) for s in sizes)


def effective_price(product: dict) -> float:
    sale_price = product.get("sale_price")
    if sale_price:
        return float(sale_price)
    return float(product.get("price", 0))


def stock_status(product: dict) -> str:
    total = product.get("total_stock", 0)
    if total <= 0:
        return "Out of Stock"
    if total <= product.get("low_stock_threshold", 10):
        return "Low Stock"
    return "In Stock"


# -----------------------------
# Orders
# -----------------------------

class OrderItem(BaseModel):
    product_id: str
    name: str
    price: float
    quantity: int = Field(..., ge=1)
    size: Optional[str] = None
    color: Optional[str] = None
    image: Optional[str] = None
    sku: Optional[str] = None


class ShippingAddress(BaseModel):
    full_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=1)
    address_line1: str = Field(..., min_length=1)
    address_line2: Optional[str] = None
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    pin_code: str = Field(..., min_length=1)
    country: str = "India"


class StatusEntry(BaseModel):
    status: OrderStatus
    timestamp: datetime
    note: Optional[str] = None
    updated_by: Optional[str] = None


class Order(BaseModel):
    user_id: str
    order_number: Optional[str] = None
    items: List[OrderItem]
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    payment_status: PaymentStatus = "pending"
    payment_details: Optional[dict] = None
    subtotal: float = Field(..., ge=0)
    tax: float = Field(0, ge=0)
    shipping_fee: float = Field(0, ge=0)
    discount: float = Field(0, ge=0)
    coupon_code: Optional[str] = None
    total: float = Field(..., ge=0)
    order_status: OrderStatus = "pending"
    order_status_history: List[StatusEntry] = Field(default_factory=list)
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    actual_delivery: Optional[datetime] = None
    customer_notes: Optional[str] = Field(None, max_length=500)
    return_reason: Optional[str] = None
    return_date: Optional[datetime] = None
    is_gift: bool = False
    gift_message: Optional[str] = Field(None, max_length=200)
    priority: Literal["low", "normal", "high", "urgent"] = "normal"
    source: Literal["website", "mobile_app", "admin", "phone"] = "website"


# -----------------------------
# Clients showcase
# -----------------------------

class Client(BaseModel):
    name: str = Field(..., min_length=1)
    program: str = Field(..., min_length=1)
    avatar: Optional[str] = None
    client_since: str = Field(..., min_length=1)
    status: Literal["active", "past"] = "active"
    photos: List[str] = Field(default_factory=list)
    created_by: Optional[str] = None


# -----------------------------
# Admin invoices
# -----------------------------

class InvoiceCustomer(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pin_code: Optional[str] = None
    phone: Optional[str] = None


class InvoiceItem(BaseModel):
    name: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)
    total: float = 0


class Invoice(BaseModel):
    invoice_number: str = Field(..., min_length=1)
    customer: InvoiceCustomer
    date_issued: str = Field(..., min_length=1)
    due_date: str = Field(..., min_length=1)
    items: List[InvoiceItem] = Field(..., min_length=1)
    subtotal: float = 0
    tax_percentage: float = Field(18, ge=0)
    tax: float = 0
    discount: float = Field(0, ge=0)
    grand_total: float = 0
    status: InvoiceStatus = "Pending"
    notes: str = ""
