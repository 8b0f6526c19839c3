import logging
import math
import re
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field
from pymongo.errors import DuplicateKeyError

from database import db, now, parse_object_id, serialize_doc
from invoices import admin_invoice_context, render_invoice
from pricing import invoice_totals
from schemas import Invoice, InvoiceCustomer, InvoiceItem, InvoiceStatus
from security import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/invoices", tags=["invoices"], dependencies=[Depends(require_admin)])


class InvoiceUpdate(BaseModel):
    customer: Optional[InvoiceCustomer] = None
    date_issued: Optional[str] = Field(None, min_length=1)
    due_date: Optional[str] = Field(None, min_length=1)
    items: Optional[List[InvoiceItem]] = Field(None, min_length=1)
    tax_percentage: Optional[float] = Field(None, ge=0)
    discount: Optional[float] = Field(None, ge=0)
    status: Optional[InvoiceStatus] = None
    notes: Optional[str] = None


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus


def _load(invoice_id: str) -> Dict[str, Any]:
    invoice = db["invoice"].find_one({"_id": parse_object_id(invoice_id, "invoice id")})
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


def _priced(fields: Dict[str, Any], current: Dict[str, Any]) -> Dict[str, Any]:
    """Recompute item totals, subtotal, tax and grand total."""
    merged = {**current, **fields}
    return {**fields, **invoice_totals(merged["items"], merged["tax_percentage"], merged["discount"])}


@router.get("")
def list_invoices(
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    query: Dict[str, Any] = {}
    if status and status.lower() != "all":
        query["status"] = {"$regex": f"^{re.escape(status)}$", "$options": "i"}
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"customer.name": {"$regex": pattern, "$options": "i"}},
            {"invoice_number": {"$regex": pattern, "$options": "i"}},
        ]
    total = db["invoice"].count_documents(query)
    skip = (page - 1) * limit
    cursor = db["invoice"].find(query).sort("created_at", -1).skip(skip).limit(limit)
    return {
        "invoices": [serialize_doc(i) for i in cursor],
        "pagination": {
            "current_page": page,
            "total_pages": math.ceil(total / limit),
            "total_invoices": total,
            "has_next": skip + limit < total,
            "has_prev": skip > 0,
        },
    }


@router.get("/{invoice_id}")
def get_invoice(invoice_id: str):
    return {"invoice": serialize_doc(_load(invoice_id))}


@router.post("", status_code=201)
def create_invoice(data: Invoice, admin: dict = Depends(require_admin)):
    if db["invoice"].find_one({"invoice_number": data.invoice_number}):
        raise HTTPException(status_code=400, detail="Invoice number already exists")
    doc = _priced(data.model_dump(), {})
    doc.update({"created_by": admin["id"], "created_at": now(), "updated_at": now()})
    try:
        invoice_id = db["invoice"].insert_one(doc).inserted_id
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Invoice number already exists")
    logger.info("Invoice %s issued to %s by %s", data.invoice_number, data.customer.name, admin.get("email"))
    return {"invoice": serialize_doc(db["invoice"].find_one({"_id": invoice_id}))}


@router.put("/{invoice_id}")
def update_invoice(invoice_id: str, data: InvoiceUpdate):
    invoice = _load(invoice_id)
    fields = data.model_dump(exclude_unset=True, exclude_none=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")
    if {"items", "tax_percentage", "discount"} & fields.keys():
        fields = _priced(fields, invoice)
    fields["updated_at"] = now()
    db["invoice"].update_one({"_id": invoice["_id"]}, {"$set": fields})
    return {"invoice": serialize_doc(db["invoice"].find_one({"_id": invoice["_id"]}))}


@router.delete("/{invoice_id}")
def delete_invoice(invoice_id: str):
    invoice = _load(invoice_id)
    db["invoice"].delete_one({"_id": invoice["_id"]})
    logger.info("Invoice %s deleted", invoice.get("invoice_number"))
    return {"ok": True}


@router.patch("/{invoice_id}/status")
def update_invoice_status(invoice_id: str, data: InvoiceStatusUpdate):
    invoice = _load(invoice_id)
    db["invoice"].update_one({"_id": invoice["_id"]}, {"$set": {"status": data.status, "updated_at": now()}})
    return {"invoice": serialize_doc(db["invoice"].find_one({"_id": invoice["_id"]}))}


@router.get("/{invoice_id}/html", response_class=HTMLResponse)
def invoice_html(invoice_id: str):
    return HTMLResponse(render_invoice(admin_invoice_context(_load(invoice_id))))
