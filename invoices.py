"""
Invoice HTML

One template serves both customer order invoices and admin-issued invoices;
`order_context` and `admin_invoice_context` map each document onto it.
Values are autoescaped, so customer-entered names and addresses are safe to
embed.
"""
from datetime import datetime
from typing import Any, Dict

from jinja2 import Environment, select_autoescape

import config
from database import now

INVOICE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <title>Invoice - {{ number }}</title>
  <style>
    * { margin: 0; padding: 0; box-sizing: border-box; }
    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.5; color: #1d1d1f; background: #f8faff; font-size: 14px; padding: 40px 20px; }
    .invoice-container { max-width: 800px; margin: 0 auto; background: #ffffff; border-radius: 12px; overflow: hidden; box-shadow: 0 4px 25px rgba(59, 130, 246, 0.08); border-top: 4px solid #3b82f6; }
    .invoice-header { padding: 50px 50px 40px 50px; border-bottom: 1px solid #f0f2f5; display: flex; justify-content: space-between; align-items: center; }
    .company-name { font-size: 26px; font-weight: 700; }
    .company-tagline { font-size: 14px; color: #6b7280; }
    .invoice-title { font-size: 36px; font-weight: 800; text-align: right; }
    .invoice-number { font-size: 16px; color: #6b7280; font-weight: 600; text-align: right; }
    .invoice-content { padding: 40px 50px; }
    .invoice-details { display: flex; justify-content: space-between; gap: 40px; margin-bottom: 45px; }
    .section-title { font-size: 12px; font-weight: 700; color: #6b7280; text-transform: uppercase; letter-spacing: 1px; margin-bottom: 20px; padding-bottom: 8px; border-bottom: 2px solid #f0f2f5; }
    .name { font-weight: 600; font-size: 16px; margin-bottom: 4px; }
    .address { color: #86868b; }
    .detail-row { display: flex; justify-content: space-between; gap: 16px; margin-bottom: 12px; }
    .detail-label { color: #6b7280; }
    .detail-value { font-weight: 600; }
    .status-badge { display: inline-block; padding: 4px 12px; border-radius: 20px; font-size: 12px; font-weight: 600; text-transform: uppercase; }
    .status-delivered, .status-paid { background: #dcfce7; color: #166534; }
    .status-shipped { background: #dbeafe; color: #1d4ed8; }
    .status-processing { background: #fef3c7; color: #92400e; }
    .status-pending, .status-overdue { background: #fee2e2; color: #dc2626; }
    .items-table { width: 100%; border-collapse: collapse; margin-top: 20px; }
    .items-table th { padding: 16px 0; text-align: left; font-size: 13px; color: #86868b; text-transform: uppercase; border-bottom: 1px solid #f5f5f7; }
    .items-table td { padding: 20px 0; border-bottom: 1px solid #f5f5f7; vertical-align: top; }
    .product-name { font-weight: 600; }
    .product-details { font-size: 13px; color: #86868b; }
    .quantity { text-align: center; font-weight: 600; }
    .price { text-align: right; font-weight: 600; }
    .total-rows { max-width: 300px; margin: 30px 0 0 auto; }
    .total-row { display: flex; justify-content: space-between; padding: 8px 0; }
    .total-row .label { color: #86868b; }
    .total-row.final { border-top: 1px solid #f5f5f7; margin-top: 12px; padding-top: 16px; font-size: 18px; font-weight: 700; }
    .notes { margin-top: 30px; white-space: pre-line; color: #6b7280; }
    .footer { padding: 40px 60px; border-top: 1px solid #f5f5f7; text-align: center; color: #86868b; font-size: 13px; }
    .footer-title { font-size: 16px; font-weight: 600; color: #1d1d1f; margin-bottom: 8px; }
    .legal-info { margin-top: 20px; font-size: 11px; }
    @media print { body { padding: 0; } .invoice-container { box-shadow: none; } }
  </style>
</head>
<body>
  <div class="invoice-container">
    <div class="invoice-header">
      <div>
        <div class="company-name">{{ company.name }}</div>
        <div class="company-tagline">{{ company.tagline }}</div>
      </div>
      <div>
        <div class="invoice-title">Invoice</div>
        <div class="invoice-number">#{{ number }}</div>
      </div>
    </div>
    <div class="invoice-content">
      <div class="invoice-details">
        <div>
          <div class="section-title">Bill To</div>
          <div class="name">{{ bill_to.name }}</div>
          {% for line in bill_to.lines %}<div class="address">{{ line }}</div>
          {% endfor %}
        </div>
        <div>
          <div class="section-title">Invoice Details</div>
          {% for label, value in details %}<div class="detail-row"><span class="detail-label">{{ label }}</span><span class="detail-value">{{ value }}</span></div>
          {% endfor %}
          <div class="detail-row"><span class="detail-label">Status</span><span class="status-badge status-{{ status_class }}">{{ status_label }}</span></div>
        </div>
      </div>
      <div class="section-title">Items</div>
      <table class="items-table">
        <thead><tr><th>Product</th><th>Qty</th><th>Price</th></tr></thead>
        <tbody>
          {% for item in items %}<tr>
            <td><div class="product-name">{{ item.name }}</div>{% if item.details %}<div class="product-details">{{ item.details }}</div>{% endif %}</td>
            <td class="quantity">{{ item.quantity }}</td>
            <td class="price">{{ item.amount|inr }}</td>
          </tr>
          {% endfor %}
        </tbody>
      </table>
      <div class="total-rows">
        <div class="total-row"><span class="label">Subtotal</span><span class="amount">{{ subtotal|inr }}</span></div>
        {% if shipping_fee is not none %}<div class="total-row"><span class="label">Shipping</span><span class="amount">{% if shipping_fee == 0 %}Free{% else %}{{ shipping_fee|inr }}{% endif %}</span></div>{% endif %}
        <div class="total-row"><span class="label">{{ tax_label }}</span><span class="amount">{{ tax|inr }}</span></div>
        {% if discount > 0 %}<div class="total-row"><span class="label">Discount</span><span class="amount">-{{ discount|inr }}</span></div>{% endif %}
        <div class="total-row final"><span class="label">Total</span><span class="amount">{{ total|inr }}</span></div>
      </div>
      {% if notes %}<div class="notes">{{ notes }}</div>{% endif %}
    </div>
    <div class="footer">
      <div class="footer-title">Thank you for your purchase</div>
      <div>{{ company.email }} &middot; {{ company.phone }} &middot; {{ company.website }}</div>
      <div class="legal-info">{{ company.address }}<br>GST: {{ company.gst }}</div>
    </div>
  </div>
</body>
</html>
"""


def inr(amount) -> str:
    return "₹{:.2f}".format(float(amount or 0))


_env = Environment(autoescape=select_autoescape(default_for_string=True, default=True))
_env.filters["inr"] = inr
_template = _env.from_string(INVOICE_TEMPLATE)

COMPANY = {
    "name": config.COMPANY_NAME,
    "tagline": config.COMPANY_TAGLINE,
    "email": config.COMPANY_EMAIL,
    "phone": config.COMPANY_PHONE,
    "website": config.COMPANY_WEBSITE,
    "address": config.COMPANY_ADDRESS,
    "gst": config.COMPANY_GST,
}


def format_date(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y")
    return str(value) if value else "N/A"


def order_context(order: Dict[str, Any]) -> Dict[str, Any]:
    address = order.get("shipping_address") or {}
    lines = [address.get("address_line1"), address.get("address_line2")]
    lines.append("{}, {} {}".format(address.get("city", ""), address.get("state", ""), address.get("pin_code", "")))
    lines += [address.get("country"), address.get("phone"), address.get("email")]
    status = order.get("order_status", "pending")
    return {
        "number": order.get("order_number") or "N/A",
        "bill_to": {"name": address.get("full_name", ""), "lines": [line for line in lines if line]},
        "details": [
            ("Order Date", format_date(order.get("created_at"))),
            ("Invoice Date", format_date(now())),
            ("Payment Method", (order.get("payment_method") or "").capitalize()),
        ],
        "status_class": status.replace("_", "-"),
        "status_label": status.replace("_", " ").upper(),
        "items": [
            {
                "name": item.get("name"),
                "details": " • ".join(v for v in (item.get("size"), item.get("color")) if v),
                "quantity": item.get("quantity"),
                "amount": item.get("price", 0) * item.get("quantity", 0),
            }
            for item in order.get("items", [])
        ],
        "subtotal": order.get("subtotal", 0),
        "shipping_fee": order.get("shipping_fee", 0),
        "tax_label": "Tax (GST {:g}%)".format(config.TAX_RATE * 100),
        "tax": order.get("tax", 0),
        "discount": order.get("discount", 0),
        "total": order.get("total", 0),
        "notes": None,
    }


def admin_invoice_context(invoice: Dict[str, Any]) -> Dict[str, Any]:
    customer = invoice.get("customer") or {}
    place = " ".join(v for v in (customer.get("city"), customer.get("state"), customer.get("pin_code")) if v)
    lines = [customer.get("address"), place, customer.get("phone"), customer.get("email")]
    status = invoice.get("status", "Pending")
    return {
        "number": invoice.get("invoice_number"),
        "bill_to": {"name": customer.get("name", ""), "lines": [line for line in lines if line]},
        "details": [
            ("Date Issued", format_date(invoice.get("date_issued"))),
            ("Due Date", format_date(invoice.get("due_date"))),
        ],
        "status_class": status.lower(),
        "status_label": status.upper(),
        "items": [
            {"name": item.get("name"), "details": None, "quantity": item.get("quantity"), "amount": item.get("total", 0)}
            for item in invoice.get("items", [])
        ],
        "subtotal": invoice.get("subtotal", 0),
        "shipping_fee": None,
        "tax_label": "Tax ({:g}%)".format(invoice.get("tax_percentage", 0)),
        "tax": invoice.get("tax", 0),
        "discount": invoice.get("discount", 0),
        "total": invoice.get("grand_total", 0),
        "notes": invoice.get("notes"),
    }


def render_invoice(context: Dict[str, Any]) -> str:
    return _template.render(company=COMPANY, **context)
