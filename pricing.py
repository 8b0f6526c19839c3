"""Checkout arithmetic: GST, flat shipping with a free threshold, coupons."""
from typing import Iterable, Optional

import config


def money(value: float) -> float:
    return round(float(value), 2)


def coupon_rate(code: Optional[str]) -> float:
    if not code:
        return 0.0
    return config.COUPONS.get(code.strip().upper(), 0.0)


def shipping_fee(subtotal: float) -> float:
    return 0.0 if subtotal >= config.FREE_SHIPPING_THRESHOLD else config.SHIPPING_FEE


def order_totals(lines: Iterable[dict], coupon_code: Optional[str] = None) -> dict:
    """Totals for priced lines ({price, quantity}).

    The discount is taken on the subtotal, before tax and shipping.
    """
    subtotal = sum(float(line["price"]) * int(line["quantity"]) for line in lines)
    tax = subtotal * config.TAX_RATE
    shipping = shipping_fee(subtotal)
    discount = subtotal * coupon_rate(coupon_code)
    return {
        "subtotal": money(subtotal),
        "tax": money(tax),
        "shipping_fee": money(shipping),
        "discount": money(discount),
        "total": money(subtotal + tax + shipping - discount),
    }


def invoice_totals(items: Iterable[dict], tax_percentage: float, discount: float) -> dict:
    priced = [{**item, "total": money(item["quantity"] * item["unit_price"])} for item in items]
    subtotal = sum(item["quantity"] * item["unit_price"] for item in priced)
    tax = subtotal * tax_percentage / 100
    return {
        "items": priced,
        "subtotal": money(subtotal),
        "tax": money(tax),
        "grand_total": money(max(0.0, subtotal + tax - discount)),
    }
