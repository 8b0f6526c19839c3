import pytest
from bson import ObjectId

from conftest import make_product
from inventory import InsufficientStock, has_stock, release_all, reserve, reserve_all


def _product(db, product_id):
    return db["product"].find_one({"_id": ObjectId(product_id)})


def test_has_stock_checks_size_then_total():
    product = {"total_stock": 8, "sizes": [{"size": "M", "stock": 5}, {"size": "L", "stock": 3}]}
    assert has_stock(product, "M", 5)
    assert not has_stock(product, "L", 4)
    assert not has_stock(product, "XL", 1)
    assert has_stock(product, None, 8)
    assert not has_stock({"total_stock": 0, "sizes": []}, "M", 1)


def test_reserve_size_keeps_total_in_step(db):
    product_id = make_product()
    assert reserve(db["product"], product_id, "M", 2)
    product = _product(db, product_id)
    assert product["sizes"][0]["stock"] == 3
    assert product["total_stock"] == 6


def test_reserve_refuses_to_go_negative(db):
    product_id = make_product()
    assert not reserve(db["product"], product_id, "L", 4)
    assert _product(db, product_id)["total_stock"] == 8


def test_unsized_product_uses_total_stock(db):
    product_id = make_product(sizes=[], total_stock=2)
    assert reserve(db["product"], product_id, None, 2)
    assert not reserve(db["product"], product_id, None, 1)
    assert _product(db, product_id)["total_stock"] == 0


def test_reserve_all_rolls_back_partial_reservations(db):
    plenty = make_product(name="Hoodie")
    scarce = make_product(name="Cap", sizes=[{"size": "M", "stock": 1}])
    lines = [
        {"product_id": plenty, "size": "M", "quantity": 2, "name": "Hoodie"},
        {"product_id": scarce, "size": "M", "quantity": 3, "name": "Cap"},
    ]
    with pytest.raises(InsufficientStock) as excinfo:
        reserve_all(db["product"], lines)
    assert excinfo.value.product_name == "Cap"
    assert _product(db, plenty)["sizes"][0]["stock"] == 5
    assert _product(db, scarce)["total_stock"] == 1


def test_release_all_restores_stock(db):
    product_id = make_product()
    lines = [{"product_id": product_id, "size": "L", "quantity": 3, "name": "Tee"}]
    reserve_all(db["product"], lines)
    assert _product(db, product_id)["total_stock"] == 5
    release_all(db["product"], lines)
    product = _product(db, product_id)
    assert product["sizes"][1]["stock"] == 3
    assert product["total_stock"] == 8
