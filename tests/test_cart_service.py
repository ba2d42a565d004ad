from decimal import Decimal

import pytest
from sqlalchemy import update

from storefront.data.models import CartItemModel
from storefront.domain.schemas import ProductUpdate
from storefront.services.cart_service import CartService
from storefront.services.inventory_service import InventoryService
from storefront.services.product_service import ProductService
from storefront.utils.exceptions import (
    EmptyCart,
    InvalidArgument,
    InvalidCart,
    MaximumQuantityExceeded,
    NotFound,
    OutOfStock,
    ProductUnavailable,
)


def _quantities(cart):
    return {line["product_id"]: line["quantity"] for line in cart["items"]}


def test_get_cart_creates_empty_cart(db):
    cart = CartService(db).get_cart("guest-1")

    assert cart["owner_id"] == "guest-1"
    assert cart["items"] == []
    assert cart["total"] == Decimal("0")


def test_add_same_product_accumulates(db, make_product):
    product = make_product(price="2.50", stock=20)
    svc = CartService(db)

    svc.add_item("1", product.id, 2)
    cart = svc.add_item("1", product.id, 3)

    assert _quantities(cart) == {product.id: 5}
    assert cart["total"] == Decimal("12.50")
    assert svc.get_cart_total("1") == Decimal("12.50")


def test_cap_is_checked_on_resulting_quantity(db, make_product):
    product = make_product(stock=50)
    svc = CartService(db)

    svc.add_item("1", product.id, 8)
    with pytest.raises(MaximumQuantityExceeded):
        svc.add_item("1", product.id, 3)

    assert _quantities(svc.get_cart("1")) == {product.id: 8}


def test_add_rejects_bad_input(db, make_product):
    product = make_product()
    svc = CartService(db)

    with pytest.raises(InvalidArgument):
        svc.add_item("1", product.id, 0)
    with pytest.raises(InvalidArgument):
        svc.add_item(None, product.id, 1)


def test_add_checks_product_and_stock(db, make_product):
    inactive = make_product(name="Old", active=False)
    scarce = make_product(name="Scarce", stock=2)
    svc = CartService(db)

    with pytest.raises(ProductUnavailable):
        svc.add_item("1", inactive.id, 1)
    with pytest.raises(ProductUnavailable):
        svc.add_item("1", 999, 1)
    with pytest.raises(OutOfStock):
        svc.add_item("1", scarce.id, 3)


def test_update_quantity(db, make_product):
    product = make_product(stock=20)
    svc = CartService(db)
    svc.add_item("1", product.id, 2)

    assert _quantities(svc.update_quantity("1", product.id, 6)) == {product.id: 6}

    with pytest.raises(MaximumQuantityExceeded):
        svc.update_quantity("1", product.id, 11)

    assert _quantities(svc.update_quantity("1", product.id, 0)) == {}


def test_update_quantity_of_missing_line(db, make_product):
    product = make_product()
    with pytest.raises(NotFound):
        CartService(db).update_quantity("1", product.id, 2)


def test_preflight_rejects_non_positive_line(db, make_product):
    product = make_product()
    svc = CartService(db)
    svc.add_item("1", product.id, 2)

    db.execute(update(CartItemModel).values(quantity=0))
    db.commit()

    with pytest.raises(InvalidCart) as exc:
        svc.checkout_preflight("1")
    assert exc.value.context["product_id"] == product.id


def test_remove_and_clear_are_noops_when_absent(db, make_product):
    a = make_product(name="A")
    b = make_product(name="B")
    svc = CartService(db)

    assert svc.remove_item("nobody", a.id)["items"] == []

    svc.add_item("1", a.id, 1)
    svc.add_item("1", b.id, 1)
    assert _quantities(svc.remove_item("1", a.id)) == {b.id: 1}
    assert svc.clear("1")["items"] == []
    assert svc.clear("1")["items"] == []


def test_view_uses_live_price(db, make_product):
    product = make_product(price="10.00")
    svc = CartService(db)
    svc.add_item("1", product.id, 2)

    ProductService(db).update_product(product.id, ProductUpdate(price=Decimal("12.00")))

    cart = svc.get_cart("1")
    assert cart["items"][0]["unit_price"] == Decimal("12.00")
    assert cart["total"] == Decimal("24.00")


def test_merge_adds_overlapping_and_moves_the_rest(db, make_product):
    a = make_product(name="A")
    b = make_product(name="B")
    svc = CartService(db)
    svc.add_item("guest-1", a.id, 2)
    svc.add_item("guest-1", b.id, 1)
    svc.add_item("1", a.id, 3)

    merged = svc.merge_into("guest-1", "1")

    assert _quantities(merged) == {a.id: 5, b.id: 1}
    assert svc.get_cart("guest-1")["items"] == []


def test_merge_into_missing_target_creates_it(db, make_product):
    a = make_product(name="A")
    svc = CartService(db)
    svc.add_item("guest-1", a.id, 4)

    merged = svc.merge_into("guest-1", "7")

    assert _quantities(merged) == {a.id: 4}


def test_merge_clamps_to_cap(db, make_product):
    a = make_product(name="A", stock=50)
    svc = CartService(db)
    svc.add_item("guest-1", a.id, 7)
    svc.add_item("1", a.id, 6)

    assert _quantities(svc.merge_into("guest-1", "1")) == {a.id: 10}


def test_merge_from_missing_source_is_noop(db, make_product):
    a = make_product(name="A")
    svc = CartService(db)
    svc.add_item("1", a.id, 1)

    assert _quantities(svc.merge_into("nobody", "1")) == {a.id: 1}


def test_preflight_empty_cart(db):
    with pytest.raises(EmptyCart):
        CartService(db).checkout_preflight("1")


def test_preflight_deactivated_product(db, make_product):
    product = make_product()
    svc = CartService(db)
    svc.add_item("1", product.id, 2)

    ProductService(db).deactivate(product.id)

    with pytest.raises(ProductUnavailable):
        svc.checkout_preflight("1")


def test_preflight_stock_dropped_below_cart_quantity(db, make_product):
    product = make_product(stock=5)
    svc = CartService(db)
    svc.add_item("1", product.id, 4)

    InventoryService(db).debit(product.id, 3)
    db.commit()

    with pytest.raises(OutOfStock):
        svc.checkout_preflight("1")


def test_preflight_returns_lines(db, make_product):
    a = make_product(name="A")
    b = make_product(name="B")
    svc = CartService(db)
    svc.add_item("1", b.id, 1)
    svc.add_item("1", a.id, 2)

    assert sorted(svc.checkout_preflight("1")) == [(a.id, 2), (b.id, 1)]
