import threading

import pytest

from storefront.data.database import SessionLocal
from storefront.services.inventory_service import InventoryService
from storefront.utils.exceptions import InsufficientStock, InvalidArgument, NotFound


def test_sequential_debits_until_stock_runs_out(db, make_product):
    product = make_product(stock=10)
    inventory = InventoryService(db)

    inventory.debit(product.id, 4)
    db.commit()
    inventory.debit(product.id, 4)
    db.commit()

    with pytest.raises(InsufficientStock) as exc:
        inventory.debit(product.id, 4)
    db.rollback()

    assert exc.value.context["product_id"] == product.id
    assert inventory.available(product.id) == 2


def test_debit_and_credit_bump_version(db, make_product):
    product = make_product(stock=5)
    inventory = InventoryService(db)

    inventory.debit(product.id, 2)
    inventory.credit(product.id, 1)
    db.commit()

    refreshed = inventory.repo.get_product_live(product.id)
    assert refreshed.stock_quantity == 4
    assert refreshed.version == 3


def test_quantity_must_be_positive(db, make_product):
    product = make_product(stock=5)
    inventory = InventoryService(db)

    with pytest.raises(InvalidArgument):
        inventory.debit(product.id, 0)
    with pytest.raises(InvalidArgument):
        inventory.credit(product.id, -1)


def test_unknown_product(db):
    with pytest.raises(NotFound):
        InventoryService(db).debit(404, 1)


def test_restock_commits(db, make_product):
    product = make_product(stock=0)
    InventoryService(db).restock(product.id, 7)
    db.close()

    other = SessionLocal()
    try:
        assert InventoryService(other).available(product.id) == 7
    finally:
        other.close()


def test_concurrent_debits_have_exactly_one_winner(db, make_product):
    product_id = make_product(stock=1).id
    db.close()

    barrier = threading.Barrier(2)
    results = []
    lock = threading.Lock()

    def buy():
        session = SessionLocal()
        try:
            barrier.wait()
            try:
                InventoryService(session).debit(product_id, 1)
                session.commit()
                outcome = "debited"
            except InsufficientStock:
                session.rollback()
                outcome = "refused"
            with lock:
                results.append(outcome)
        finally:
            session.close()

    threads = [threading.Thread(target=buy) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(results) == ["debited", "refused"]

    check = SessionLocal()
    try:
        assert InventoryService(check).available(product_id) == 0
    finally:
        check.close()
