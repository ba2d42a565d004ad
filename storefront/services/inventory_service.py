# storefront/services/inventory_service.py
from typing import Iterable, List, Tuple

from sqlalchemy.orm import Session

from storefront.data.database import ends_transaction
from storefront.data.models.product import ProductModel
from storefront.repos.product_repo import ProductRepo
from storefront.utils.exceptions import InsufficientStock, InvalidArgument, NotFound
from storefront.utils.logging import get_logger
from storefront.utils.retry import db_retry

logger = get_logger(__name__)


def _sorted_lines(lines: Iterable[Tuple[int, int]]) -> List[Tuple[int, int]]:
    # deterministic lock order, avoids deadlocks between multi-line orders
    return sorted(lines, key=lambda line: line[0])


class InventoryService:
    """
    Stock ledger. ALL stock changes must pass through here.

    debit/credit lock the product row (SELECT ... FOR UPDATE) and do not
    commit: the lock is held until the caller's transaction ends, so a
    concurrent debit of the same product waits and then sees the
    committed stock.
    """

    def __init__(self, db: Session):
        self.repo = ProductRepo(db)

    def _lock(self, product_id: int) -> ProductModel:
        product = self.repo.get_product_for_update(product_id)
        if not product:
            raise NotFound(f"Product not found with id: {product_id}", product_id=product_id)
        return product

    @staticmethod
    def _check_quantity(product_id: int, quantity: int):
        if quantity is None or quantity < 1:
            raise InvalidArgument(
                f"Stock quantity must be at least 1, got {quantity}", product_id=product_id
            )

    def debit(self, product_id: int, quantity: int) -> ProductModel:
        self._check_quantity(product_id, quantity)
        product = self._lock(product_id)

        new_stock = product.stock_quantity - quantity
        if new_stock < 0:
            logger.info(
                f"Debit refused for product {product_id}: "
                f"requested {quantity}, available {product.stock_quantity}"
            )
            raise InsufficientStock(
                f"Insufficient stock for product: {product.name}. "
                f"Required: {quantity}, Available: {product.stock_quantity}",
                product_id=product_id,
            )

        product.stock_quantity = new_stock
        product.version += 1
        self.repo.db.flush()

        logger.info(f"Debited {quantity} of product {product_id}, stock now {new_stock}")
        return product

    def credit(self, product_id: int, quantity: int) -> ProductModel:
        self._check_quantity(product_id, quantity)
        product = self._lock(product_id)

        product.stock_quantity = product.stock_quantity + quantity
        product.version += 1
        self.repo.db.flush()

        logger.info(
            f"Credited {quantity} of product {product_id}, stock now {product.stock_quantity}"
        )
        return product

    def debit_many(self, lines: Iterable[Tuple[int, int]]) -> List[ProductModel]:
        return [self.debit(pid, qty) for pid, qty in _sorted_lines(lines)]

    def credit_many(self, lines: Iterable[Tuple[int, int]]) -> List[ProductModel]:
        return [self.credit(pid, qty) for pid, qty in _sorted_lines(lines)]

    @ends_transaction
    def available(self, product_id: int) -> int:
        product = self.repo.get_product_live(product_id)
        if not product:
            raise NotFound(f"Product not found with id: {product_id}", product_id=product_id)
        return product.stock_quantity

    @ends_transaction
    @db_retry()
    def restock(self, product_id: int, quantity: int) -> ProductModel:
        """Administrative credit, committed on its own."""
        try:
            product = self.credit(product_id, quantity)
            self.repo.commit()
            return product
        except Exception:
            self.repo.rollback()
            raise
