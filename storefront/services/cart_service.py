# storefront/services/cart_service.py
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Session

from storefront.data.database import ends_transaction
from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.product import ProductModel
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.utils.exceptions import (
    EmptyCart,
    InvalidArgument,
    InvalidCart,
    MaximumQuantityExceeded,
    NotFound,
    OutOfStock,
    ProductUnavailable,
)
from storefront.utils.logging import get_logger
from storefront.utils.retry import db_retry
from storefront.utils.settings import CART_MAX_QUANTITY_PER_PRODUCT

logger = get_logger(__name__)


def _owner_key(owner_id) -> str:
    if owner_id is None or str(owner_id).strip() == "":
        raise InvalidArgument("Invalid input parameters: cart owner id is required")
    return str(owner_id).strip()


class CartService:
    """
    Use cases for the cart domain.
    commands (add, update, remove, clear, merge) modify state and commit,
    queries (get_cart, checkout_preflight) only read.

    Carts are keyed by owner id: a user id or a guest/session id, both
    treated the same way. A cart is created the first time it is needed.
    """

    def __init__(self, db: Session, max_quantity: int = CART_MAX_QUANTITY_PER_PRODUCT):
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)
        self.max_quantity = max_quantity

    # helpers (no commit)

    def _get_or_create_cart(self, owner_id: str) -> CartModel:
        cart = self.repo.get_cart_by_owner(owner_id)
        if cart:
            return cart

        logger.info(f"Creating cart for owner {owner_id}")
        return self.repo.create_cart(CartModel(owner_id=owner_id))

    def _live_product(self, product_id: int) -> ProductModel:
        product = self.products.get_product_live(product_id)
        if not product:
            raise ProductUnavailable(f"Product not found with id: {product_id}", product_id=product_id)
        if not product.active:
            raise ProductUnavailable(f"Product is no longer available: {product.name}", product_id=product_id)
        return product

    def _check_cap(self, product_id: int, quantity: int):
        if quantity > self.max_quantity:
            raise MaximumQuantityExceeded(
                f"Cannot add more than {self.max_quantity} units of this product",
                product_id=product_id,
            )

    def _view(self, owner_id: str, cart: CartModel | None) -> Dict[str, Any]:
        items = self.repo.get_cart_items(cart.id) if cart else []

        lines = []
        for i in items:
            product = self.products.get_product_live(i.product_id)
            price = product.price
            lines.append(
                {
                    "product_id": i.product_id,
                    "product_name": product.name,
                    "quantity": i.quantity,
                    "unit_price": price,
                    "line_total": price * i.quantity,
                }
            )

        return {
            "owner_id": owner_id,
            "items": lines,
            "total": sum((line["line_total"] for line in lines), Decimal("0.00")),
        }

    #query
    @ends_transaction
    def get_cart(self, owner_id) -> Dict[str, Any]:
        owner_id = _owner_key(owner_id)
        cart = self.repo.get_cart_by_owner(owner_id)
        if cart is None:
            try:
                cart = self._get_or_create_cart(owner_id)
                self.repo.commit()
            except Exception:
                self.repo.rollback()
                raise
        return self._view(owner_id, cart)

    @ends_transaction
    def get_cart_total(self, owner_id) -> Decimal:
        return self.get_cart(owner_id)["total"]

    @ends_transaction
    def checkout_preflight(self, owner_id) -> List[Tuple[int, int]]:
        """
        Validates the cart against live product state right before it is
        turned into an order. Stock seen when the items were added is not
        trusted: time may have passed.

        Returns the (product_id, quantity) lines.
        """
        owner_id = _owner_key(owner_id)
        cart = self.repo.get_cart_by_owner(owner_id)
        items = self.repo.get_cart_items(cart.id) if cart else []

        if not items:
            raise EmptyCart("Cart is empty")

        lines = []
        for item in items:
            if item.product_id is None:
                raise InvalidCart("Product unavailable")

            if item.quantity is None or item.quantity <= 0:
                raise InvalidCart(
                    f"Invalid quantity for product: {item.product_id}", product_id=item.product_id
                )

            product = self.products.get_product_live(item.product_id)
            if product is None:
                raise ProductUnavailable(
                    f"Product has been removed: {item.product_id}", product_id=item.product_id
                )

            if not product.active:
                raise ProductUnavailable(
                    f"Product is no longer available: {product.name}", product_id=product.id
                )

            if product.stock_quantity < item.quantity:
                raise OutOfStock(
                    f"Not enough stock for product: {product.name}", product_id=product.id
                )

            lines.append((item.product_id, item.quantity))

        logger.info(f"Checkout preflight passed for cart of {owner_id} ({len(lines)} lines)")
        return lines

    #commands
    @ends_transaction
    @db_retry()
    def add_item(self, owner_id, product_id: int, quantity: int) -> Dict[str, Any]:
        if owner_id is None or product_id is None:
            raise InvalidArgument("Invalid input parameters")
        owner_id = _owner_key(owner_id)

        if quantity is None or quantity <= 0:
            raise InvalidArgument("Quantity must be greater than 0", product_id=product_id)

        try:
            cart = self._get_or_create_cart(owner_id)
            product = self._live_product(product_id)

            if product.stock_quantity < quantity:
                raise OutOfStock("Product is out of stock", product_id=product_id)

            existing_item = self.repo.get_cart_item(cart.id, product_id)
            new_quantity = quantity + (existing_item.quantity if existing_item else 0)

            # cap applies to the resulting line, not to each call
            self._check_cap(product_id, new_quantity)

            if existing_item:
                logger.info(
                    f"Product {product_id} already in cart of {owner_id}, "
                    f"quantity {existing_item.quantity} -> {new_quantity}"
                )
                existing_item.quantity = new_quantity
            else:
                logger.info(f"Adding product {product_id} x{quantity} to cart of {owner_id}")
                self.repo.add_cart_item(
                    CartItemModel(cart_id=cart.id, product_id=product_id, quantity=quantity)
                )

            self.repo.touch(cart)
            self.repo.commit()

        except Exception as e:
            logger.warning(f"Add to cart failed for {owner_id}: {e}")
            self.repo.rollback()
            raise

        return self.get_cart(owner_id)

    @ends_transaction
    @db_retry()
    def update_quantity(self, owner_id, product_id: int, quantity: int) -> Dict[str, Any]:
        owner_id = _owner_key(owner_id)
        if product_id is None or quantity is None:
            raise InvalidArgument("Invalid input parameters")

        if quantity <= 0:
            return self.remove_item(owner_id, product_id)

        try:
            cart = self.repo.get_cart_by_owner(owner_id)
            item = self.repo.get_cart_item(cart.id, product_id) if cart else None
            if not item:
                raise NotFound(f"Product {product_id} is not in the cart", product_id=product_id)

            product = self._live_product(product_id)
            if product.stock_quantity < quantity:
                raise OutOfStock("Product is out of stock", product_id=product_id)
            self._check_cap(product_id, quantity)

            item.quantity = quantity
            self.repo.touch(cart)
            self.repo.commit()

        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Set product {product_id} quantity to {quantity} in cart of {owner_id}")
        return self.get_cart(owner_id)

    @ends_transaction
    @db_retry()
    def remove_item(self, owner_id, product_id: int) -> Dict[str, Any]:
        owner_id = _owner_key(owner_id)

        try:
            cart = self.repo.get_cart_by_owner(owner_id)
            if cart:
                removed = self.repo.delete_cart_item(cart.id, product_id)
                if removed:
                    self.repo.touch(cart)
                self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Removed product {product_id} from cart of {owner_id}")
        return self.get_cart(owner_id)

    def clear_items(self, owner_id) -> None:
        """Clears inside the caller's transaction (used by checkout)."""
        cart = self.repo.get_cart_by_owner(_owner_key(owner_id))
        if cart:
            self.repo.delete_cart_items(cart.id)
            self.repo.touch(cart)

    @ends_transaction
    @db_retry()
    def clear(self, owner_id) -> Dict[str, Any]:
        owner_id = _owner_key(owner_id)
        try:
            self.clear_items(owner_id)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Cleared cart of {owner_id}")
        return self.get_cart(owner_id)

    @ends_transaction
    @db_retry()
    def merge_into(self, source_owner_id, target_owner_id) -> Dict[str, Any]:
        """
        Merges e.g. a guest cart into the cart of the user who just logged in.
        Shared products have their quantities added (clamped to the
        per-product cap), the rest are moved. The source cart ends up empty.
        """
        source_owner_id = _owner_key(source_owner_id)
        target_owner_id = _owner_key(target_owner_id)

        if source_owner_id == target_owner_id:
            return self.get_cart(target_owner_id)

        try:
            source = self.repo.get_cart_by_owner(source_owner_id)
            source_items = self.repo.get_cart_items(source.id) if source else []

            if source_items:
                target = self._get_or_create_cart(target_owner_id)

                for guest_item in source_items:
                    target_item = self.repo.get_cart_item(target.id, guest_item.product_id)
                    merged = guest_item.quantity + (target_item.quantity if target_item else 0)

                    if merged > self.max_quantity:
                        logger.warning(
                            f"Merged quantity {merged} of product {guest_item.product_id} "
                            f"clamped to {self.max_quantity}"
                        )
                        merged = self.max_quantity

                    if target_item:
                        target_item.quantity = merged
                    else:
                        self.repo.add_cart_item(
                            CartItemModel(
                                cart_id=target.id,
                                product_id=guest_item.product_id,
                                quantity=merged,
                            )
                        )

                self.repo.delete_cart_items(source.id)
                self.repo.touch(source)
                self.repo.touch(target)

            self.repo.commit()

        except Exception:
            self.repo.rollback()
            raise

        logger.info(
            f"Merged cart of {source_owner_id} into cart of {target_owner_id} "
            f"({len(source_items)} lines)"
        )
        return self.get_cart(target_owner_id)
