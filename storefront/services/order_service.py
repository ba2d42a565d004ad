# storefront/services/order_service.py
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from storefront.data.database import ends_transaction
from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel
from storefront.domain.enums import ORDER_TRANSITIONS, PAYMENT_TRANSITIONS, OrderStatus, PaymentStatus
from storefront.domain.events import OrderCreatedEvent, OrderStatusChangedEvent, PaymentProcessedEvent
from storefront.domain.schemas import PaymentDetails
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import ProductRepo
from storefront.repos.user_repo import UserRepo
from storefront.services.cart_service import CartService
from storefront.services.inventory_service import InventoryService
from storefront.services.notification_service import NotificationService, build_notification_service
from storefront.services.payment_service import PaymentService, build_payment_service
from storefront.utils.exceptions import (
    AccessDenied,
    ConcurrentModification,
    InvalidArgument,
    InvalidStatusTransition,
    NotFound,
    PaymentProcessingFailed,
    ProductUnavailable,
)
from storefront.utils.logging import get_logger
from storefront.utils.retry import db_retry
from storefront.utils.settings import ORDERS_PAGE_SIZE

logger = get_logger(__name__)


def _merge_lines(items: Iterable[Any]) -> List[Tuple[int, int]]:
    """
    Accepts (product_id, quantity) pairs or objects with those attributes.
    The same product requested twice becomes a single line.
    """
    merged: Dict[int, int] = {}
    for item in items or []:
        if hasattr(item, "product_id"):
            product_id, quantity = item.product_id, item.quantity
        else:
            product_id, quantity = item

        if product_id is None:
            raise InvalidArgument("Product ID cannot be null")
        if quantity is None or quantity < 1:
            raise InvalidArgument(
                f"Quantity must be at least 1 for product: {product_id}", product_id=product_id
            )
        merged[product_id] = merged.get(product_id, 0) + quantity

    if not merged:
        raise InvalidArgument("Order must contain at least one item")

    # ascending product id = lock order
    return sorted(merged.items())


class OrderService:
    """
    Order workflow: validate -> reserve stock -> total -> charge -> persist -> notify.
    Also owns the order and payment status transitions.

    Stock is debited inside the order's transaction, so a failure on any
    line rolls back the debits of the earlier ones.
    """

    def __init__(
        self,
        db: Session,
        payment_service: Optional[PaymentService] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.users = UserRepo(db)
        self.products = ProductRepo(db)
        self.inventory = InventoryService(db)
        self.carts = CartService(db)
        self.payments = payment_service or build_payment_service()
        self.notifications = notification_service or build_notification_service()

    # helpers (no commit)

    def _get(self, order_id: int) -> OrderModel:
        if order_id is None:
            raise InvalidArgument("Order ID cannot be null")

        order = self.repo.get_order(order_id)
        if not order:
            raise NotFound(f"Order not found with id: {order_id}", order_id=order_id)
        return order

    def _reserve(
        self,
        user_id: int,
        items: Iterable[Any],
        shipping_address: Optional[str],
        payment_method: Optional[str] = None,
    ) -> OrderModel:
        if user_id is None:
            raise InvalidArgument("User ID cannot be null")

        lines = _merge_lines(items)

        if not self.users.get_user(user_id):
            raise NotFound(f"User not found with id: {user_id}", user_id=user_id)

        order_items = []
        total = Decimal("0.00")

        for product_id, quantity in lines:
            product = self.products.get_product_for_update(product_id)
            if not product:
                raise ProductUnavailable(f"Product not found with id: {product_id}", product_id=product_id)
            if not product.active:
                raise ProductUnavailable(
                    f"Product is not available: {product.name}", product_id=product_id
                )

            product = self.inventory.debit(product_id, quantity)

            # price is captured now and never recomputed
            unit_price = product.price
            subtotal = unit_price * quantity
            total += subtotal

            order_items.append(
                OrderItemModel(
                    product_id=product_id,
                    product_name=product.name,
                    quantity=quantity,
                    unit_price=unit_price,
                    subtotal=subtotal,
                )
            )

        order = OrderModel(
            user_id=user_id,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            total_amount=total,
            payment_method=payment_method,
            shipping_address=shipping_address,
            stock_reserved=True,
            version=1,
            items=order_items,
        )
        return self.repo.create_order(order)

    def _record_payment_failure(self, order: OrderModel) -> None:
        """
        Gives the debited stock back and keeps the order as (PENDING, FAILED)
        so the attempt stays visible.
        """
        try:
            self.inventory.credit_many([(i.product_id, i.quantity) for i in order.items])
            order.payment_status = PaymentStatus.FAILED.value
            order.stock_reserved = False
            self.db.flush()
            self.repo.commit()
        except Exception:
            logger.error(f"Could not record payment failure for order {order.id}", exc_info=True)
            self.repo.rollback()
            raise

    def _cas(self, order: OrderModel, new_data: Dict[str, Any]) -> None:
        old_version = order.version
        rowcount = self.repo.update_order_version(
            order_id=order.id,
            old_version=old_version,
            new_data={**new_data, "version": old_version + 1},
        )

        # UPDATE orders SET ... WHERE id = 1 AND version = 3
        if rowcount == 0:
            raise ConcurrentModification(
                f"Order {order.id} was modified concurrently, expected version {old_version}",
                order_id=order.id,
            )

    def _place(
        self,
        user_id: int,
        items: Iterable[Any],
        shipping_address: Optional[str],
        payment_method: Optional[str] = None,
        details: Optional[PaymentDetails] = None,
        cart_owner: Optional[str] = None,
    ) -> OrderModel:
        try:
            order = self._reserve(user_id, items, shipping_address, payment_method)
            if payment_method is None:
                if cart_owner is not None:
                    self.carts.clear_items(cart_owner)
                self.repo.commit()
        except Exception as e:
            logger.warning(f"Order placement failed for user {user_id}: {e}")
            self.repo.rollback()
            raise

        if payment_method is None:
            logger.info(f"Order {order.id} placed for user {user_id}, total {order.total_amount}")
            self.notifications.publish(
                order, OrderCreatedEvent(order_id=order.id, total_amount=order.total_amount)
            )
            return order

        try:
            transaction_id = self.payments.charge(payment_method, order.total_amount, details)
        except PaymentProcessingFailed as e:
            logger.warning(f"Payment for order {order.id} failed: {e.message}")
            self._record_payment_failure(order)
            raise PaymentProcessingFailed(
                f"Payment failed for order {order.id}: {e.message}", order_id=order.id
            ) from e
        except Exception:
            self.repo.rollback()
            raise

        try:
            order.status = OrderStatus.PROCESSING.value
            order.payment_status = PaymentStatus.COMPLETED.value
            order.transaction_id = transaction_id
            if cart_owner is not None:
                self.carts.clear_items(cart_owner)
            self.db.flush()
            self.repo.commit()
        except Exception:
            # the charge went through but the order did not persist
            logger.error(
                f"Order {order.id} could not be saved after charge {transaction_id}", exc_info=True
            )
            self.repo.rollback()
            raise

        logger.info(
            f"Order {order.id} placed and paid by user {user_id} "
            f"via {payment_method}, transaction {transaction_id}"
        )
        self.notifications.publish(
            order,
            PaymentProcessedEvent(
                order_id=order.id,
                amount=order.total_amount,
                payment_method=payment_method,
                transaction_id=transaction_id,
            ),
        )
        return order

    #commands
    @ends_transaction
    @db_retry()
    def place_order(self, user_id: int, items: Iterable[Any], shipping_address: Optional[str] = None) -> OrderModel:
        return self._place(user_id, items, shipping_address)

    @ends_transaction
    def place_order_with_payment(
        self,
        user_id: int,
        items: Iterable[Any],
        payment_method: str,
        details: Optional[PaymentDetails] = None,
        shipping_address: Optional[str] = None,
    ) -> OrderModel:
        # unknown method fails before any stock is touched
        strategy = self.payments.get_strategy(payment_method)
        return self._place(user_id, items, shipping_address, strategy.name, details)

    @ends_transaction
    def place_order_from_cart(
        self,
        user_id: int,
        payment_method: Optional[str] = None,
        details: Optional[PaymentDetails] = None,
        shipping_address: Optional[str] = None,
    ) -> OrderModel:
        method = self.payments.get_strategy(payment_method).name if payment_method else None
        lines = self.carts.checkout_preflight(user_id)
        return self._place(
            user_id, lines, shipping_address, method, details, cart_owner=str(user_id)
        )

    @ends_transaction
    def update_status(self, order_id: int, new_status) -> OrderModel:
        try:
            new_status = OrderStatus(new_status)
        except ValueError:
            raise InvalidArgument(f"Unknown order status: {new_status}", order_id=order_id)

        order = self._get(order_id)
        current = OrderStatus(order.status)

        if current == new_status:
            return order

        if new_status not in ORDER_TRANSITIONS[current]:
            raise InvalidStatusTransition(
                f"Cannot change order status from {current.value} to {new_status.value}",
                order_id=order_id,
            )

        if order.payment_status == PaymentStatus.FAILED.value and new_status != OrderStatus.CANCELLED:
            raise InvalidStatusTransition(
                f"Order {order_id} has a failed payment and can only be cancelled",
                order_id=order_id,
            )

        release = new_status == OrderStatus.CANCELLED and order.stock_reserved
        lines = [(i.product_id, i.quantity) for i in order.items]

        try:
            new_data = {"status": new_status.value}
            if release:
                new_data["stock_reserved"] = False
            self._cas(order, new_data)

            # the version check above makes this run once per order
            if release:
                self.inventory.credit_many(lines)

            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Order {order_id} status {current.value} -> {new_status.value}")
        order = self._get(order_id)
        self.notifications.publish(
            order,
            OrderStatusChangedEvent(
                order_id=order_id, old_status=current.value, new_status=new_status.value
            ),
        )
        return order

    @ends_transaction
    def update_payment_status(self, order_id: int, new_payment_status) -> OrderModel:
        try:
            new_payment_status = PaymentStatus(new_payment_status)
        except ValueError:
            raise InvalidArgument(f"Unknown payment status: {new_payment_status}", order_id=order_id)

        order = self._get(order_id)
        current = PaymentStatus(order.payment_status)

        if current == new_payment_status:
            return order

        if new_payment_status not in PAYMENT_TRANSITIONS[current]:
            raise InvalidStatusTransition(
                f"Cannot change payment status from {current.value} to {new_payment_status.value}",
                order_id=order_id,
            )

        old_status = order.status
        new_data = {"payment_status": new_payment_status.value}
        if new_payment_status == PaymentStatus.COMPLETED and old_status == OrderStatus.PENDING.value:
            new_data["status"] = OrderStatus.PROCESSING.value

        try:
            self._cas(order, new_data)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Order {order_id} payment {current.value} -> {new_payment_status.value}")
        order = self._get(order_id)
        if "status" in new_data:
            self.notifications.publish(
                order,
                OrderStatusChangedEvent(
                    order_id=order_id, old_status=old_status, new_status=new_data["status"]
                ),
            )
        return order

    @ends_transaction
    def refund_order(self, order_id: int, details: Optional[PaymentDetails] = None) -> OrderModel:
        order = self._get(order_id)

        if order.payment_status != PaymentStatus.COMPLETED.value or not order.transaction_id:
            raise InvalidStatusTransition(
                f"Order {order_id} has no completed payment to refund", order_id=order_id
            )

        try:
            self._cas(order, {"payment_status": PaymentStatus.REFUNDED.value})
            refund_id = self.payments.refund(
                order.payment_method, order.transaction_id, order.total_amount, details
            )
        except Exception:
            self.repo.rollback()
            raise

        try:
            self.repo.commit()
        except Exception:
            # the gateway refunded but the order still reads COMPLETED
            logger.error(
                f"Order {order_id} could not be saved after refund {refund_id}", exc_info=True
            )
            self.repo.rollback()
            raise

        logger.info(f"Order {order_id} refunded, refund id {refund_id}")
        return self._get(order_id)

    #query
    @ends_transaction
    def get_order(self, order_id: int, user_id: Optional[int] = None) -> OrderModel:
        """`user_id` restricts the read to the order's owner."""
        order = self._get(order_id)
        if user_id is not None and order.user_id != user_id:
            raise AccessDenied(f"Access denied to order {order_id}", order_id=order_id)
        return order

    @ends_transaction
    def list_orders(self) -> List[OrderModel]:
        return self.repo.list_orders()

    @ends_transaction
    def list_orders_for_user(self, user_id: int, page: int = 0, size: int = ORDERS_PAGE_SIZE) -> Dict[str, Any]:
        if page is None or page < 0 or size is None or size < 1:
            raise InvalidArgument("Page must be >= 0 and size >= 1")

        return {
            "items": self.repo.list_by_user(user_id, offset=page * size, limit=size),
            "page": page,
            "size": size,
            "total": self.repo.count_by_user(user_id),
        }

    @ends_transaction
    def list_orders_by_status(self, status) -> List[OrderModel]:
        try:
            status = OrderStatus(status)
        except ValueError:
            raise InvalidArgument(f"Unknown order status: {status}")
        return self.repo.list_by_status(status.value)

    @ends_transaction
    def list_orders_between(self, start: datetime, end: datetime) -> List[OrderModel]:
        if start is None or end is None or start > end:
            raise InvalidArgument("Invalid date range")
        return self.repo.list_between(start, end)

    @ends_transaction
    def count_orders_since(self, since: datetime) -> int:
        if since is None:
            raise InvalidArgument("Date cannot be null")
        return self.repo.count_since(since)
