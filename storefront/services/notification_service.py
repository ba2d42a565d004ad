# storefront/services/notification_service.py
from typing import Iterable, List, Protocol

from storefront.data.models.order import OrderModel
from storefront.domain.events import BaseEvent
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationObserver(Protocol):
    def notify(self, order: OrderModel, message: str) -> None:
        ...


class EmailNotificationObserver:
    """
    Would send an email (SMTP, SES, ...) in a real deployment.
    For now it only logs.
    """

    def __init__(self):
        self.sent = 0

    def notify(self, order: OrderModel, message: str) -> None:
        recipient = order.user.email if order.user and order.user.email else f"user:{order.user_id}"
        logger.info(f"[NOTIFICATION] Email sent to: {recipient} | Message: {message}")
        self.sent += 1


class NotificationService:
    """
    Synchronous fan-out to observers, in registration order.
    Runs after the order is committed; a failing observer is logged and
    skipped, it never undoes the order.
    """

    def __init__(self, observers: Iterable[NotificationObserver] = ()):
        self.observers: List[NotificationObserver] = list(observers)

    def subscribe(self, observer: NotificationObserver) -> None:
        self.observers.append(observer)

    def notify_all(self, order: OrderModel, message: str) -> int:
        delivered = 0
        for observer in self.observers:
            try:
                observer.notify(order, message)
                delivered += 1
            except Exception as e:
                logger.error(
                    f"Observer {type(observer).__name__} failed for order {order.id}: {e}",
                    exc_info=True,
                )
        return delivered

    def publish(self, order: OrderModel, event: BaseEvent) -> int:
        logger.info(f"Publishing {event.event_type} ({event.event_id}) for order {order.id}")
        return self.notify_all(order, event.description())


def build_notification_service() -> NotificationService:
    return NotificationService([EmailNotificationObserver()])
