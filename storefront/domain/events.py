# storefront/domain/events.py
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal


@dataclass(frozen=True)
class BaseEvent:
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()), init=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc), init=False)

    event_type = "EVENT"

    def description(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class OrderCreatedEvent(BaseEvent):
    order_id: int = 0
    total_amount: Decimal = Decimal("0.00")

    event_type = "ORDER_CREATED"

    def description(self) -> str:
        return f"Order {self.order_id} placed, total {self.total_amount}. Awaiting payment."


@dataclass(frozen=True)
class PaymentProcessedEvent(BaseEvent):
    order_id: int = 0
    amount: Decimal = Decimal("0.00")
    payment_method: str = ""
    transaction_id: str = ""

    event_type = "PAYMENT_PROCESSED"

    def description(self) -> str:
        return (
            f"Order placed and payment completed. Payment of {self.amount} for order "
            f"{self.order_id} using {self.payment_method}, transaction {self.transaction_id}."
        )


@dataclass(frozen=True)
class OrderStatusChangedEvent(BaseEvent):
    order_id: int = 0
    old_status: str = ""
    new_status: str = ""

    event_type = "ORDER_STATUS_CHANGED"

    def description(self) -> str:
        return f"Order {self.order_id} status changed from {self.old_status} to {self.new_status}."
