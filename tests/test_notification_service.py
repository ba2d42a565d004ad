import json
import logging
from decimal import Decimal
from types import SimpleNamespace

from storefront.domain.events import OrderCreatedEvent, OrderStatusChangedEvent, PaymentProcessedEvent
from storefront.services.notification_service import EmailNotificationObserver, NotificationService
from storefront.utils.logging import JSONFormatter

from tests.conftest import RecordingObserver


class BrokenObserver:
    def notify(self, order, message):
        raise RuntimeError("smtp down")


def _order():
    return SimpleNamespace(id=5, user_id=1, user=SimpleNamespace(email="ann@example.com"))


def test_failing_observer_does_not_stop_the_others():
    recorder = RecordingObserver()
    svc = NotificationService([BrokenObserver(), recorder])

    delivered = svc.notify_all(_order(), "hello")

    assert delivered == 1
    assert recorder.messages == [(5, "hello")]


def test_observers_run_in_registration_order():
    calls = []

    class Named:
        def __init__(self, name):
            self.name = name

        def notify(self, order, message):
            calls.append(self.name)

    svc = NotificationService([Named("first")])
    svc.subscribe(Named("second"))
    svc.notify_all(_order(), "x")

    assert calls == ["first", "second"]


def test_publish_sends_event_description():
    recorder = RecordingObserver()
    svc = NotificationService([recorder])

    svc.publish(_order(), PaymentProcessedEvent(order_id=5, amount=Decimal("3.00"), payment_method="paypal", transaction_id="PP-1"))

    assert recorder.messages[0][1].startswith("Order placed and payment completed.")


def test_email_observer_counts_sent_messages():
    email = EmailNotificationObserver()
    email.notify(_order(), "hi")
    email.notify(SimpleNamespace(id=6, user_id=2, user=None), "hi")

    assert email.sent == 2


def test_events_have_identity():
    a = OrderCreatedEvent(order_id=1, total_amount=Decimal("1.00"))
    b = OrderStatusChangedEvent(order_id=1, old_status="PENDING", new_status="CANCELLED")

    assert a.event_id != b.event_id
    assert a.event_type == "ORDER_CREATED"
    assert "PENDING to CANCELLED" in b.description()


def test_json_formatter_masks_card_numbers():
    record = logging.LogRecord(
        "storefront.test", logging.INFO, __file__, 1,
        "charging card 4111 1111 1111 1111", None, None,
    )
    line = JSONFormatter().format(record)

    assert "4111 1111 1111 1111" not in line
    assert "****" in line


def test_json_formatter_redacts_sensitive_keys():
    record = logging.LogRecord(
        "storefront.test", logging.INFO, __file__, 1,
        {"cvv": "123", "amount": "10.00"}, None, None,
    )
    msg = json.loads(JSONFormatter().format(record))["msg"]

    assert "'123'" not in msg
    assert "REDACTED" in msg
    assert "10.00" in msg
