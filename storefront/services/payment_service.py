# storefront/services/payment_service.py
import uuid
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from storefront.domain.schemas import PaymentDetails
from storefront.utils.exceptions import PaymentProcessingFailed, UnsupportedPaymentMethod
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def normalize_method(name: Optional[str]) -> str:
    # "Credit Card", "credit_card", "CREDITCARD" -> "creditcard"
    if name is None:
        return ""
    return "".join(ch for ch in name.strip().lower() if ch not in " _-")


def _blank(value: Optional[str]) -> bool:
    return value is None or value.strip() == ""


class PaymentStrategy(ABC):
    """
    One payment method. Strategies are registered with PaymentService
    under their name and selected per order.
    """

    name: str = ""

    @abstractmethod
    def validate_payment_details(self, details: Optional[PaymentDetails]) -> bool:
        ...

    @abstractmethod
    def process_payment(self, amount: Decimal, details: Optional[PaymentDetails]) -> str:
        """Charges `amount`, returns the gateway transaction id."""

    @abstractmethod
    def refund_payment(
        self, transaction_id: str, amount: Decimal, details: Optional[PaymentDetails]
    ) -> str:
        """Refunds (part of) a previous charge, returns the refund id."""


class CreditCardPaymentStrategy(PaymentStrategy):
    name = "creditcard"

    def validate_payment_details(self, details: Optional[PaymentDetails]) -> bool:
        if details is None:
            return False
        return not (_blank(details.card_number) or _blank(details.expiry_date) or _blank(details.cvv))

    @staticmethod
    def mask_card_number(card_number: Optional[str]) -> str:
        if card_number is None or len(card_number) < 4:
            return "****"
        return "****-****-****-" + card_number[-4:]

    def process_payment(self, amount: Decimal, details: Optional[PaymentDetails]) -> str:
        if not self.validate_payment_details(details):
            raise PaymentProcessingFailed("Invalid credit card payment details")

        logger.info(
            f"Processing credit card payment of {amount} for {details.customer_name} "
            f"with card {self.mask_card_number(details.card_number)}"
        )

        # simulated gateway, a real one would return its own reference
        transaction_id = f"CC-{uuid.uuid4()}"
        logger.info(f"Credit card payment successful. Transaction ID: {transaction_id}")
        return transaction_id

    def refund_payment(
        self, transaction_id: str, amount: Decimal, details: Optional[PaymentDetails]
    ) -> str:
        logger.info(f"Processing credit card refund of {amount} for transaction: {transaction_id}")
        refund_id = f"REF-{uuid.uuid4()}"
        logger.info(f"Credit card refund successful. Refund ID: {refund_id}")
        return refund_id


class PayPalPaymentStrategy(PaymentStrategy):
    name = "paypal"

    def validate_payment_details(self, details: Optional[PaymentDetails]) -> bool:
        return details is not None and not _blank(details.paypal_email)

    def process_payment(self, amount: Decimal, details: Optional[PaymentDetails]) -> str:
        if not self.validate_payment_details(details):
            raise PaymentProcessingFailed("Invalid PayPal payment details")

        logger.info(f"Processing PayPal payment of {amount} for {details.customer_name}")
        logger.info(f"PayPal account: {details.paypal_email}")

        transaction_id = f"PP-{uuid.uuid4()}"
        logger.info(f"PayPal payment successful. Transaction ID: {transaction_id}")
        return transaction_id

    def refund_payment(
        self, transaction_id: str, amount: Decimal, details: Optional[PaymentDetails]
    ) -> str:
        logger.info(f"Processing PayPal refund of {amount} for transaction: {transaction_id}")
        refund_id = f"PREF-{uuid.uuid4()}"
        logger.info(f"PayPal refund successful. Refund ID: {refund_id}")
        return refund_id


class PaymentService:
    """
    Dispatches payments to the strategy registered under the method name.
    Lookup is case-insensitive and ignores spaces, '_' and '-'.
    """

    def __init__(self, strategies: Iterable[PaymentStrategy] = ()):
        self._strategies: Dict[str, PaymentStrategy] = {}
        for strategy in strategies:
            self.register(strategy)

    def register(self, strategy: PaymentStrategy) -> None:
        key = normalize_method(strategy.name)
        if not key:
            raise ValueError(f"Payment strategy {strategy!r} has no name")
        self._strategies[key] = strategy
        logger.info(f"Registered payment strategy: {key}")

    def available_methods(self) -> List[str]:
        return sorted(self._strategies)

    def get_strategy(self, method: Optional[str]) -> PaymentStrategy:
        strategy = self._strategies.get(normalize_method(method))
        if strategy is None:
            raise UnsupportedPaymentMethod(f"Unsupported payment method: {method}", payment_method=method)
        return strategy

    def validate(self, method: str, details: Optional[PaymentDetails]) -> bool:
        return self.get_strategy(method).validate_payment_details(details)

    def charge(self, method: str, amount: Decimal, details: Optional[PaymentDetails]) -> str:
        strategy = self.get_strategy(method)
        try:
            return strategy.process_payment(amount, details)
        except PaymentProcessingFailed:
            raise
        except Exception as e:
            logger.error(f"{strategy.name} payment processing failed: {e}", exc_info=True)
            raise PaymentProcessingFailed(f"{strategy.name} payment processing failed: {e}") from e

    def refund(
        self, method: str, transaction_id: str, amount: Decimal, details: Optional[PaymentDetails]
    ) -> str:
        strategy = self.get_strategy(method)
        try:
            return strategy.refund_payment(transaction_id, amount, details)
        except PaymentProcessingFailed:
            raise
        except Exception as e:
            logger.error(f"{strategy.name} refund processing failed: {e}", exc_info=True)
            raise PaymentProcessingFailed(f"{strategy.name} refund processing failed: {e}") from e


def build_payment_service() -> PaymentService:
    return PaymentService([CreditCardPaymentStrategy(), PayPalPaymentStrategy()])
