# storefront/api/deps.py
from dataclasses import dataclass, field
from functools import lru_cache
from typing import FrozenSet, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.enums import UserRole
from storefront.services.notification_service import NotificationService, build_notification_service
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService, build_payment_service
from storefront.utils.exceptions import AccessDenied, InvalidArgument


@dataclass(frozen=True)
class Principal:
    """
    Identity resolved upstream (gateway / auth service) and passed in headers.
    `owner_id` is a user id or a guest session id.
    """

    owner_id: str
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return UserRole.ADMIN.value in self.roles

    @property
    def user_id(self) -> int:
        try:
            return int(self.owner_id)
        except ValueError:
            raise InvalidArgument(f"A registered user id is required, got: {self.owner_id}")


def get_principal(
    x_user_id: str = Header(..., min_length=1, max_length=64),
    x_user_roles: Optional[str] = Header(None),
) -> Principal:
    roles = frozenset(r.strip().upper() for r in (x_user_roles or "").split(",") if r.strip())
    return Principal(owner_id=x_user_id.strip(), roles=roles)


def require_admin(principal: Principal = Depends(get_principal)) -> Principal:
    if not principal.is_admin:
        raise AccessDenied("Admin role required")
    return principal


@lru_cache
def get_payment_service() -> PaymentService:
    return build_payment_service()


@lru_cache
def get_notification_service() -> NotificationService:
    return build_notification_service()


def get_order_service(
    db: Session = Depends(get_db),
    payments: PaymentService = Depends(get_payment_service),
    notifications: NotificationService = Depends(get_notification_service),
) -> OrderService:
    return OrderService(db, payment_service=payments, notification_service=notifications)
