# storefront/api/routers/orders.py
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from storefront.api.deps import Principal, get_order_service, get_principal, require_admin
from storefront.domain.enums import OrderStatus
from storefront.domain.schemas import (
    CheckoutIn,
    CountOut,
    OrderCreate,
    OrderOut,
    OrderPage,
    OrderPaymentCreate,
    OrderStatusIn,
    PaymentStatusIn,
    RefundIn,
)
from storefront.services.order_service import OrderService
from storefront.utils.exceptions import InvalidArgument
from storefront.utils.settings import ORDERS_PAGE_SIZE

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/", response_model=OrderOut, status_code=201)
def place_order(
    payload: OrderCreate,
    principal: Principal = Depends(get_principal),
    svc: OrderService = Depends(get_order_service),
):
    """Reserves stock and creates a PENDING order, payment is settled later."""
    return svc.place_order(principal.user_id, payload.items, payload.shipping_address)


@router.post("/with-payment", response_model=OrderOut, status_code=201)
def place_order_with_payment(
    payload: OrderPaymentCreate,
    principal: Principal = Depends(get_principal),
    svc: OrderService = Depends(get_order_service),
):
    return svc.place_order_with_payment(
        principal.user_id,
        payload.items,
        payload.payment_method,
        payload.payment_details,
        payload.shipping_address,
    )


@router.post("/checkout", response_model=OrderOut, status_code=201)
def checkout(
    payload: CheckoutIn,
    principal: Principal = Depends(get_principal),
    svc: OrderService = Depends(get_order_service),
):
    return svc.place_order_from_cart(
        principal.user_id,
        payment_method=payload.payment_method,
        details=payload.payment_details,
        shipping_address=payload.shipping_address,
    )


@router.get("/mine", response_model=OrderPage)
def my_orders(
    page: int = Query(0, ge=0),
    size: int = Query(ORDERS_PAGE_SIZE, ge=1, le=100),
    principal: Principal = Depends(get_principal),
    svc: OrderService = Depends(get_order_service),
):
    return svc.list_orders_for_user(principal.user_id, page, size)


@router.get("/count", response_model=CountOut, dependencies=[Depends(require_admin)])
def count_orders(since: datetime = Query(...), svc: OrderService = Depends(get_order_service)):
    return {"count": svc.count_orders_since(since)}


@router.get("/", response_model=List[OrderOut], dependencies=[Depends(require_admin)])
def list_orders(
    status: Optional[OrderStatus] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    svc: OrderService = Depends(get_order_service),
):
    if status is not None and (start or end):
        raise InvalidArgument("Filter by status or by date range, not both")
    if status is not None:
        return svc.list_orders_by_status(status)
    if start or end:
        return svc.list_orders_between(start, end)
    return svc.list_orders()


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    principal: Principal = Depends(get_principal),
    svc: OrderService = Depends(get_order_service),
):
    if principal.is_admin:
        return svc.get_order(order_id)
    return svc.get_order(order_id, user_id=principal.user_id)


@router.put("/{order_id}/status", response_model=OrderOut, dependencies=[Depends(require_admin)])
def update_status(order_id: int, payload: OrderStatusIn, svc: OrderService = Depends(get_order_service)):
    return svc.update_status(order_id, payload.status)


@router.put("/{order_id}/payment", response_model=OrderOut, dependencies=[Depends(require_admin)])
def update_payment_status(
    order_id: int, payload: PaymentStatusIn, svc: OrderService = Depends(get_order_service)
):
    return svc.update_payment_status(order_id, payload.payment_status)


@router.post("/{order_id}/refund", response_model=OrderOut, dependencies=[Depends(require_admin)])
def refund_order(order_id: int, payload: RefundIn, svc: OrderService = Depends(get_order_service)):
    return svc.refund_order(order_id, payload.payment_details)
