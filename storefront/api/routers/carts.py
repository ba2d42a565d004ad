# storefront/api/routers/carts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import Principal, get_order_service, get_principal
from storefront.data.database import get_db
from storefront.domain.schemas import CartOut, CheckoutIn, ItemIn, MergeCartIn, OrderOut, QuantityIn
from storefront.services.cart_service import CartService
from storefront.services.order_service import OrderService
from storefront.utils.exceptions import AccessDenied

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(db: Session):
    return CartService(db)


@router.get("/", response_model=CartOut)
def get_cart(principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    return get_service(db).get_cart(principal.owner_id)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    return get_service(db).add_item(principal.owner_id, payload.product_id, payload.quantity)


@router.put("/items/{product_id}", response_model=CartOut)
def update_quantity(
    product_id: int,
    payload: QuantityIn,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    return get_service(db).update_quantity(principal.owner_id, product_id, payload.quantity)


@router.delete("/items/{product_id}", response_model=CartOut)
def remove_item(
    product_id: int,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    return get_service(db).remove_item(principal.owner_id, product_id)


@router.delete("/", response_model=CartOut)
def clear_cart(principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    return get_service(db).clear(principal.owner_id)


@router.post("/merge", response_model=CartOut)
def merge_cart(
    payload: MergeCartIn,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    """Moves the guest cart `guest_id` into the caller's cart (e.g. right after login)."""
    # knowing a guest id is what grants access to that cart; carts of
    # registered users (numeric ids) are never a merge source
    if payload.guest_id.strip().isdigit():
        raise AccessDenied(f"Not a guest cart: {payload.guest_id}")
    return get_service(db).merge_into(payload.guest_id, principal.owner_id)


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
