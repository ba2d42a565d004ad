# storefront/api/routers/payments.py
from fastapi import APIRouter, Depends

from storefront.api.deps import get_payment_service
from storefront.domain.schemas import PaymentMethodsOut
from storefront.services.payment_service import PaymentService

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("/methods", response_model=PaymentMethodsOut)
def payment_methods(payments: PaymentService = Depends(get_payment_service)):
    return {"methods": payments.available_methods()}
