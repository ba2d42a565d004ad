# storefront/api/routers/products.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import require_admin
from storefront.data.database import get_db
from storefront.domain.schemas import ProductCreate, ProductOut, ProductUpdate, RestockIn
from storefront.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["products"])


def get_service(db: Session):
    return ProductService(db)


@router.get("/", response_model=List[ProductOut])
def list_products(db: Session = Depends(get_db)):
    return get_service(db).list_active()


@router.get("/low-stock", response_model=List[ProductOut], dependencies=[Depends(require_admin)])
def low_stock(threshold: Optional[int] = Query(None, ge=0), db: Session = Depends(get_db)):
    svc = get_service(db)
    if threshold is None:
        return svc.low_stock()
    return svc.low_stock(threshold)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return get_service(db).get_product(product_id)


@router.post("/", response_model=ProductOut, status_code=201, dependencies=[Depends(require_admin)])
def create_product(payload: ProductCreate, db: Session = Depends(get_db)):
    return get_service(db).create_product(payload)


@router.put("/{product_id}", response_model=ProductOut, dependencies=[Depends(require_admin)])
def update_product(product_id: int, payload: ProductUpdate, db: Session = Depends(get_db)):
    return get_service(db).update_product(product_id, payload)


@router.delete("/{product_id}", response_model=ProductOut, dependencies=[Depends(require_admin)])
def deactivate_product(product_id: int, db: Session = Depends(get_db)):
    """Products are never deleted, only hidden from the catalog."""
    return get_service(db).deactivate(product_id)


@router.post("/{product_id}/restock", response_model=ProductOut, dependencies=[Depends(require_admin)])
def restock(product_id: int, payload: RestockIn, db: Session = Depends(get_db)):
    return get_service(db).restock(product_id, payload.quantity)
