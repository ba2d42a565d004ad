# storefront/repos/product_repo.py
from typing import Any, Dict, List

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def get_product_live(self, product_id: int) -> ProductModel | None:
        # bypass the identity map, another transaction may have changed the row
        return self.db.execute(
            select(ProductModel)
            .where(ProductModel.id == product_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_product_for_update(self, product_id: int) -> ProductModel | None:
        # SELECT ... FOR UPDATE, held until the surrounding transaction ends
        return self.db.execute(
            select(ProductModel)
            .where(ProductModel.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def list_active(self) -> List[ProductModel]:
        return list(
            self.db.execute(
                select(ProductModel).where(ProductModel.active.is_(True)).order_by(ProductModel.id)
            ).scalars()
        )

    def list_below_stock(self, threshold: int) -> List[ProductModel]:
        return list(
            self.db.execute(
                select(ProductModel)
                .where(ProductModel.stock_quantity < threshold)
                .order_by(ProductModel.stock_quantity, ProductModel.id)
            ).scalars()
        )

    def add_product(self, product: ProductModel) -> ProductModel:
        self.db.add(product)
        self.db.flush()
        return product

    def update_product_version(self, product_id: int, old_version: int, new_data: Dict[str, Any]) -> int:
        # optimistic locking: UPDATE ... WHERE id = ? AND version = ?
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id, ProductModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
