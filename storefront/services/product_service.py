# storefront/services/product_service.py
from typing import List

from sqlalchemy.orm import Session

from storefront.data.database import ends_transaction
from storefront.data.models.product import ProductModel
from storefront.domain.schemas import ProductCreate, ProductUpdate
from storefront.repos.product_repo import ProductRepo
from storefront.services.inventory_service import InventoryService
from storefront.utils.exceptions import ConcurrentModification, InvalidArgument, NotFound
from storefront.utils.logging import get_logger
from storefront.utils.settings import LOW_STOCK_THRESHOLD

logger = get_logger(__name__)


class ProductService:
    """
    Catalog administration. Never writes stock_quantity itself, stock
    changes go through InventoryService.
    """

    NULLABLE_FIELDS = {"description", "image_url"}

    def __init__(self, db: Session):
        self.repo = ProductRepo(db)
        self.inventory = InventoryService(db)

    #query
    @ends_transaction
    def list_active(self) -> List[ProductModel]:
        return self.repo.list_active()

    @ends_transaction
    def get_product(self, product_id: int) -> ProductModel:
        if product_id is None:
            raise InvalidArgument("Product ID cannot be null")

        product = self.repo.get_product_live(product_id)
        if not product:
            raise NotFound(f"Product not found with id: {product_id}", product_id=product_id)
        return product

    @ends_transaction
    def low_stock(self, threshold: int = LOW_STOCK_THRESHOLD) -> List[ProductModel]:
        return self.repo.list_below_stock(threshold)

    #commands
    @ends_transaction
    def create_product(self, payload: ProductCreate) -> ProductModel:
        product = ProductModel(
            name=payload.name,
            description=payload.description,
            price=payload.price,
            stock_quantity=payload.stock_quantity,
            image_url=payload.image_url,
            active=payload.active,
            version=1,
        )
        try:
            created = self.repo.add_product(product)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Created product {created.id} ({created.name})")
        return created

    @ends_transaction
    def update_product(self, product_id: int, payload: ProductUpdate) -> ProductModel:
        product = self.get_product(product_id)

        expected_version = payload.version or product.version
        new_data = {
            k: v
            for k, v in payload.model_dump(exclude_unset=True, exclude={"version"}).items()
            if v is not None or k in self.NULLABLE_FIELDS
        }
        new_data["version"] = expected_version + 1

        rowcount = self.repo.update_product_version(
            product_id=product_id,
            old_version=expected_version,
            new_data=new_data,
        )

        # UPDATE products SET ... WHERE id = 1 AND version = 3
        if rowcount == 0:
            self.repo.rollback()
            raise ConcurrentModification(
                f"Product {product_id} was modified concurrently, expected version {expected_version}",
                product_id=product_id,
            )

        self.repo.commit()
        logger.info(f"Updated product {product_id}, new version {expected_version + 1}")
        return self.get_product(product_id)

    @ends_transaction
    def deactivate(self, product_id: int) -> ProductModel:
        product = self.get_product(product_id)
        if not product.active:
            return product
        return self.update_product(product_id, ProductUpdate(active=False))

    @ends_transaction
    def restock(self, product_id: int, quantity: int) -> ProductModel:
        return self.inventory.restock(product_id, quantity)
