# storefront/repos/order_repo.py
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.order import OrderModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def _select(self):
        return select(OrderModel).options(selectinload(OrderModel.items))

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.execute(
            self._select()
            .where(OrderModel.id == order_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def list_orders(self) -> List[OrderModel]:
        return list(self.db.execute(self._select().order_by(OrderModel.id)).scalars())

    def list_by_user(self, user_id: int, offset: int = 0, limit: int | None = None) -> List[OrderModel]:
        stmt = (
            self._select()
            .where(OrderModel.user_id == user_id)
            .order_by(OrderModel.order_date.desc(), OrderModel.id.desc())
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.execute(stmt).scalars())

    def count_by_user(self, user_id: int) -> int:
        return self.db.execute(
            select(func.count(OrderModel.id)).where(OrderModel.user_id == user_id)
        ).scalar_one()

    def list_by_status(self, status: str) -> List[OrderModel]:
        return list(
            self.db.execute(
                self._select().where(OrderModel.status == status).order_by(OrderModel.id)
            ).scalars()
        )

    def list_between(self, start: datetime, end: datetime) -> List[OrderModel]:
        return list(
            self.db.execute(
                self._select()
                .where(OrderModel.order_date.between(start, end))
                .order_by(OrderModel.order_date, OrderModel.id)
            ).scalars()
        )

    def count_since(self, since: datetime) -> int:
        return self.db.execute(
            select(func.count(OrderModel.id)).where(OrderModel.order_date >= since)
        ).scalar_one()

    def update_order_version(self, order_id: int, old_version: int, new_data: Dict[str, Any]) -> int:
        # optimistic locking on the version column
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
