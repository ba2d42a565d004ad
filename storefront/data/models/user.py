from sqlalchemy import Column, Integer, String

from storefront.data.database import Base
from storefront.domain.enums import UserRole


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True, unique=True)
    role = Column(String(20), nullable=False, default=UserRole.CUSTOMER.value)
