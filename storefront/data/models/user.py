from sqlalchemy import Column, String

from storefront.data.database import Base
from storefront.domain.enums import UserType


class UserModel(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=True)
    type = Column(String(20), nullable=False, default=UserType.CUSTOMER.value)
