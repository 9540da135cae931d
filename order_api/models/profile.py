from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from order_api.database import Base


class CustomerProfile(Base):
    __tablename__ = "customer_profiles"

    principal: Mapped[str] = mapped_column(String(200), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str] = mapped_column(String(40), nullable=False)
