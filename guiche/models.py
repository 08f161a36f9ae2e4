from datetime import datetime, timezone

from sqlalchemy import Column, String, Numeric, DateTime, JSON
from guiche.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Order(Base):
    __tablename__ = "orders"

    transaction_id = Column(String, primary_key=True)   # FreePay id, or provisional_id
    provisional_id = Column(String, index=True)          # PIX_<millis>_<random>
    customer_name = Column(String, nullable=False)
    customer_email = Column(String, index=True, nullable=False)
    customer_cpf = Column(String(11), index=True, nullable=False)
    customer_phone = Column(String, nullable=False)
    items = Column(JSON, nullable=False)                 # [{name, quantity, unit_price}]
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String, nullable=False, default="pending")  # pending | paid | refunded
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
