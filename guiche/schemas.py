from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CartItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    quantity: int
    unit_price: Decimal = Field(alias="price")


class PaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: Decimal
    customer_name: str = Field("", alias="customerName")
    customer_email: str = Field("", alias="customerEmail")
    customer_cpf: str = Field("", alias="customerCpf")
    customer_phone: str = Field("", alias="customerPhone")
    items: list[CartItem] = []


class AdminLoginRequest(BaseModel):
    password: str


class OrderOut(BaseModel):
    transactionId: str
    status: str
    customerName: str
    customerEmail: str
    items: list
    totalAmount: Decimal
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None

    @classmethod
    def from_order(cls, order) -> "OrderOut":
        return cls(
            transactionId=order.transaction_id,
            status=order.status,
            customerName=order.customer_name,
            customerEmail=order.customer_email,
            items=order.items,
            totalAmount=order.total_amount,
            createdAt=order.created_at.isoformat() if order.created_at else None,
            updatedAt=order.updated_at.isoformat() if order.updated_at else None,
        )
