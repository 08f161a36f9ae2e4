from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from guiche import order_store
from guiche.auth import check_admin_password, issue_admin_token, verify_token
from guiche.payload import only_digits
from guiche.payments import create_pix_payment
from guiche.schemas import AdminLoginRequest, OrderOut, PaymentRequest

router = APIRouter()


@router.post("/pix-payments")
def create_pix_payment_api(request: PaymentRequest):
    return create_pix_payment(request)


@router.get("/orders/{transaction_id}")
def get_order_api(transaction_id: str):
    order = order_store.get_order(transaction_id)
    if not order:
        raise HTTPException(status_code=404, detail="order not found")
    return OrderOut.from_order(order)


@router.get("/orders")
def search_orders_api(cpf: Optional[str] = None, email: Optional[str] = None):
    cpf = only_digits(cpf)
    email = (email or "").strip()
    if not cpf and not email:
        raise HTTPException(status_code=400, detail="cpf or email is required")

    orders = order_store.find_paid_orders(cpf=cpf or None, email=email or None)
    return {"items": [OrderOut.from_order(order) for order in orders]}


@router.post("/admin/login")
def admin_login(request: AdminLoginRequest):
    if not check_admin_password(request.password):
        raise HTTPException(status_code=401, detail="Invalid password")
    return {"success": True, "token": issue_admin_token()}


@router.get("/admin/orders")
def admin_orders(limit: int = 200, auth=Depends(verify_token)):
    orders = order_store.list_orders(limit=limit)
    return {
        "items": [OrderOut.from_order(order) for order in orders],
        "limit": limit,
    }
