"""Checkout entry point: turn a cart into a PIX charge and a pending order."""
import secrets
import time
from decimal import Decimal

import structlog

from guiche import config, order_store
from guiche.errors import PersistenceError, ValidationError
from guiche.freepay_service import ChargeItem, ChargeRequest, Customer, create_pix_charge
from guiche.payload import encode_context, format_timestamp, only_digits, to_cents
from guiche.schemas import PaymentRequest
from guiche.utmify_service import AttributionEvent, send_order_event

logger = structlog.get_logger(component="payments")


def new_provisional_id() -> str:
    return f"PIX_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


def validate(request: PaymentRequest) -> dict:
    """Check the request and return the normalised customer fields."""
    if request.amount is None or request.amount <= 0:
        raise ValidationError("amount must be greater than zero")

    name = request.customer_name.strip()
    if not name:
        raise ValidationError("customerName is required")

    email = request.customer_email.strip()
    if "@" not in email:
        raise ValidationError("customerEmail must be a valid e-mail address")

    cpf = only_digits(request.customer_cpf)
    if len(cpf) != 11:
        raise ValidationError("customerCpf must have 11 digits")

    phone = only_digits(request.customer_phone)
    if len(phone) < 10:
        raise ValidationError("customerPhone must have at least 10 digits")

    if not request.items:
        raise ValidationError("items must not be empty")
    for item in request.items:
        if item.quantity < 1:
            raise ValidationError(f"quantity for {item.name!r} must be at least 1")
        if item.unit_price < 0:
            raise ValidationError(f"price for {item.name!r} must not be negative")

    items_total = sum((item.unit_price * item.quantity for item in request.items), Decimal("0"))
    if to_cents(items_total) != to_cents(request.amount):
        raise ValidationError(
            f"amount {request.amount} does not match the items total {items_total}"
        )

    return {"name": name, "email": email, "cpf": cpf, "phone": phone}


def create_pix_payment(request: PaymentRequest) -> dict:
    customer = validate(request)
    provisional_id = new_provisional_id()
    created_at = format_timestamp()
    amount_in_cents = to_cents(request.amount)

    products = [
        {
            "id": f"item-{index}",
            "name": item.name,
            "quantity": item.quantity,
            "priceInCents": to_cents(item.unit_price),
        }
        for index, item in enumerate(request.items, start=1)
    ]
    context = {
        "provisionalId": provisional_id,
        "createdAt": created_at,
        "customerName": customer["name"],
        "customerEmail": customer["email"],
        "customerPhone": customer["phone"],
        "customerCpf": customer["cpf"],
        "products": products,
    }

    charge = create_pix_charge(
        ChargeRequest(
            amount_in_cents=amount_in_cents,
            customer=Customer(
                name=customer["name"],
                email=customer["email"],
                document_number=customer["cpf"],
                phone=customer["phone"],
            ),
            items=[
                ChargeItem(
                    title=item.name,
                    unit_price_in_cents=to_cents(item.unit_price),
                    quantity=item.quantity,
                )
                for item in request.items
            ],
            expiry_days=config.pix_expiry_days(),
        ),
        metadata={"external_id": provisional_id, "context": encode_context(context)},
    )

    # The charge exists at FreePay from here on; nothing below may fail the call.
    transaction_id = charge.transaction_id or provisional_id
    try:
        order_store.create_pending(
            transaction_id=transaction_id,
            provisional_id=provisional_id,
            customer=customer,
            items=[
                {"name": item.name, "quantity": item.quantity, "unit_price": item.unit_price}
                for item in request.items
            ],
            total_amount=request.amount,
        )
    except PersistenceError:
        logger.exception("pending_order_not_saved", transaction_id=transaction_id)

    result = send_order_event(
        AttributionEvent(
            order_id=transaction_id,
            status="waiting_payment",
            customer={
                "name": customer["name"],
                "email": customer["email"],
                "phone": customer["phone"],
                "document": customer["cpf"],
            },
            products=products,
            total_price_in_cents=amount_in_cents,
            created_at=created_at,
        )
    )
    logger.info(
        "pix_payment_created",
        transaction_id=transaction_id,
        utmify_notified=result.get("success", False),
    )

    return {
        "qrCode": charge.qr_code_url,
        "copyPasteCode": charge.copy_paste_code,
        "transactionId": transaction_id,
        "status": charge.status,
    }
