import json
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import urlencode

import httpx
import structlog

from guiche import config
from guiche.errors import GatewayRejectionError
from guiche.payload import probe

logger = structlog.get_logger(component="freepay")

TRANSACTION_ID_PATHS = ("id", "transaction_id", "Id", "data.id", "data.transaction_id")
COPY_PASTE_PATHS = (
    "pix.qr_code",
    "pix.qrcode",
    "pix.copy_paste",
    "qr_code",
    "qrcode",
    "copy_paste",
    "pix_code",
    "Pix.QrCode",
    "data.pix.qr_code",
    "data.qr_code",
)
QR_IMAGE_PATHS = (
    "pix.qr_code_url",
    "pix.qrcode_url",
    "qr_code_url",
    "qrcode_url",
    "Pix.QrCodeUrl",
    "data.pix.qr_code_url",
    "data.qr_code_url",
)
STATUS_PATHS = ("status", "Status", "data.status")
EXPIRY_PATHS = ("pix.expiration_date", "pix.expires_at", "expires_at", "data.pix.expiration_date")

DESCRIPTION_MAX_LENGTH = 255


@dataclass
class Customer:
    name: str
    email: str
    document_number: str
    phone: str


@dataclass
class ChargeItem:
    title: str
    unit_price_in_cents: int
    quantity: int


@dataclass
class ChargeRequest:
    amount_in_cents: int
    customer: Customer
    items: list[ChargeItem]
    expiry_days: int = 1


@dataclass
class PixCharge:
    copy_paste_code: str
    qr_code_url: str
    transaction_id: Optional[str] = None
    status: str = "pending"
    expires_at: Optional[str] = None
    raw: dict = field(default_factory=dict)


def qr_code_url_for(copy_paste_code: str) -> str:
    return config.QR_CODE_RENDER_URL + "?" + urlencode({"size": "300x300", "data": copy_paste_code})


def describe_items(items: list[ChargeItem]) -> str:
    """Human-readable summary shown on the payer's bank statement, e.g. ``2x Arena - Inteira``."""
    return ", ".join(f"{item.quantity}x {item.title}" for item in items)[:DESCRIPTION_MAX_LENGTH]


def build_charge_body(request: ChargeRequest, metadata: dict) -> dict[str, Any]:
    body = {
        "amount": request.amount_in_cents,
        "payment_method": "pix",
        "description": describe_items(request.items),
        "customer": {
            "name": request.customer.name,
            "email": request.customer.email,
            "phone": request.customer.phone,
            "document": {
                "type": "cpf",
                "number": request.customer.document_number,
            },
        },
        "items": [
            {
                "title": item.title,
                "unit_price": item.unit_price_in_cents,
                "quantity": item.quantity,
                "tangible": False,
            }
            for item in request.items
        ],
        "pix": {"expires_in_days": request.expiry_days},
        "metadata": metadata,
    }
    postback_url = config.postback_url()
    if postback_url:
        body["postback_url"] = postback_url
    return body


def parse_charge_response(data: dict) -> PixCharge:
    if data.get("success") is False:
        raise GatewayRejectionError("FreePay refused the charge", payload=data)

    copy_paste_code = probe(data, *COPY_PASTE_PATHS)
    if not copy_paste_code:
        raise GatewayRejectionError("FreePay response has no PIX copy-paste code", payload=data)

    transaction_id = probe(data, *TRANSACTION_ID_PATHS)
    return PixCharge(
        copy_paste_code=str(copy_paste_code),
        qr_code_url=probe(data, *QR_IMAGE_PATHS) or qr_code_url_for(str(copy_paste_code)),
        transaction_id=str(transaction_id) if transaction_id is not None else None,
        status=str(probe(data, *STATUS_PATHS) or "pending"),
        expires_at=probe(data, *EXPIRY_PATHS),
        raw=data,
    )


def create_pix_charge(request: ChargeRequest, metadata: dict) -> PixCharge:
    public_key, secret_key = config.freepay_credentials()
    body = build_charge_body(request, metadata)

    logger.info("creating_pix_charge", amount_in_cents=request.amount_in_cents, items=len(request.items))
    try:
        response = httpx.post(
            config.freepay_api_url(),
            json=body,
            auth=(public_key, secret_key),
            headers={"Content-Type": "application/json"},
            timeout=config.http_timeout(),
        )
    except httpx.HTTPError as exc:
        logger.error("freepay_unreachable", error=str(exc))
        raise GatewayRejectionError(f"FreePay request failed: {exc}") from exc

    text = response.text
    logger.info("freepay_response", status_code=response.status_code, body=text)

    try:
        data = json.loads(text) if text else None
    except ValueError:
        data = None
    if not isinstance(data, dict):
        raise GatewayRejectionError(
            "Invalid response from payment provider",
            payload=text,
            status_code=response.status_code,
        )

    if not response.is_success:
        raise GatewayRejectionError(
            "Failed to create PIX payment",
            payload=data,
            status_code=response.status_code,
        )

    return parse_charge_response(data)
