"""Best-effort order notifications for Utmify.

Nothing in here may raise past ``send_order_event``: attribution is reporting,
not part of getting paid.
"""
import os
from dataclasses import dataclass
from typing import Optional

import httpx
import structlog

from guiche import config
from guiche.errors import AttributionError

logger = structlog.get_logger(component="utmify")

GATEWAY_FEE_RATE = 0.0299

# order-store vocabulary -> Utmify vocabulary
STATUS_MAP = {
    "pending": "waiting_payment",
    "waiting_payment": "waiting_payment",
    "paid": "paid",
    "refused": "refused",
    "refunded": "refunded",
}


@dataclass
class AttributionEvent:
    order_id: str
    status: str
    customer: dict
    products: list
    total_price_in_cents: int
    created_at: str
    approved_date: Optional[str] = None
    refunded_at: Optional[str] = None
    gateway_fee_in_cents: Optional[int] = None

    def __post_init__(self):
        if self.gateway_fee_in_cents is None:
            self.gateway_fee_in_cents = estimate_gateway_fee(self.total_price_in_cents)


def estimate_gateway_fee(total_price_in_cents: int) -> int:
    return round(total_price_in_cents * GATEWAY_FEE_RATE)


def build_payload(event: AttributionEvent) -> dict:
    status = STATUS_MAP.get(event.status)
    if status is None:
        raise AttributionError(f"unknown attribution status: {event.status}")

    customer = event.customer or {}
    return {
        "orderId": event.order_id,
        "platform": "GuicheWeb",
        "paymentMethod": "pix",
        "status": status,
        "createdAt": event.created_at,
        "approvedDate": event.approved_date,
        "refundedAt": event.refunded_at,
        "customer": {
            "name": customer.get("name") or "Cliente",
            "email": customer.get("email") or "",
            "phone": customer.get("phone") or "",
            "document": customer.get("document") or "",
            "country": "BR",
        },
        "products": [
            {
                "id": product.get("id") or "ticket",
                "name": product.get("name") or "Ingresso",
                "planId": None,
                "planName": None,
                "quantity": product.get("quantity") or 1,
                "priceInCents": product.get("priceInCents") or 0,
            }
            for product in event.products
        ],
        "trackingParameters": {
            "src": None,
            "sck": None,
            "utm_source": None,
            "utm_campaign": None,
            "utm_medium": None,
            "utm_content": None,
            "utm_term": None,
        },
        "commission": {
            "totalPriceInCents": event.total_price_in_cents,
            "gatewayFeeInCents": event.gateway_fee_in_cents,
            "userCommissionInCents": event.total_price_in_cents - event.gateway_fee_in_cents,
        },
    }


def _post(event: AttributionEvent) -> dict:
    api_key = os.getenv("UTMIFY_API_KEY")
    if not api_key:
        raise AttributionError("UTMIFY_API_KEY not configured")

    payload = build_payload(event)
    logger.info("sending_order_event", order_id=event.order_id, status=payload["status"])
    try:
        response = httpx.post(
            config.utmify_api_url(),
            json=payload,
            headers={"Content-Type": "application/json", "x-api-token": api_key},
            timeout=config.http_timeout(),
        )
    except httpx.HTTPError as exc:
        raise AttributionError(f"Utmify request failed: {exc}") from exc

    if not response.is_success:
        raise AttributionError(
            f"Utmify answered {response.status_code}: {response.text}"
        )
    logger.info("order_event_sent", order_id=event.order_id, status_code=response.status_code)
    return {"success": True, "status": response.status_code, "response": response.text}


def send_order_event(event: AttributionEvent) -> dict:
    try:
        return _post(event)
    except AttributionError as exc:
        logger.error("order_event_failed", order_id=event.order_id, error=str(exc))
        return {"success": False, "error": str(exc)}
    except Exception as exc:
        logger.exception("order_event_crashed", order_id=event.order_id)
        return {"success": False, "error": str(exc)}
