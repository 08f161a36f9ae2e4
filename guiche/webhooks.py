"""FreePay postback handling.

Webhooks are retried by the gateway until they get a 2xx, so everything past
JSON parsing is acknowledged: store and Utmify failures end up as flags in the
response body instead of HTTP errors.
"""
import json
from datetime import datetime, timezone

import structlog

from guiche import order_store
from guiche.errors import MalformedWebhookError, PersistenceError
from guiche.payload import decode_context, format_timestamp, probe, to_cents
from guiche.utmify_service import AttributionEvent, send_order_event

logger = structlog.get_logger(component="webhooks")

TRANSACTION_ID_PATHS = ("Id", "id", "transaction_id", "TransactionId", "data.id", "data.transaction_id")
STATUS_PATHS = ("Status", "status", "data.status", "data.Status")
AMOUNT_PATHS = ("Amount", "amount", "data.amount", "data.Amount")
PAID_AT_PATHS = ("PaidAt", "paid_at", "paidAt", "data.paid_at", "data.PaidAt")
CUSTOMER_PATHS = ("Customer", "customer", "data.customer", "data.Customer")
METADATA_PATHS = ("Metadata", "metadata", "data.metadata", "data.Metadata")

PAID_STATUSES = {"paid", "approved"}
REFUNDED_STATUSES = {"refunded"}
WAITING_STATUSES = {"pending", "waiting_payment", "processing", "created"}


def parse_webhook(raw: bytes):
    try:
        return json.loads(raw)
    except ValueError as exc:
        logger.error("malformed_webhook", raw=raw.decode("utf-8", errors="replace"))
        raise MalformedWebhookError(f"webhook body is not valid JSON: {exc}", raw=raw) from exc


def classify(status) -> str | None:
    """Map a gateway status to ``paid``/``refunded``; None means no state change."""
    value = str(status or "").strip().lower()
    if value in PAID_STATUSES:
        return order_store.PAID
    if value in REFUNDED_STATUSES:
        return order_store.REFUNDED
    return None


def read_metadata(payload) -> dict:
    metadata = decode_context(probe(payload, *METADATA_PATHS))
    if "context" in metadata:
        context = decode_context(metadata["context"])
        return {**metadata, **context}
    return metadata


def read_customer(payload, metadata: dict, order) -> dict:
    customer = probe(payload, *CUSTOMER_PATHS)
    if not isinstance(customer, dict):
        customer = {}
    return {
        "name": probe(customer, "Name", "name") or metadata.get("customerName")
        or (order.customer_name if order else None),
        "email": probe(customer, "Email", "email") or metadata.get("customerEmail")
        or (order.customer_email if order else None),
        "phone": probe(customer, "Phone", "phone") or metadata.get("customerPhone")
        or (order.customer_phone if order else None),
        "document": probe(customer, "Document.Number", "document.number", "Document.number")
        or metadata.get("customerCpf") or (order.customer_cpf if order else None),
    }


def _timestamp(value) -> str | None:
    if not value:
        return None
    if isinstance(value, str):
        try:
            moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        return format_timestamp(moment)
    return str(value)


def _apply(transaction_id, provisional_id, status: str) -> tuple[str | None, str]:
    """Run mark_status, retrying with the provisional id when the gateway id is unknown."""
    candidates = [tid for tid in (transaction_id, provisional_id) if tid]
    outcome = order_store.NOT_FOUND
    for candidate in dict.fromkeys(candidates):
        outcome = order_store.mark_status(candidate, status)
        if outcome != order_store.NOT_FOUND:
            return candidate, outcome
    return transaction_id, outcome


def reconcile(payload) -> dict:
    transaction_id = probe(payload, *TRANSACTION_ID_PATHS)
    transaction_id = str(transaction_id) if transaction_id is not None else None
    raw_status = probe(payload, *STATUS_PATHS)
    metadata = read_metadata(payload)
    provisional_id = metadata.get("provisionalId") or metadata.get("external_id")

    logger.info(
        "webhook_received",
        transaction_id=transaction_id,
        status=raw_status,
        payload=payload,
    )

    status = classify(raw_status)
    if status is None:
        if str(raw_status or "").strip().lower() in WAITING_STATUSES:
            logger.info("webhook_status_without_change", transaction_id=transaction_id, status=raw_status)
        else:
            logger.warning("webhook_status_unrecognized", transaction_id=transaction_id, status=raw_status)
        return {
            "received": True,
            "status": raw_status or "unknown",
            "transactionId": transaction_id,
        }

    response = {"received": True, "status": status, "transactionId": transaction_id}

    order_id = transaction_id or provisional_id
    outcome = None
    try:
        matched_id, outcome = _apply(transaction_id, provisional_id, status)
        order_id = matched_id or order_id
        response["orderUpdated"] = outcome == order_store.UPDATED
    except PersistenceError:
        logger.exception("webhook_order_update_failed", transaction_id=transaction_id, status=status)
        response["orderUpdated"] = False
        response["persistenceError"] = True

    if outcome in (order_store.UNCHANGED, order_store.IGNORED):
        # redelivery or stale event: the attribution event went out with the first one
        response["utmifyNotified"] = False
        response["duplicate"] = True
        return response

    order = None
    if order_id:
        try:
            order = order_store.get_order(order_id)
        except PersistenceError:
            logger.exception("webhook_order_lookup_failed", transaction_id=order_id)

    if order is not None:
        # the checkout event was keyed by the gateway id
        order_id = order.transaction_id
        total_in_cents = to_cents(order.total_amount)
    else:
        total_in_cents = to_cents(probe(payload, *AMOUNT_PATHS))

    products = metadata.get("products")
    if not isinstance(products, list) or not products:
        products = [{
            "id": "ticket",
            "name": "Ingresso",
            "quantity": 1,
            "priceInCents": total_in_cents,
        }]

    now = format_timestamp()
    created_at = metadata.get("createdAt") or now
    if status == order_store.PAID:
        approved_date, refunded_at = now, None
    else:
        approved_date = metadata.get("approvedDate") or _timestamp(probe(payload, *PAID_AT_PATHS))
        refunded_at = now

    result = send_order_event(
        AttributionEvent(
            order_id=order_id or "unknown",
            status=status,
            customer=read_customer(payload, metadata, order),
            products=products,
            total_price_in_cents=total_in_cents,
            created_at=created_at,
            approved_date=approved_date,
            refunded_at=refunded_at,
        )
    )
    response["utmifyNotified"] = bool(result.get("success"))
    return response
