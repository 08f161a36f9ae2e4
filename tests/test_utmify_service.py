import httpx

from guiche.utmify_service import AttributionEvent, build_payload, send_order_event


def paid_event(**overrides):
    fields = dict(
        order_id="abc123",
        status="paid",
        customer={"name": "Maria Silva", "email": "maria@example.com",
                  "phone": "11987654321", "document": "12345678901"},
        products=[{"id": "item-1", "name": "Arena - Inteira", "quantity": 1, "priceInCents": 15000}],
        total_price_in_cents=15000,
        created_at="2026-10-18 12:00:00",
        approved_date="2026-10-18 12:05:00",
    )
    fields.update(overrides)
    return AttributionEvent(**fields)


def test_payload_schema():
    payload = build_payload(paid_event())

    assert payload["orderId"] == "abc123"
    assert payload["paymentMethod"] == "pix"
    assert payload["status"] == "paid"
    assert payload["customer"]["country"] == "BR"
    assert payload["customer"]["document"] == "12345678901"
    assert payload["products"][0]["priceInCents"] == 15000
    assert payload["products"][0]["planId"] is None
    assert payload["trackingParameters"]["utm_source"] is None
    assert payload["commission"] == {
        "totalPriceInCents": 15000,
        "gatewayFeeInCents": 448,
        "userCommissionInCents": 14552,
    }


def test_pending_maps_to_waiting_payment():
    assert build_payload(paid_event(status="pending"))["status"] == "waiting_payment"


def test_sends_with_api_token(http):
    result = send_order_event(paid_event())

    assert result["success"] is True
    call = http.sent_to("utmify")[0]
    assert call["headers"]["x-api-token"] == "utmify_test"
    assert call["json"]["orderId"] == "abc123"


def test_missing_api_key_is_not_fatal(http, monkeypatch):
    monkeypatch.delenv("UTMIFY_API_KEY")

    result = send_order_event(paid_event())

    assert result["success"] is False
    assert http.calls == []


def test_error_response_is_reported_with_body(http):
    http.utmify = httpx.Response(422, text='{"message":"invalid document"}')

    result = send_order_event(paid_event())

    assert result["success"] is False
    assert "invalid document" in result["error"]


def test_network_error_is_not_fatal(http):
    http.utmify = httpx.ConnectError("unreachable")

    result = send_order_event(paid_event())

    assert result["success"] is False


def test_unknown_status_is_not_fatal(http):
    result = send_order_event(paid_event(status="chargeback"))

    assert result["success"] is False
    assert http.calls == []
