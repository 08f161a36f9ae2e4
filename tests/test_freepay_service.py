from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from guiche.errors import ConfigurationError, GatewayRejectionError
from guiche.freepay_service import (
    ChargeItem,
    ChargeRequest,
    Customer,
    create_pix_charge,
    describe_items,
    qr_code_url_for,
)


def charge_request():
    return ChargeRequest(
        amount_in_cents=15000,
        customer=Customer(
            name="Maria Silva",
            email="maria@example.com",
            document_number="12345678901",
            phone="11987654321",
        ),
        items=[ChargeItem(title="Arena - Inteira", unit_price_in_cents=15000, quantity=1)],
        expiry_days=1,
    )


def test_missing_credentials_fail_before_any_request(http, monkeypatch):
    monkeypatch.delenv("FREEPAY_SECRET_KEY")

    with pytest.raises(ConfigurationError):
        create_pix_charge(charge_request(), metadata={})

    assert http.calls == []


def test_request_body_and_credentials(http):
    create_pix_charge(charge_request(), metadata={"external_id": "PIX_1_abc"})

    call = http.sent_to("freepay")[0]
    assert call["auth"] == ("pk_test", "sk_test")
    body = call["json"]
    assert body["amount"] == 15000
    assert body["payment_method"] == "pix"
    assert body["description"] == "1x Arena - Inteira"
    assert body["customer"]["document"] == {"type": "cpf", "number": "12345678901"}
    assert body["items"] == [
        {"title": "Arena - Inteira", "unit_price": 15000, "quantity": 1, "tangible": False}
    ]
    assert body["metadata"] == {"external_id": "PIX_1_abc"}
    assert body["postback_url"] == "https://ingressos.example.com/pix-webhook"


def test_derived_qr_code_url_decodes_to_the_copy_paste_code(http):
    charge = create_pix_charge(charge_request(), metadata={})

    assert charge.copy_paste_code
    assert charge.transaction_id == "abc123"
    query = parse_qs(urlparse(charge.qr_code_url).query)
    assert query["data"] == [charge.copy_paste_code]


@pytest.mark.parametrize("code", [
    "00020126580014br.gov.bcb.pix",
    "code with spaces & ampersands + plus = equals",
    "áéí/?#%",
])
def test_qr_code_url_round_trip(code):
    assert parse_qs(urlparse(qr_code_url_for(code)).query)["data"] == [code]


def test_gateway_qr_image_is_kept(http):
    http.freepay = httpx.Response(200, json={
        "id": "tx_9",
        "status": "pending",
        "pix": {"qr_code": "000201", "qr_code_url": "https://cdn.freepay/qr/tx_9.png"},
    })

    charge = create_pix_charge(charge_request(), metadata={})

    assert charge.qr_code_url == "https://cdn.freepay/qr/tx_9.png"


def test_snake_case_flat_response_is_understood(http):
    http.freepay = httpx.Response(200, json={"transaction_id": 77, "copy_paste": "000201"})

    charge = create_pix_charge(charge_request(), metadata={})

    assert charge.transaction_id == "77"
    assert charge.copy_paste_code == "000201"
    assert charge.status == "pending"


def test_non_json_body_is_a_gateway_rejection(http):
    http.freepay = httpx.Response(502, text="<html>Bad Gateway</html>")

    with pytest.raises(GatewayRejectionError) as excinfo:
        create_pix_charge(charge_request(), metadata={})

    assert excinfo.value.payload == "<html>Bad Gateway</html>"
    assert excinfo.value.status_code == 502


def test_empty_body_is_a_gateway_rejection(http):
    http.freepay = httpx.Response(200, text="")

    with pytest.raises(GatewayRejectionError):
        create_pix_charge(charge_request(), metadata={})


def test_http_error_keeps_provider_payload(http):
    http.freepay = httpx.Response(400, json={"message": "CPF inválido"})

    with pytest.raises(GatewayRejectionError) as excinfo:
        create_pix_charge(charge_request(), metadata={})

    assert excinfo.value.payload == {"message": "CPF inválido"}
    assert excinfo.value.document_related


def test_success_false_is_a_rejection(http):
    http.freepay = httpx.Response(200, json={"success": False, "message": "limit exceeded"})

    with pytest.raises(GatewayRejectionError) as excinfo:
        create_pix_charge(charge_request(), metadata={})

    assert not excinfo.value.document_related


def test_missing_copy_paste_code_is_a_rejection(http):
    http.freepay = httpx.Response(200, json={"id": "abc123", "status": "pending", "pix": {}})

    with pytest.raises(GatewayRejectionError):
        create_pix_charge(charge_request(), metadata={})


def test_network_error_is_a_rejection(http):
    http.freepay = httpx.ConnectError("connection refused")

    with pytest.raises(GatewayRejectionError):
        create_pix_charge(charge_request(), metadata={})


def test_description_lists_items_and_is_capped():
    items = [ChargeItem(title="Arena - Inteira", unit_price_in_cents=15000, quantity=2),
             ChargeItem(title="Camarote", unit_price_in_cents=30000, quantity=1)]

    assert describe_items(items) == "2x Arena - Inteira, 1x Camarote"
    assert len(describe_items(items * 40)) == 255


def test_echoed_customer_document_is_not_a_document_hint(http):
    http.freepay = httpx.Response(422, json={
        "message": "amount below minimum",
        "customer": {"document": {"type": "cpf", "number": "12345678901"}},
    })

    with pytest.raises(GatewayRejectionError) as excinfo:
        create_pix_charge(charge_request(), metadata={})

    assert not excinfo.value.document_related


def test_field_errors_on_the_document_are_a_document_hint(http):
    http.freepay = httpx.Response(422, json={"errors": {"customer.document.number": ["is invalid"]}})

    with pytest.raises(GatewayRejectionError) as excinfo:
        create_pix_charge(charge_request(), metadata={})

    assert excinfo.value.document_related
