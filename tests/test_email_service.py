import json

import httpx
import pytest
import respx

from papasito import email_service
from papasito.email_service import (
    BrevoClient,
    format_booking_date,
    send_booking_confirmation,
    send_booking_reminder,
)
from papasito.email_templates import booking_confirmation_template, booking_reminder_template

BASE_URL = "https://api.brevo.com/v3"
BOOKING = {"date": "2025-01-15T10:00:00.000Z", "timeSlot": {"startTime": "14:00"}, "duration": 2}


@pytest.fixture
def brevo(monkeypatch):
    client = BrevoClient(api_key="test-key", base_url=BASE_URL)
    monkeypatch.setattr(email_service, "brevo_client", client)
    monkeypatch.setattr(email_service, "compile_mjml_to_html", lambda mjml: "<html>ok</html>")
    return client


def test_format_booking_date():
    assert format_booking_date("2025-01-15") == "15/01/2025"
    assert format_booking_date("2025-01-15T10:00:00.000Z") == "15/01/2025"


def test_reminder_template_escapes_user_values():
    mjml = booking_reminder_template("<b>Léa</b>", "15/01/2025", "<i>14:00</i>", 2)

    assert "&lt;b&gt;Léa&lt;/b&gt;" in mjml
    assert "<i>" not in mjml
    assert "<mj-preview>Votre rendez-vous de demain à &lt;i&gt;14:00&lt;/i&gt;</mj-preview>" in mjml
    assert "15/01/2025" in mjml
    assert "2 heure(s)" in mjml


def test_confirmation_template_escapes_date():
    mjml = booking_confirmation_template("Léa", "<s>15/01/2025</s>", "14:00", None)

    assert "<s>" not in mjml
    assert "Réservation confirmée le &lt;s&gt;15/01/2025&lt;/s&gt;" in mjml
    assert "heure(s)" not in mjml


def test_reminder_template_compiles_to_html():
    html = email_service.compile_mjml_to_html(
        booking_reminder_template("Léa", "15/01/2025", "14:00", 2)
    )

    assert "<html" in html
    assert "Rappel de rendez-vous" in html


@pytest.mark.asyncio
async def test_send_email_success():
    client = BrevoClient(api_key="test-key", base_url=BASE_URL)

    with respx.mock(base_url=BASE_URL) as router:
        route = router.post("/smtp/email").mock(
            return_value=httpx.Response(201, json={"messageId": "<msg-1@brevo>"})
        )
        result = await client.send_email([{"email": "lea@example.com"}], "Hi", html_content="<p/>")

    assert result.success is True
    assert result.message_id == "<msg-1@brevo>"
    request = route.calls.last.request
    assert request.headers["api-key"] == "test-key"
    payload = json.loads(request.content)
    assert payload["sender"] == {"email": "noreply@lepapasito.com", "name": "Le Papasito"}
    assert payload["htmlContent"] == "<p/>"


@pytest.mark.asyncio
async def test_send_email_http_error_is_reported():
    client = BrevoClient(api_key="test-key", base_url=BASE_URL)

    with respx.mock(base_url=BASE_URL) as router:
        router.post("/smtp/email").mock(return_value=httpx.Response(401, text="Key not found"))
        result = await client.send_email([{"email": "lea@example.com"}], "Hi", html_content="x")

    assert result.success is False
    assert result.error == "Brevo API error: 401 - Key not found"


@pytest.mark.asyncio
async def test_missing_api_key_is_reported_without_calling_brevo():
    client = BrevoClient(api_key="", base_url=BASE_URL)

    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        route = router.post("/transactionalSMS/sms")
        result = await client.send_sms("+33600000000", "Hello")

    assert result.success is False
    assert result.error == "Brevo API key is not configured"
    assert not route.called


@pytest.mark.asyncio
async def test_send_sms_returns_reference():
    client = BrevoClient(api_key="test-key", base_url=BASE_URL)

    with respx.mock(base_url=BASE_URL) as router:
        route = router.post("/transactionalSMS/sms").mock(
            return_value=httpx.Response(201, json={"reference": "sms-ref-1"})
        )
        result = await client.send_sms("+33600000000", "Hello")

    assert result.message_id == "sms-ref-1"
    assert json.loads(route.calls.last.request.content) == {
        "sender": "LePapasito",
        "recipient": "+33600000000",
        "content": "Hello",
    }


@pytest.mark.asyncio
async def test_reminder_sends_email_then_sms(brevo):
    with respx.mock(base_url=BASE_URL) as router:
        email_route = router.post("/smtp/email").mock(
            return_value=httpx.Response(201, json={"messageId": "m-1"})
        )
        sms_route = router.post("/transactionalSMS/sms").mock(
            return_value=httpx.Response(201, json={"reference": "s-1"})
        )
        result = await send_booking_reminder("lea@example.com", "Léa", "+33600000000", BOOKING)

    assert result.success is True
    email = json.loads(email_route.calls.last.request.content)
    assert email["subject"] == "Rappel de votre rendez-vous - Le Papasito"
    assert email["to"] == [{"email": "lea@example.com", "name": "Léa"}]
    sms = json.loads(sms_route.calls.last.request.content)
    assert sms["content"] == "Le Papasito: Rappel de votre RDV demain 15/01/2025 à 14:00. À bientôt!"


@pytest.mark.asyncio
async def test_reminder_without_phone_sends_no_sms(brevo):
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        router.post("/smtp/email").mock(return_value=httpx.Response(201, json={"messageId": "m"}))
        sms_route = router.post("/transactionalSMS/sms")
        await send_booking_reminder("lea@example.com", "Léa", "", BOOKING)

    assert not sms_route.called


@pytest.mark.asyncio
async def test_failed_email_sends_no_sms(brevo):
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        router.post("/smtp/email").mock(return_value=httpx.Response(500, text="oops"))
        sms_route = router.post("/transactionalSMS/sms")
        result = await send_booking_reminder("lea@example.com", "Léa", "+33600000000", BOOKING)

    assert result.success is False
    assert not sms_route.called


@pytest.mark.asyncio
async def test_confirmation_subject_and_sms(brevo):
    with respx.mock(base_url=BASE_URL) as router:
        email_route = router.post("/smtp/email").mock(
            return_value=httpx.Response(201, json={"messageId": "m-2"})
        )
        sms_route = router.post("/transactionalSMS/sms").mock(
            return_value=httpx.Response(201, json={"reference": "s-2"})
        )
        await send_booking_confirmation("lea@example.com", "Léa", "+33600000000", BOOKING)

    email = json.loads(email_route.calls.last.request.content)
    assert email["subject"] == "Confirmation de votre réservation - Le Papasito"
    sms = json.loads(sms_route.calls.last.request.content)
    assert sms["content"] == (
        "Le Papasito: Votre réservation du 15/01/2025 à 14:00 est confirmée. À bientôt!"
    )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "details, message",
    [
        ({"timeSlot": {"startTime": "14:00"}}, "bookingDetails.date is required"),
        ({"date": "2025-01-15"}, "bookingDetails.timeSlot.startTime is required"),
    ],
)
async def test_reminder_requires_date_and_start_time(brevo, details, message):
    with pytest.raises(ValueError, match=message):
        await send_booking_reminder("lea@example.com", "Léa", "", details)
