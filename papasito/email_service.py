"""
Notification Service using the Brevo REST API
Transactional emails (MJML templates) and SMS for booking notifications
"""

import logging
from datetime import date, datetime
from typing import Optional, Union

import httpx
from mjml import mjml_to_html
from pydantic import BaseModel

from . import config
from .email_templates import (
    booking_confirmation_sms,
    booking_confirmation_template,
    booking_reminder_sms,
    booking_reminder_template,
)

logger = logging.getLogger(__name__)

BREVO_TIMEOUT = 30.0
REMINDER_SUBJECT = "Rappel de votre rendez-vous - Le Papasito"
CONFIRMATION_SUBJECT = "Confirmation de votre réservation - Le Papasito"


class BrevoResponse(BaseModel):
    """Outcome of a Brevo send; failures are reported, not raised"""

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class BrevoError(Exception):
    pass


class BrevoClient:
    """Minimal Brevo client for transactional email and SMS"""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        self.api_key = api_key if api_key is not None else config.BREVO_API_KEY
        self.base_url = (base_url or config.BREVO_BASE_URL).rstrip("/")

    async def _post(self, endpoint: str, payload: dict) -> dict:
        if not self.api_key:
            raise BrevoError("Brevo API key is not configured")

        async with httpx.AsyncClient(timeout=BREVO_TIMEOUT) as client:
            response = await client.post(
                f"{self.base_url}{endpoint}",
                json=payload,
                headers={"Content-Type": "application/json", "api-key": self.api_key},
            )

        if response.is_error:
            raise BrevoError(f"Brevo API error: {response.status_code} - {response.text}")
        return response.json()

    async def send_email(
        self,
        to: list[dict],
        subject: str,
        html_content: Optional[str] = None,
        text_content: Optional[str] = None,
        template_id: Optional[int] = None,
        params: Optional[dict] = None,
        sender: Optional[dict] = None,
    ) -> BrevoResponse:
        """Send a transactional email; `to` is a list of {email, name?}"""
        payload = {
            "to": to,
            "subject": subject,
            "sender": sender
            or {"email": config.EMAIL_SENDER_ADDRESS, "name": config.EMAIL_SENDER_NAME},
        }
        if html_content is not None:
            payload["htmlContent"] = html_content
        if text_content is not None:
            payload["textContent"] = text_content
        if template_id is not None:
            payload["templateId"] = template_id
        if params is not None:
            payload["params"] = params

        try:
            result = await self._post("/smtp/email", payload)
            logger.info(f"✅ Email sent to {', '.join(r['email'] for r in to)}")
            return BrevoResponse(success=True, message_id=result.get("messageId"))
        except (BrevoError, httpx.HTTPError) as e:
            logger.error(f"❌ Error sending email: {e}")
            return BrevoResponse(success=False, error=str(e) or type(e).__name__)

    async def send_sms(
        self, recipient: str, content: str, sender: Optional[str] = None
    ) -> BrevoResponse:
        payload = {
            "sender": sender or config.SMS_SENDER,
            "recipient": recipient,
            "content": content,
        }
        try:
            result = await self._post("/transactionalSMS/sms", payload)
            logger.info(f"✅ SMS sent to {recipient}")
            return BrevoResponse(success=True, message_id=result.get("reference"))
        except (BrevoError, httpx.HTTPError) as e:
            logger.error(f"❌ Error sending SMS: {e}")
            return BrevoResponse(success=False, error=str(e) or type(e).__name__)


# Singleton instance
brevo_client = BrevoClient()


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    result = mjml_to_html(mjml_content)
    if isinstance(result, dict):
        if result.get("errors"):
            logger.warning(f"MJML compilation warnings: {result['errors']}")
        return result.get("html", "")
    # Attribute-style result
    errors = getattr(result, "errors", None)
    if errors:
        logger.warning(f"MJML compilation warnings: {errors}")
    return getattr(result, "html", str(result))


async def send_email(
    to: str, subject: str, mjml_content: str, name: Optional[str] = None
) -> BrevoResponse:
    """Compile an MJML template and send it to one recipient"""
    html_content = compile_mjml_to_html(mjml_content)
    recipient = {"email": to}
    if name:
        recipient["name"] = name
    return await brevo_client.send_email([recipient], subject, html_content=html_content)


async def send_sms(phone_number: str, content: str) -> BrevoResponse:
    return await brevo_client.send_sms(phone_number, content)


def format_booking_date(value: Union[str, date, datetime]) -> str:
    """Render a booking date as dd/mm/yyyy"""
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    return parsed.strftime("%d/%m/%Y")


def _booking_fields(booking_details: dict) -> tuple:
    """(date, start time, duration) from a bookingDetails payload"""
    if not isinstance(booking_details, dict):
        raise ValueError("bookingDetails must be an object")

    raw_date = booking_details.get("date")
    if not raw_date:
        raise ValueError("bookingDetails.date is required")

    time_slot = booking_details.get("timeSlot") or {}
    start_time = time_slot.get("startTime") if isinstance(time_slot, dict) else None
    if not start_time:
        raise ValueError("bookingDetails.timeSlot.startTime is required")

    return format_booking_date(raw_date), str(start_time), booking_details.get("duration")


async def send_booking_reminder(
    user_email: str, user_name: str, user_phone: str, booking_details: dict
) -> BrevoResponse:
    """Email reminder, plus an SMS when a phone number is known and the email went out"""
    booking_date, start_time, duration = _booking_fields(booking_details)

    mjml_content = booking_reminder_template(user_name, booking_date, start_time, duration)
    email_result = await send_email(user_email, REMINDER_SUBJECT, mjml_content, name=user_name)

    if user_phone and email_result.success:
        await send_sms(user_phone, booking_reminder_sms(booking_date, start_time))

    return email_result


async def send_booking_confirmation(
    user_email: str, user_name: str, user_phone: str, booking_details: dict
) -> BrevoResponse:
    booking_date, start_time, duration = _booking_fields(booking_details)

    mjml_content = booking_confirmation_template(user_name, booking_date, start_time, duration)
    email_result = await send_email(user_email, CONFIRMATION_SUBJECT, mjml_content, name=user_name)

    if user_phone and email_result.success:
        await send_sms(user_phone, booking_confirmation_sms(booking_date, start_time))

    return email_result
