import logging

from fastapi import APIRouter, Request

from ..email_service import send_booking_reminder
from ..shared.responses import error_response, internal_error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.post("/send-reminder")
async def send_reminder(request: Request):
    """Send a booking reminder by email, and by SMS when a phone number is given"""
    try:
        body = await request.json()
        if not isinstance(body, dict):
            body = {}

        user_email = body.get("userEmail")
        booking_details = body.get("bookingDetails")
        if not user_email or not booking_details:
            return error_response("Missing required fields", 400)

        result = await send_booking_reminder(
            user_email,
            body.get("userName") or "Client",
            body.get("userPhone") or "",
            booking_details,
        )
        if not result.success:
            logger.warning(f"⚠️ Reminder to {user_email} not delivered: {result.error}")

        return {"success": True}
    except Exception as e:
        return internal_error_response("Error sending reminder", e)
