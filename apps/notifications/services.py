# apps/notifications/services.py
import logging
import re

from django.conf import settings
from django.core.mail import send_mail
from django.utils.safestring import mark_safe
from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from . import templates

logger = logging.getLogger(__name__)


def _base_context() -> dict:
    return {"store_name": settings.STORE_NAME}


def normalize_phone(phone: str) -> str:
    """
    Local numbers -> E.164 with the default country code,
    e.g. "06 123-45-67" -> "+24261234567" (leading 0 dropped).
    """
    number = re.sub(r"[\s-]", "", (phone or "").strip())
    if not number or number.startswith("+"):
        return number

    country_code = settings.SMS_DEFAULT_COUNTRY_CODE
    if number.startswith("0"):
        return country_code + number[1:]
    return country_code + number


# ==========================================
# TRANSPORTS
# ==========================================

def deliver_email(to: str, subject: str, text: str, html: str | None = None) -> bool:
    """
    Sends one email through the configured Django mail backend.
    Returns False instead of raising so callers decide how loud a failure is.
    """
    if not to:
        logger.warning("Email not sent: no recipient address.")
        return False

    try:
        sent = send_mail(
            subject=subject,
            message=text,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[to],
            html_message=html,
            fail_silently=False,
        )
    except Exception as e:
        logger.error(f"Failed to send email to {to}: {e}")
        return False

    if sent:
        logger.info(f"Email sent to {to}: {subject}")
    return bool(sent)


def deliver_sms(phone: str, body: str) -> bool:
    """
    Sends actual SMS using Twilio credentials from settings.
    """
    to = normalize_phone(phone)
    if not to:
        logger.warning("Cannot send SMS: no phone number.")
        return False

    account_sid = settings.TWILIO_ACCOUNT_SID
    auth_token = settings.TWILIO_AUTH_TOKEN
    from_number = settings.TWILIO_FROM_NUMBER

    if not all([account_sid, auth_token, from_number]):
        logger.warning("Twilio credentials missing in settings. SMS not sent.")
        return False

    try:
        client = Client(account_sid, auth_token)
        message = client.messages.create(body=body, from_=from_number, to=to)
        logger.info(f"SMS sent to {to}. SID: {message.sid}")
        return True
    except TwilioRestException as e:
        logger.error(f"Twilio Error sending SMS to {to}: {e}")
        return False
    except Exception as e:
        logger.exception(f"Unexpected error sending SMS: {e}")
        return False


# ==========================================
# ACCOUNT MESSAGES
# ==========================================

def send_password_reset(user, token: str) -> bool:
    context = _base_context()
    context.update(
        username=user.username,
        reset_link=f"{settings.FRONTEND_URL.rstrip('/')}/reset-password?token={token}",
        ttl_minutes=settings.PASSWORD_RESET_TTL_MINUTES,
    )
    return deliver_email(
        user.email,
        templates.render(templates.PASSWORD_RESET_SUBJECT, **context),
        templates.render(templates.PASSWORD_RESET_TEXT, **context),
        templates.render_email(templates.PASSWORD_RESET_HTML, **context),
    )


def send_two_factor_code(user, method: str, code: str) -> bool:
    context = _base_context()
    context.update(
        username=user.username,
        code=code,
        ttl_minutes=settings.TWO_FACTOR_TTL_MINUTES,
    )
    if method == "sms":
        return deliver_sms(user.phone, templates.render(templates.TWO_FACTOR_SMS, **context))

    return deliver_email(
        user.email,
        templates.render(templates.TWO_FACTOR_SUBJECT, **context),
        templates.render(templates.TWO_FACTOR_TEXT, **context),
        templates.render_email(templates.TWO_FACTOR_HTML, **context),
    )


# ==========================================
# ORDER MESSAGES
# ==========================================

def expiration_policy_text() -> str:
    return (
        f"Pickup policy: {settings.PERISHABLE_EXPIRY_HOURS}h for perishable products, "
        f"{settings.NON_PERISHABLE_EXPIRY_HOURS}h for non-perishable products."
    )


def order_confirmation_messages(order) -> dict:
    """
    Renders subject/text/html/sms for an order record (items and slot hydrated).
    """
    context = _base_context()
    slot = order.pickup_slot
    context.update(
        customer_name=order.customer_name,
        order_number=order.order_number,
        total=order.amount,
        currency=order.currency,
        pickup_date=slot.date if slot else "",
        pickup_time=f"{slot.time_from} - {slot.time_to}" if slot else "",
        pickup_code=order.temp_pickup_code,
        expiration_policy=expiration_policy_text(),
    )
    # Each row is escaped as it renders; the joined rows go into the layout as-is
    context["rows"] = mark_safe("".join(
        templates.render_html(
            templates.ORDER_ITEM_ROW,
            name=item.product_name,
            quantity=item.quantity,
            subtotal=item.subtotal,
            currency=order.currency,
        )
        for item in order.items
    ))
    return {
        "subject": templates.render(templates.ORDER_CONFIRMATION_SUBJECT, **context),
        "text": templates.render(templates.ORDER_CONFIRMATION_TEXT, **context),
        "html": templates.render_email(templates.ORDER_CONFIRMATION_HTML, **context),
        "sms": templates.render(templates.ORDER_CONFIRMATION_SMS, **context),
    }


def send_order_confirmation_email(order, email: str) -> bool:
    """Synchronous send, used when the caller reports the outcome."""
    messages = order_confirmation_messages(order)
    return deliver_email(email, messages["subject"], messages["text"], messages["html"])


def queue_order_confirmation(order, email: str = "") -> None:
    """
    Fire-and-forget confirmation after checkout.
    A broker outage is logged, never surfaced to the customer.
    """
    from .tasks import send_email_task, send_sms_task

    messages = order_confirmation_messages(order)

    if email:
        try:
            send_email_task.delay(email, messages["subject"], messages["text"], messages["html"])
        except Exception as e:
            logger.error(f"Could not queue confirmation email for {order.order_number}: {e}")

    if order.customer_phone:
        try:
            send_sms_task.delay(order.customer_phone, messages["sms"])
        except Exception as e:
            logger.error(f"Could not queue confirmation SMS for {order.order_number}: {e}")
