import logging
from celery import shared_task

from .services import deliver_email, deliver_sms

logger = logging.getLogger(__name__)


@shared_task(ignore_result=True)
def send_email_task(to: str, subject: str, text: str, html: str | None = None):
    if not deliver_email(to, subject, text, html):
        logger.error(f"Email to {to} was not delivered: {subject}")
        return False
    return True


@shared_task(ignore_result=True)
def send_sms_task(phone: str, body: str):
    if not deliver_sms(phone, body):
        logger.error(f"SMS to {phone} was not delivered")
        return False
    return True
