from celery import shared_task
import logging

from apps.storage import get_storage
from .services import OrderService

logger = logging.getLogger(__name__)


@shared_task
def expire_overdue_orders():
    """
    Runs every 15 minutes.
    Paid / preparing / ready orders past their pickup window are cancelled,
    their stock goes back on the shelf and the slot seat is released.
    """
    count = OrderService.expire_overdue_orders(get_storage())
    if count:
        logger.info(f"Expired {count} overdue orders")
    return f"Expired {count} orders"
