import logging
from urllib.parse import urlencode

from django.conf import settings

logger = logging.getLogger(__name__)

PROVIDERS = {
    "momo": "MTN Mobile Money",
}
DEFAULT_PROVIDER = "Visa/Mastercard"


class PaymentService:
    """
    Mock gateway: hands back a hosted-payment URL, nothing is charged or verified.
    """

    @staticmethod
    def initiate(order_id: str, method: str) -> dict:
        query = urlencode({"order": order_id, "method": method})
        payment_url = f"{settings.MOCK_PAYMENT_BASE_URL.rstrip('/')}/pay?{query}"

        logger.info(f"Mock payment initiated for order {order_id} via {method}")
        return {
            "payment_url": payment_url,
            "provider": PROVIDERS.get(method, DEFAULT_PROVIDER),
        }
