from decimal import Decimal
from unittest.mock import MagicMock, patch

from django.core import mail
from django.test import TestCase, override_settings

from apps.storage import records

from . import services
from .tasks import send_email_task, send_sms_task


def make_order(**overrides):
    fields = dict(
        id="order-1",
        order_number="GC-1700000000000-ABC123",
        customer_name="Awa",
        customer_phone="06 123 45 67",
        pickup_slot_id="slot-1",
        status="paid",
        amount=Decimal("4500.00"),
        currency="XAF",
        temp_pickup_code="K7P2QX9M",
        items=[
            records.OrderItem(
                id="item-1",
                order_id="order-1",
                product_id="p-1",
                product_name="Pain de mie",
                product_price=Decimal("1500.00"),
                quantity=3,
                subtotal=Decimal("4500.00"),
            ),
        ],
        pickup_slot=records.PickupSlot(id="slot-1", date="2026-03-14", time_from="10:00", time_to="12:00"),
    )
    fields.update(overrides)
    return records.Order(**fields)


@override_settings(SMS_DEFAULT_COUNTRY_CODE="+242")
class NormalizePhoneTests(TestCase):
    def test_local_number_gets_country_code(self):
        self.assertEqual(services.normalize_phone("06 123-45-67"), "+24261234567")

    def test_number_without_leading_zero(self):
        self.assertEqual(services.normalize_phone("61234567"), "+24261234567")

    def test_international_number_is_kept(self):
        self.assertEqual(services.normalize_phone("+33 6 12 34 56 78"), "+33612345678")

    def test_blank(self):
        self.assertEqual(services.normalize_phone("  "), "")


@override_settings(STORE_NAME="Test Market", PERISHABLE_EXPIRY_HOURS=24, NON_PERISHABLE_EXPIRY_HOURS=48)
class OrderConfirmationTests(TestCase):
    def test_messages_carry_order_details(self):
        messages = services.order_confirmation_messages(make_order())

        self.assertEqual(messages["subject"], "Test Market - Order GC-1700000000000-ABC123 confirmed")
        self.assertIn("K7P2QX9M", messages["text"])
        self.assertIn("2026-03-14, 10:00 - 12:00", messages["text"])
        self.assertIn("Pain de mie", messages["html"])
        self.assertIn("24h", messages["text"])
        self.assertIn("K7P2QX9M", messages["sms"])

    def test_customer_values_are_escaped_in_html(self):
        order = make_order(customer_name='<a href="http://evil">Click</a>')
        order.items[0].product_name = "<b>Pain</b>"

        messages = services.order_confirmation_messages(order)

        self.assertNotIn('<a href="http://evil">', messages["html"])
        self.assertIn("&lt;a href=&quot;http://evil&quot;&gt;Click&lt;/a&gt;", messages["html"])
        # Row markup survives, the product name inside it does not
        self.assertIn("<tr><td>&lt;b&gt;Pain&lt;/b&gt;</td>", messages["html"])
        self.assertIn("<table", messages["html"])
        # Plain text is not HTML and keeps the value as typed
        self.assertIn('<a href="http://evil">Click</a>', messages["text"])

    def test_send_confirmation_email(self):
        sent = services.send_order_confirmation_email(make_order(), "awa@example.com")

        self.assertTrue(sent)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["awa@example.com"])
        # HTML alternative alongside the plain text body
        self.assertEqual(mail.outbox[0].alternatives[0][1], "text/html")

    def test_no_recipient(self):
        self.assertFalse(services.send_order_confirmation_email(make_order(), ""))
        self.assertEqual(len(mail.outbox), 0)

    @patch("apps.notifications.tasks.send_sms_task.delay")
    @patch("apps.notifications.tasks.send_email_task.delay")
    def test_queue_dispatches_email_and_sms(self, mock_email, mock_sms):
        services.queue_order_confirmation(make_order(), "awa@example.com")

        mock_email.assert_called_once()
        self.assertEqual(mock_email.call_args[0][0], "awa@example.com")
        mock_sms.assert_called_once()
        self.assertEqual(mock_sms.call_args[0][0], "06 123 45 67")

    @patch("apps.notifications.tasks.send_sms_task.delay")
    @patch("apps.notifications.tasks.send_email_task.delay", side_effect=ConnectionError("broker down"))
    def test_broker_outage_is_swallowed(self, mock_email, mock_sms):
        services.queue_order_confirmation(make_order(), "awa@example.com")

        mock_email.assert_called_once()
        mock_sms.assert_called_once()


@override_settings(TWILIO_ACCOUNT_SID="AC123", TWILIO_AUTH_TOKEN="secret", TWILIO_FROM_NUMBER="+15550001111")
class SmsDeliveryTests(TestCase):
    @patch("apps.notifications.services.Client")
    def test_sms_goes_through_twilio(self, mock_client_cls):
        client = MagicMock()
        client.messages.create.return_value = MagicMock(sid="SM123")
        mock_client_cls.return_value = client

        self.assertTrue(services.deliver_sms("06 123 45 67", "hello"))
        mock_client_cls.assert_called_once_with("AC123", "secret")
        client.messages.create.assert_called_once_with(body="hello", from_="+15550001111", to="+24261234567")

    @override_settings(TWILIO_ACCOUNT_SID=None)
    @patch("apps.notifications.services.Client")
    def test_missing_credentials_skip_sending(self, mock_client_cls):
        self.assertFalse(services.deliver_sms("06 123 45 67", "hello"))
        mock_client_cls.assert_not_called()

    @patch("apps.notifications.services.Client", side_effect=RuntimeError("network"))
    def test_provider_error_returns_false(self, mock_client_cls):
        self.assertFalse(services.deliver_sms("06 123 45 67", "hello"))


class TaskTests(TestCase):
    def test_email_task_reports_delivery(self):
        self.assertTrue(send_email_task("awa@example.com", "Subject", "Body"))
        self.assertEqual(mail.outbox[0].subject, "Subject")

    @override_settings(TWILIO_ACCOUNT_SID=None, TWILIO_AUTH_TOKEN=None, TWILIO_FROM_NUMBER=None)
    def test_sms_task_without_credentials(self):
        self.assertFalse(send_sms_task("06 123 45 67", "hello"))
