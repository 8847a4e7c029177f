# apps/notifications/templates.py
"""
Message bodies for every outbound email / SMS.

Placeholders use ${var} (string.Template), rendered with safe_substitute so a
missing key leaves the placeholder visible instead of failing the send.
HTML bodies escape every value that is not already marked safe.
"""
from string import Template

from django.utils.html import conditional_escape
from django.utils.safestring import mark_safe

_EMAIL_STYLE = """
  body { font-family: Arial, sans-serif; background-color: #f5f5f5; }
  .container { max-width: 600px; margin: 0 auto; background-color: white; padding: 20px; border-radius: 8px; }
  .logo { font-size: 24px; font-weight: bold; color: #2563eb; text-align: center; }
  .content { line-height: 1.6; color: #333; }
  .button { display: inline-block; background-color: #2563eb; color: white; padding: 12px 24px; border-radius: 4px; text-decoration: none; }
  .code { font-size: 28px; font-weight: bold; letter-spacing: 4px; font-family: monospace; text-align: center; }
  .footer { text-align: center; color: #999; font-size: 12px; margin-top: 20px; }
"""

_EMAIL_LAYOUT = Template(
    "<!DOCTYPE html><html><head><style>" + _EMAIL_STYLE + "</style></head>"
    "<body><div class=\"container\"><div class=\"logo\">${store_name}</div>"
    "<div class=\"content\">${content}</div>"
    "<div class=\"footer\"><p>&copy; ${store_name}. All rights reserved.</p></div>"
    "</div></body></html>"
)

PASSWORD_RESET_SUBJECT = Template("${store_name} - Reset your password")
PASSWORD_RESET_HTML = Template(
    "<p>Hello ${username},</p>"
    "<p>You asked to reset your password. Use the button below to continue:</p>"
    "<p><a href=\"${reset_link}\" class=\"button\">Reset my password</a></p>"
    "<p>This link expires in ${ttl_minutes} minutes.</p>"
    "<p>If you did not ask for this, you can ignore this email.</p>"
)
PASSWORD_RESET_TEXT = Template(
    "Hello ${username},\n\n"
    "Reset your password here: ${reset_link}\n"
    "This link expires in ${ttl_minutes} minutes.\n"
)

TWO_FACTOR_SUBJECT = Template("${store_name} - Your verification code")
TWO_FACTOR_HTML = Template(
    "<p>Hello ${username},</p>"
    "<p>Here is your verification code:</p>"
    "<p class=\"code\">${code}</p>"
    "<p>This code expires in ${ttl_minutes} minutes.</p>"
)
TWO_FACTOR_TEXT = Template(
    "Hello ${username},\n\nYour verification code is ${code}. "
    "It expires in ${ttl_minutes} minutes.\n"
)
TWO_FACTOR_SMS = Template(
    "${store_name}: your verification code is ${code}. Valid ${ttl_minutes}min. Do not share it."
)

ORDER_CONFIRMATION_SUBJECT = Template("${store_name} - Order ${order_number} confirmed")
ORDER_ITEM_ROW = Template(
    "<tr><td>${name}</td><td style=\"text-align:right\">x${quantity}</td>"
    "<td style=\"text-align:right\">${subtotal} ${currency}</td></tr>"
)
ORDER_CONFIRMATION_HTML = Template(
    "<p>Hello ${customer_name},</p>"
    "<p>Thank you for your order ${order_number}. Here is the summary:</p>"
    "<table style=\"width:100%\">${rows}"
    "<tr><td colspan=\"2\" style=\"text-align:right\"><strong>Total</strong></td>"
    "<td style=\"text-align:right\"><strong>${total} ${currency}</strong></td></tr></table>"
    "<p><strong>Pickup:</strong> ${pickup_date}, ${pickup_time}</p>"
    "<p>${expiration_policy}</p>"
    "<p>Your temporary pickup code:</p><p class=\"code\">${pickup_code}</p>"
    "<p>Show this code at the pickup counter.</p>"
)
ORDER_CONFIRMATION_TEXT = Template(
    "Hello ${customer_name},\n\n"
    "Order ${order_number} is confirmed.\n"
    "Total: ${total} ${currency}\n"
    "Pickup: ${pickup_date}, ${pickup_time}\n"
    "Temporary pickup code: ${pickup_code}\n\n"
    "${expiration_policy}\n"
)
ORDER_CONFIRMATION_SMS = Template(
    "${store_name}: order ${order_number} confirmed. Pickup code: ${pickup_code}. See you soon!"
)


def render(template: Template, **context) -> str:
    return template.safe_substitute(**context)


def render_html(template: Template, **context) -> str:
    escaped = {key: conditional_escape(value) for key, value in context.items()}
    return mark_safe(template.safe_substitute(**escaped))


def render_email(content_template: Template, **context) -> str:
    """
    Wrap a rendered body in the shared HTML layout.
    """
    content = render_html(content_template, **context)
    return render_html(_EMAIL_LAYOUT, content=content, store_name=context.get("store_name", ""))
