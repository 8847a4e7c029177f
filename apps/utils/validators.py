import datetime
import re
from rest_framework import serializers


def validate_phone(value):
    pattern = r"^\+?[\d\s-]{6,20}$"
    if not re.match(pattern, str(value).strip()):
        raise serializers.ValidationError("Invalid phone number format.")
    return str(value).strip()


def validate_slot_date(value):
    """
    Pickup slot dates travel as plain YYYY-MM-DD strings.
    """
    if not re.match(r"^\d{4}-\d{2}-\d{2}$", str(value)):
        raise serializers.ValidationError("Date must be formatted as YYYY-MM-DD.")
    try:
        datetime.date.fromisoformat(str(value))
    except ValueError:
        raise serializers.ValidationError("Date is not a valid calendar day.")
    return value
