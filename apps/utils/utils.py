import secrets
import string
import time
from django.utils import timezone

CODE_ALPHABET = string.ascii_uppercase + string.digits


def now():
    return timezone.now()


def generate_code(length=8):
    """
    Random uppercase alphanumeric token (pickup codes, order suffixes).
    """
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def generate_order_number():
    # GC-<epoch millis>-<6 random chars>
    return f"GC-{int(time.time() * 1000)}-{generate_code(6)}"


def generate_numeric_code(digits=6):
    return str(secrets.randbelow(10 ** digits)).zfill(digits)
