"""
Group Customer Token Codec

Sibling services of the financial group never see customer identifiers.
They hold an opaque token, base64 over one of:

    GCT_<phone>_<issuer>...   group customer token
    CI_<phone>_<issuer>...    customer info token
    010-1234-5678             bare dashed phone number

The phone number (digits only) is the sole join key back to a customer.
"""

import base64
import binascii
import re
from typing import Optional

from .exceptions import TokenFormatError
from .logging_config import get_logger


GROUP_TOKEN_PREFIX = "GCT_"
CUSTOMER_INFO_PREFIX = "CI_"
SEGMENT_SEPARATOR = "_"

DASHED_PHONE_PATTERN = re.compile(r"^\d{3}-\d{4}-\d{4}$")

logger = get_logger("retail_banking.tokens")


def normalize_phone(phone: str) -> str:
    """Strip dashes and whitespace; the result must be all digits"""
    if phone is None:
        raise TokenFormatError("Phone number is missing")
    digits = re.sub(r"[\s-]", "", phone)
    if not digits.isdigit():
        raise TokenFormatError(f"Invalid phone number: {phone!r}")
    return digits


def _decode_text(token: str) -> str:
    """Base64-decode the token, falling back to the raw text"""
    try:
        return base64.b64decode(token, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return token


def decode_to_phone_number(token: str) -> str:
    """
    Extract the customer's phone number from a token.

    Raises:
        TokenFormatError: token is empty or has neither shape
    """
    if token is None or not token.strip():
        raise TokenFormatError("Customer token is empty")

    text = _decode_text(token.strip())

    if SEGMENT_SEPARATOR in text:
        parts = text.split(SEGMENT_SEPARATOR)
        phone = parts[1]
    elif DASHED_PHONE_PATTERN.match(text):
        phone = text
    else:
        raise TokenFormatError(f"Invalid customer token: {text!r}")

    if not phone:
        raise TokenFormatError(f"Customer token carries no phone number: {text!r}")
    return normalize_phone(phone)


def try_decode_phone_number(token: str, default_phone: Optional[str] = None) -> Optional[str]:
    """
    Lenient variant of decode_to_phone_number.

    Returns default_phone (absent unless the caller supplies one) instead of
    raising when the token is unparseable.
    """
    try:
        return decode_to_phone_number(token)
    except TokenFormatError as e:
        logger.warning("Unparseable customer token, using fallback identity: %s", e)
        return default_phone


def encode_group_token(phone: str, issuer_suffix: str) -> str:
    """Build a base64 group customer token for a phone number"""
    raw = f"{GROUP_TOKEN_PREFIX}{normalize_phone(phone)}{SEGMENT_SEPARATOR}{issuer_suffix}"
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def resolve_group_customer_token(raw_token: str, issuer_suffix: str) -> str:
    """
    Turn an inbound base64 token into a decoded group customer token.

    CI_/GCT_ tokens pass through decoded; a bare dashed phone number is
    wrapped into a synthesized GCT_ token.
    """
    if raw_token is None or not raw_token.strip():
        raise TokenFormatError("Customer token is empty")

    try:
        text = base64.b64decode(raw_token.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise TokenFormatError(f"Customer token is not valid base64: {e}") from e

    if text.startswith(CUSTOMER_INFO_PREFIX) or text.startswith(GROUP_TOKEN_PREFIX):
        return text

    if DASHED_PHONE_PATTERN.match(text):
        return f"{GROUP_TOKEN_PREFIX}{normalize_phone(text)}{SEGMENT_SEPARATOR}{issuer_suffix}"

    raise TokenFormatError(f"Invalid group customer token: {text!r}")
