"""
Shared validators for input sanitization.
Centralized so schemas and services apply the same rules.
"""

import calendar
import re
from datetime import date
from typing import Optional

from shared.config.constants import Limits

# Blocked path schemes for menu images
BLOCKED_SCHEMES = {"javascript", "data", "file", "ftp", "mailto", "tel"}

ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg"}

CARD_NUMBER_PATTERN = r"^\d{4}\s\d{4}\s\d{4}\s\d{4}$"
EXPIRY_PATTERN = r"^(0[1-9]|1[0-2])/\d{2}$"
CVV_PATTERN = r"^\d{3}$"


def validate_image_path(path: Optional[str]) -> Optional[str]:
    """
    Validate a menu image path or URL.

    Returns the stripped value, or None when empty.

    Raises:
        ValueError: If the path uses a blocked scheme or is not an image
    """
    if path is None:
        return None

    path = path.strip()
    if not path:
        return None

    scheme = path.split(":", 1)[0].lower() if ":" in path else ""
    if scheme in BLOCKED_SCHEMES:
        raise ValueError(f"Image path scheme not allowed: {scheme}")

    lower = path.lower().split("?", 1)[0]
    if not any(lower.endswith(ext) for ext in ALLOWED_IMAGE_EXTENSIONS):
        raise ValueError("Image path must point to an image file")

    return path


def sanitize_instructions(text: Optional[str]) -> Optional[str]:
    """
    Normalize special instructions for a line.

    Whitespace-only text becomes None so that "" and None merge as the
    same line.
    """
    if text is None:
        return None
    text = text.strip()
    if not text:
        return None
    if len(text) > Limits.MAX_INSTRUCTIONS:
        raise ValueError(
            f"Special instructions cannot exceed {Limits.MAX_INSTRUCTIONS} characters"
        )
    return text


def validate_card_number(number: str) -> str:
    if not re.match(CARD_NUMBER_PATTERN, number or ""):
        raise ValueError("Please enter a valid 16-digit card number")
    return number


def validate_cvv(cvv: str) -> str:
    if not re.match(CVV_PATTERN, cvv or ""):
        raise ValueError("CVV must be exactly 3 digits")
    return cvv


def validate_expiry(expiry: str, today: date) -> str:
    """
    Validate an MM/YY expiry.

    A card is usable through the last day of its expiry month.
    """
    if not re.match(EXPIRY_PATTERN, expiry or ""):
        raise ValueError("Please enter expiry date in MM/YY format (01-12/YY)")

    month_str, year_str = expiry.split("/")
    month = int(month_str)
    year = int(year_str) + 2000
    last_day = calendar.monthrange(year, month)[1]
    if date(year, month, last_day) < today:
        raise ValueError("Card has expired. Please enter a valid expiry date.")
    return expiry


def validate_cardholder_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValueError("Cardholder name is required for card payments")
    if len(name) > Limits.MAX_NAME:
        raise ValueError(f"Cardholder name cannot exceed {Limits.MAX_NAME} characters")
    return name
