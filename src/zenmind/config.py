"""Startup configuration check.

Settings are read from the environment where they are used; this module
only reports what is missing so a misconfigured deploy is visible in the
first log lines instead of at the first WhatsApp message.
"""

import os
import re

from zenmind.observability.logging import get_logger
from zenmind.observability.redaction import safe_log_context

logger = get_logger(__name__)

REQUIRED_SETTINGS: tuple[str, ...] = (
    "DATABASE_URL",
    "META_ACCESS_TOKEN",
    "META_PHONE_NUMBER_ID",
    "META_VERIFY_TOKEN",
    "META_APP_SECRET",
    "OPENAI_API_KEY",
)

# International format, e.g. +5511999999999
_BUSINESS_PHONE_PATTERN = re.compile(r"^\+\d{10,15}$")


def missing_settings() -> list[str]:
    """Names of required settings that are unset or empty."""
    return [name for name in REQUIRED_SETTINGS if not os.environ.get(name)]


def business_phone_is_valid() -> bool:
    """BUSINESS_PHONE_NUMBER is optional; when set it must be international."""
    value = os.environ.get("BUSINESS_PHONE_NUMBER")
    return not value or bool(_BUSINESS_PHONE_PATTERN.match(value))


def check_settings() -> bool:
    """Log configuration problems. Returns True when nothing required is missing."""
    missing = missing_settings()
    if missing:
        logger.error(
            "missing required settings",
            extra={"extra_fields": {"missing": ",".join(missing)}},
        )

    if not business_phone_is_valid():
        logger.warning(
            "BUSINESS_PHONE_NUMBER should be in international format (+5511999999999)",
            extra={"extra_fields": safe_log_context(setting="BUSINESS_PHONE_NUMBER")},
        )

    return not missing
