"""Email address extraction and normalization."""

import re
from typing import Iterable

from .errors import ValidationError

EMAIL_PATTERN = r"[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"
EMAIL_RE = re.compile(EMAIL_PATTERN)


def normalize_email(value: str) -> str:
    return value.strip().lower()


def extract_emails(value: str) -> set[str]:
    """Find every address in a header-ish string like 'Name <addr>'."""
    return {normalize_email(match) for match in EMAIL_RE.findall(value)}


def extract_emails_from_list(values: Iterable[str]) -> set[str]:
    result: set[str] = set()
    for value in values:
        result |= extract_emails(value)
    return result


def contains_address(values: Iterable[str], target: str) -> bool:
    """Check whether `target` appears in any of the address strings."""
    return normalize_email(target) in extract_emails_from_list(values)


def is_valid_email(value: str) -> bool:
    return EMAIL_RE.fullmatch(value.strip()) is not None


def parse_address_list(raw: str) -> list[str]:
    """Split a comma/semicolon separated list of bare addresses.

    Raises ValidationError if the list is empty or any entry is malformed.
    """
    addresses = [entry.strip() for entry in re.split(r"[;,]", raw)]
    addresses = [entry for entry in addresses if entry]
    if not addresses:
        raise ValidationError("At least one email address is required.")
    invalid = [entry for entry in addresses if not is_valid_email(entry)]
    if invalid:
        raise ValidationError(f"Invalid email address: {', '.join(invalid)}")
    return addresses
