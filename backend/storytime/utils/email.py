"""Email address shape validation.

Addresses are stored and matched exactly as given; this module only
checks that a value looks like a mailbox.
"""

from __future__ import annotations

import re
from typing import Final

# Something@something.something, no whitespace and a single @ per side
EMAIL_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email_format(email: str | None) -> bool:
    """Validate email format using a simple mailbox-shape pattern.

    This does not verify that the address exists; the verification email
    does that.

    Examples:
        >>> is_valid_email_format("ann@x.com")
        True
        >>> is_valid_email_format("ann@x")
        False
        >>> is_valid_email_format("ann lee@x.com")
        False
    """
    if not email:
        return False

    return EMAIL_PATTERN.match(email) is not None


__all__ = [
    "EMAIL_PATTERN",
    "is_valid_email_format",
]
