"""
Gravatar avatar resolution.
"""

import hashlib
from typing import Optional

GRAVATAR_BASE_URL = "https://www.gravatar.com/avatar/"


def get_gravatar_url(
    email: Optional[str],
    size: int = 200,
    default_image: str = "mp",
) -> str:
    """
    Build the Gravatar image URL for an email address.

    The hash is MD5 of the trimmed, lower-cased address. Without an email
    the generic fallback image is requested.
    """
    if not email:
        return f"{GRAVATAR_BASE_URL}?s={size}&d={default_image}"

    digest = hashlib.md5(email.strip().lower().encode("utf-8")).hexdigest()
    return f"{GRAVATAR_BASE_URL}{digest}?s={size}&d={default_image}"


def initials(first_name: Optional[str], last_name: Optional[str]) -> str:
    """Avatar fallback text: first letter of each name."""
    return f"{(first_name or '')[:1]}{(last_name or '')[:1]}"
