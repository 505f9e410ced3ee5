"""
Request dependencies shared by route modules.

Identity comes from the hosting platform, which forwards the signed-in
user's email in the X-User-Email header.
"""

from typing import Optional
from fastapi import Header

from exceptions import AuthenticationError


async def get_current_user(
    x_user_email: Optional[str] = Header(None, description="Acting user's email")
) -> str:
    """
    Email of the acting user.

    Raises:
        AuthenticationError: Header missing or blank
    """
    email = (x_user_email or "").strip()
    if not email:
        raise AuthenticationError("Missing X-User-Email header")
    return email


async def get_optional_user(
    x_user_email: Optional[str] = Header(None, description="Acting user's email")
) -> Optional[str]:
    """Email of the acting user when one is forwarded."""
    return (x_user_email or "").strip() or None
