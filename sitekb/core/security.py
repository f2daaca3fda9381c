"""Security utilities for API authentication and fetch targets."""

import ipaddress
from typing import Annotated
from urllib.parse import urlsplit

from fastapi import Header, HTTPException, status

from sitekb.core.config import settings

BLOCKED_HOSTNAMES = {"localhost", "metadata.google.internal"}


async def verify_api_key(x_api_key: Annotated[str, Header()]) -> str:
    """Verify API key from header."""
    if x_api_key != settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )
    return x_api_key


def is_internal_host(url: str) -> bool:
    """True when the URL's host is a literal private, loopback, link-local or reserved address.

    Hostnames are not resolved; only IP literals and well-known local names are caught.
    """
    host = (urlsplit(url).hostname or "").lower()
    if not host or host in BLOCKED_HOSTNAMES:
        return True
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return False
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_multicast
        or ip.is_unspecified
    )


def ensure_public_url(url: str) -> str:
    """Reject fetch targets that point into the host's own network."""
    if is_internal_host(url):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Refusing to fetch internal address: {url}",
        )
    return url
