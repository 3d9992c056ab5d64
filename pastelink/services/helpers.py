from __future__ import annotations

import re
import secrets
import string
from collections.abc import Mapping
from typing import Optional
from urllib.parse import urlsplit


# 64 URL-safe symbols, 6 bits of entropy per character.
ID_ALPHABET = string.ascii_letters + string.digits + "_-"
ID_LENGTH = 10

_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def generate_paste_id(length: int = ID_LENGTH) -> str:
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))


def is_well_formed_id(paste_id: str) -> bool:
    return bool(_ID_PATTERN.match(paste_id))


def _origin_of(url: str) -> Optional[str]:
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}"


def resolve_base_url(
    headers: Mapping[str, str],
    *,
    scheme: str = "http",
    fallback: Optional[str] = None,
) -> Optional[str]:
    """
    Work out the origin a share link should point at.

    Preference order: ``Origin`` header, the origin of ``Referer``, the
    request scheme plus ``Host``, then the configured fallback.
    """
    origin = headers.get("Origin")
    # Browsers send the literal string "null" for opaque origins.
    if origin and origin != "null":
        return origin.rstrip("/")

    referer = headers.get("Referer")
    if referer:
        referer_origin = _origin_of(referer)
        if referer_origin:
            return referer_origin

    host = headers.get("Host")
    if host:
        return f"{scheme}://{host}"

    if fallback:
        return fallback.rstrip("/")
    return None


def share_url(base_url: str, paste_id: str) -> str:
    return f"{base_url}/p/{paste_id}"
