"""Utilities to derive resource keys from URLs and limit entries."""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlsplit

from .models import UNKNOWN_RESOURCE

_SCHEME_PREFIX = re.compile(r"^[a-z][a-z0-9+.\-]*://", re.IGNORECASE)
_WWW_PREFIX = re.compile(r"^www\.", re.IGNORECASE)


def extract_resource_key(url: Optional[str]) -> str:
    """Return the hostname for ``url``; fall back to the raw value."""
    if not url or not url.strip():
        return UNKNOWN_RESOURCE
    value = url.strip()
    try:
        hostname = urlsplit(value).hostname
    except ValueError:
        hostname = None
    if hostname:
        return hostname
    return value


def normalize_limit_key(domain: Optional[str]) -> str:
    """Canonical form used for daily-limit lookups.

    Strips any scheme, path and leading ``www.``, and lower-cases the rest,
    so ``https://www.Example.com/feed`` and ``example.com`` share a limit.
    """
    if not domain:
        return ""
    cleaned = _SCHEME_PREFIX.sub("", domain.strip().lower())
    cleaned = cleaned.split("/", 1)[0]
    cleaned = _WWW_PREFIX.sub("", cleaned)
    return cleaned.strip()
