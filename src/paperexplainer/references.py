"""bioRxiv reference validation and identifier helpers."""

from __future__ import annotations

import re

DOI_PATTERN = re.compile(r"10\.\d{4,}/[^\s/?#]+")
BIORXIV_URL_PATTERN = re.compile(r"biorxiv\.org/content/10\.\d{4,}", re.IGNORECASE)
SCHEME_PATTERN = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)

CACHE_KEY_NAMESPACE = "biorxiv"


def normalize_reference(raw: str) -> str:
    """Return an absolute URL for a reference given with or without a scheme.

    The routing layer passes paper URLs wrapped in the request path, e.g.
    ``www.biorxiv.org/content/10.1101/2024.01.01.123456v1``.
    """

    reference = (raw or "").strip()
    if reference and not SCHEME_PATTERN.match(reference):
        reference = f"https://{reference.lstrip('/')}"
    return reference


def is_supported_reference(reference: str) -> bool:
    return bool(BIORXIV_URL_PATTERN.search(reference or ""))


def extract_identifier(reference: str) -> str | None:
    match = DOI_PATTERN.search(reference or "")
    return match.group(0) if match else None


def derive_cache_key(identifier: str) -> str:
    return f"{CACHE_KEY_NAMESPACE}:{identifier}"
