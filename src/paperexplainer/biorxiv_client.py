"""bioRxiv details API and JATS XML client."""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import quote, urljoin

import requests

from .models import PaperMetadata

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class BioRxivClient:
    """Thin wrapper for bioRxiv metadata and full-text endpoints.

    Every call is attempted once. Expected failures (not found, HTTP errors,
    network errors, malformed payloads) return ``None`` instead of raising.
    """

    def __init__(
        self,
        api_base_url: str = "https://api.biorxiv.org",
        site_base_url: str = "https://www.biorxiv.org",
        timeout_sec: float = 30.0,
        trust_env: bool = False,
        session: requests.Session | None = None,
    ) -> None:
        self.api_base_url = api_base_url.rstrip("/")
        self.site_base_url = site_base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()
        self.session.trust_env = trust_env

    def _build_url(self, path: str) -> str:
        return urljoin(f"{self.api_base_url}/", path.lstrip("/"))

    def details_url(self, doi: str) -> str:
        return self._build_url(f"/details/biorxiv/{quote(doi, safe='/')}/na/json")

    def resolve_jats_url(self, reference: str) -> str:
        if reference.startswith(("http://", "https://")):
            return reference
        return f"{self.site_base_url}/{reference.lstrip('/')}"

    def fetch_metadata(self, doi: str) -> PaperMetadata | None:
        """Fetch paper details; ``None`` when missing or unreachable."""

        url = self.details_url(doi)
        try:
            response = self.session.get(url, timeout=self.timeout_sec)
        except requests.RequestException as exc:
            logger.warning("bioRxiv API request failed for %s: %s", doi, exc)
            return None

        if not response.ok:
            logger.warning("bioRxiv API returned HTTP %s for %s", response.status_code, doi)
            return None

        try:
            payload = response.json()
        except (json.JSONDecodeError, ValueError):
            logger.warning("bioRxiv API returned non-JSON body for %s", doi)
            return None

        metadata = parse_details_payload(payload, doi=doi)
        if metadata is None:
            logger.warning("No paper found in bioRxiv API response for %s", doi)
        return metadata

    def fetch_raw_content(self, reference: str | None) -> str | None:
        """Fetch JATS XML; ``None`` means full text is unavailable."""

        if not reference:
            return None

        url = self.resolve_jats_url(reference)
        try:
            response = self.session.get(
                url,
                headers={
                    "User-Agent": BROWSER_USER_AGENT,
                    "Accept": "application/xml, text/xml, */*",
                },
                timeout=self.timeout_sec,
            )
        except requests.RequestException as exc:
            logger.warning("Failed to fetch JATS XML from %s: %s", url, exc)
            return None

        if not response.ok:
            logger.warning(
                "Failed to fetch JATS XML from %s: HTTP %s", url, response.status_code
            )
            return None

        text = response.text
        return text if text and text.strip() else None


def parse_details_payload(payload: Any, doi: str) -> PaperMetadata | None:
    """Validate a details API payload and take its first collection record."""

    if not isinstance(payload, dict):
        return None
    collection = payload.get("collection")
    if not isinstance(collection, list) or not collection:
        return None

    record = collection[0]
    if not isinstance(record, dict):
        return None

    title = record.get("title")
    if not isinstance(title, str) or not title.strip():
        return None

    raw_authors = record.get("authors")
    authors = (
        [author.strip() for author in raw_authors.split(";") if author.strip()]
        if isinstance(raw_authors, str)
        else []
    )

    abstract = record.get("abstract")
    jats_url = record.get("jatsxml")

    return PaperMetadata(
        doi=_optional_str(record.get("doi")) or doi,
        title=title.strip(),
        authors=authors,
        abstract=abstract.strip() if isinstance(abstract, str) else "",
        jats_url=jats_url.strip() if isinstance(jats_url, str) and jats_url.strip() else None,
        license=_optional_str(record.get("license")),
        date=_optional_str(record.get("date")),
        version=_optional_str(record.get("version")),
        category=_optional_str(record.get("category")),
    )


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
