"""Render-time proxy for figure images hosted by bioRxiv."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from urllib.parse import urlparse

import requests

from .config import DEFAULT_IMAGE_ALLOWED_HOSTS
from .exceptions import ImageFetchError, ImageSourceNotAllowedError

logger = logging.getLogger(__name__)

PROXY_USER_AGENT = "Mozilla/5.0 (compatible; PaperExplainer/1.0)"
DEFAULT_CONTENT_TYPE = "image/png"
CACHE_MAX_AGE_SEC = 86_400


@dataclass(frozen=True)
class ProxiedImage:
    content: bytes
    content_type: str
    headers: dict[str, str] = field(default_factory=dict)


def is_allowed_host(url: str, allowed_hosts: tuple[str, ...]) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in {"http", "https"}:
        return False
    host = (parsed.hostname or "").lower().rstrip(".")
    if not host:
        return False
    return any(host == allowed or host.endswith(f".{allowed}") for allowed in allowed_hosts)


class ImageProxy:
    """Fetch allow-listed images and return them with long-lived cache headers."""

    def __init__(
        self,
        allowed_hosts: tuple[str, ...] = DEFAULT_IMAGE_ALLOWED_HOSTS,
        timeout_sec: float = 30.0,
        referer: str = "https://www.biorxiv.org/",
        trust_env: bool = False,
        session: requests.Session | None = None,
    ) -> None:
        self.allowed_hosts = tuple(host.lower() for host in allowed_hosts)
        self.timeout_sec = timeout_sec
        self.referer = referer
        self.session = session or requests.Session()
        self.session.trust_env = trust_env

    def fetch(self, url: str) -> ProxiedImage:
        if not url:
            raise ImageSourceNotAllowedError("Missing image URL")
        if not is_allowed_host(url, self.allowed_hosts):
            raise ImageSourceNotAllowedError(f"Invalid image source: {url}")

        try:
            response = self.session.get(
                url,
                headers={
                    "User-Agent": PROXY_USER_AGENT,
                    "Accept": "image/*",
                    "Referer": self.referer,
                },
                timeout=self.timeout_sec,
            )
        except requests.RequestException as exc:
            logger.warning("Error proxying image %s: %s", url, exc)
            raise ImageFetchError("Failed to fetch image", status_code=502) from exc

        if not response.ok:
            raise ImageFetchError("Failed to fetch image", status_code=response.status_code)

        content_type = response.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE
        return ProxiedImage(
            content=response.content,
            content_type=content_type,
            headers={
                "Content-Type": content_type,
                "Cache-Control": f"public, max-age={CACHE_MAX_AGE_SEC}",
                "Access-Control-Allow-Origin": "*",
            },
        )
