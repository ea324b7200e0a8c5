import pytest
import requests

from paperexplainer.exceptions import ImageFetchError, ImageSourceNotAllowedError
from paperexplainer.image_proxy import ImageProxy, is_allowed_host


class FakeResponse:
    def __init__(self, status_code, content=b"", headers=None):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}

    @property
    def ok(self):
        return 200 <= self.status_code < 300


class FakeSession:
    def __init__(self, responses):
        self.responses = responses
        self.calls = []
        self.trust_env = True

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def test_is_allowed_host_matches_domain_and_subdomains():
    hosts = ("biorxiv.org",)

    assert is_allowed_host("https://www.biorxiv.org/content/f1.jpg", hosts)
    assert is_allowed_host("http://biorxiv.org/f1.jpg", hosts)
    assert not is_allowed_host("https://evilbiorxiv.org/f1.jpg", hosts)
    assert not is_allowed_host("https://biorxiv.org.evil.com/f1.jpg", hosts)
    assert not is_allowed_host("file:///etc/passwd", hosts)
    assert not is_allowed_host("biorxiv.org/f1.jpg", hosts)


@pytest.mark.parametrize("url", ["", "https://example.com/a.png"])
def test_disallowed_urls_never_reach_the_network(url):
    session = FakeSession(responses=[])
    proxy = ImageProxy(session=session)

    with pytest.raises(ImageSourceNotAllowedError):
        proxy.fetch(url)

    assert session.calls == []


def test_fetch_returns_content_with_cache_headers():
    session = FakeSession(responses=[FakeResponse(200, b"\x89PNG", {"Content-Type": "image/jpeg"})])
    proxy = ImageProxy(session=session, timeout_sec=3)

    image = proxy.fetch("https://www.biorxiv.org/content/biorxiv/early/f1.jpg")

    assert image.content == b"\x89PNG"
    assert image.content_type == "image/jpeg"
    assert image.headers["Cache-Control"] == "public, max-age=86400"
    assert session.calls[0]["headers"]["Referer"] == "https://www.biorxiv.org/"
    assert session.calls[0]["timeout"] == 3
    assert session.trust_env is False


def test_fetch_defaults_content_type():
    session = FakeSession(responses=[FakeResponse(200, b"data")])

    image = ImageProxy(session=session).fetch("https://www.biorxiv.org/f1")

    assert image.content_type == "image/png"


def test_fetch_maps_upstream_failures_to_status_codes():
    session = FakeSession(
        responses=[FakeResponse(404), requests.ConnectionError("down")]
    )
    proxy = ImageProxy(session=session)

    with pytest.raises(ImageFetchError) as not_found:
        proxy.fetch("https://www.biorxiv.org/missing.jpg")
    with pytest.raises(ImageFetchError) as unreachable:
        proxy.fetch("https://www.biorxiv.org/missing.jpg")

    assert not_found.value.status_code == 404
    assert unreachable.value.status_code == 502
