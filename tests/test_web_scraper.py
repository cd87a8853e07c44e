import pytest
import requests

from proposal_engine.services.web_scraper import WebScraper

HOME = b"""<html><head><title> Acme Furniture </title>
<meta name="description" content="Handmade furniture"></head>
<body>
<a href="/about-us">About</a><a href="javascript:void(0)">Menu</a><a href="https://shop.example/">Shop</a>
<img src="/logo.png">
<div class="product-card">Oak   table</div>
<section id="services">White glove delivery</section>
<div class="team">Jane Doe, founder</div>
</body></html>"""
ABOUT = b"<html><body><p>Founded in 1990.</p><p>Family owned.</p></body></html>"


class FakeResponse:
    def __init__(self, url, content, status=200):
        self.url = url
        self.content = content
        self.text = content.decode("utf-8")
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")


class FakeSession:
    def __init__(self, pages):
        self.pages = pages
        self.headers = {}
        self.requested = []

    def get(self, url, timeout, allow_redirects):
        self.requested.append(url)
        status, content = self.pages.get(url, (404, b""))
        return FakeResponse(url, content, status)


def test_scrape_extracts_page_details() -> None:
    session = FakeSession({"https://acme.example/": (200, HOME),
                           "https://acme.example/about-us": (200, ABOUT)})

    scraped = WebScraper(session=session).scrape_company_website("https://acme.example/")

    assert scraped.title == "Acme Furniture"
    assert scraped.meta_description == "Handmade furniture"
    assert scraped.links == ["https://acme.example/about-us", "https://shop.example/"]
    assert scraped.images == ["https://acme.example/logo.png"]
    assert scraped.products == ["Oak table"]
    assert scraped.services == ["White glove delivery"]
    assert scraped.team_info == ["Jane Doe, founder"]
    assert scraped.about_text == "Founded in 1990. Family owned."
    assert "Mozilla" in session.headers["User-Agent"]


def test_about_page_failure_is_tolerated() -> None:
    session = FakeSession({"https://acme.example/": (200, HOME)})

    scraped = WebScraper(session=session).scrape_company_website("https://acme.example/")

    assert scraped.about_text == ""


def test_home_page_errors_propagate() -> None:
    with pytest.raises(requests.HTTPError):
        WebScraper(session=FakeSession({})).scrape_company_website("https://missing.example/")
