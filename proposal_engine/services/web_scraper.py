"""
Company website scraping using requests and Beautiful Soup.
"""
import logging
import re
from typing import List, Optional
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from proposal_engine.core.models import ScrapedData

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

PRODUCT_SELECTOR = '.product, [class*="product"], [id*="product"]'
SERVICE_SELECTOR = '.service, [class*="service"], [id*="service"]'
TEAM_SELECTOR = '.team, [class*="team"], [id*="team"]'


class WebScraper:
    """Extract the text a proposal needs from a company's home page and about page."""

    def __init__(self, timeout: int = 30, about_timeout: int = 15,
                 session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.about_timeout = about_timeout
        self.headers = {
            'User-Agent': 'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.9',
            'Connection': 'keep-alive',
            'Upgrade-Insecure-Requests': '1'
        }
        self.session = session or requests.Session()
        self.session.headers.update(self.headers)

    @staticmethod
    def _texts(soup: BeautifulSoup, selector: str) -> List[str]:
        texts = []
        for element in soup.select(selector):
            text = re.sub(r'\s+', ' ', element.get_text(separator=' ', strip=True)).strip()
            if text:
                texts.append(text)
        return texts

    def _fetch_about_text(self, links: List[str]) -> str:
        for link in links:
            if 'about' not in link.lower():
                continue
            try:
                response = self.session.get(link, timeout=self.about_timeout, allow_redirects=True)
                response.raise_for_status()
            except requests.exceptions.RequestException as e:
                logger.warning(f"⚠️ Could not load about page {link}: {e}")
                return ''
            about_soup = BeautifulSoup(response.content, 'html.parser')
            return ' '.join(p.get_text(strip=True) for p in about_soup.find_all('p'))
        return ''

    def scrape_company_website(self, url: str) -> ScrapedData:
        """Scrape a company home page. Request errors propagate to the caller."""
        logger.info(f"🌐 Scraping company website: {url}")
        response = self.session.get(url, timeout=self.timeout, allow_redirects=True)
        response.raise_for_status()

        page_content = response.text
        soup = BeautifulSoup(response.content, 'html.parser')

        title = soup.title.get_text(strip=True) if soup.title else ''
        meta_tag = soup.find('meta', attrs={'name': 'description'})
        meta_description = meta_tag.get('content', '') if meta_tag else ''

        links = []
        for anchor in soup.find_all('a', href=True):
            href = anchor['href'].strip()
            if href and not href.lower().startswith('javascript:'):
                links.append(urljoin(response.url or url, href))

        images = [urljoin(response.url or url, img['src']) for img in soup.find_all('img', src=True) if img['src']]

        scraped = ScrapedData(
            page_content=page_content,
            title=title,
            meta_description=meta_description,
            links=links,
            images=images,
            products=self._texts(soup, PRODUCT_SELECTOR),
            services=self._texts(soup, SERVICE_SELECTOR),
            about_text=self._fetch_about_text(links),
            team_info=self._texts(soup, TEAM_SELECTOR)
        )
        logger.info(f"✅ Scraped {url}: {len(links)} links, {len(scraped.products)} product blocks, "
                    f"{len(scraped.services)} service blocks")
        return scraped
