"""
Fetches an article page and extracts the fields used to prefill an article.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from urllib.parse import urljoin, urlparse

import requests
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15  # seconds
MAX_PARAGRAPHS = 4
MIN_PARAGRAPH_LENGTH = 20
USER_AGENT = "Mozilla/5.0 (compatible; SikuwatArticleFetcher/1.0)"


class FetchError(Exception):
    pass


@dataclass
class ArticlePreview:
    title: str
    content: str
    source: str
    url: str
    image_url: str = ""

    def as_dict(self) -> dict:
        return asdict(self)


def clean_text(text: str | None) -> str:
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def source_from_url(url: str) -> str:
    host = urlparse(url).hostname or ""
    return host[4:] if host.startswith("www.") else host


def _meta_content(soup: BeautifulSoup, **attrs) -> str:
    tag = soup.find("meta", attrs=attrs)
    return clean_text(tag.get("content")) if tag else ""


def extract_article_preview(html: str, url: str) -> ArticlePreview:
    """
    Extracts title, summary content and image from an article page.

    Args:
        html (str): The page HTML.
        url (str): The page URL, used for the source name and relative images.

    Returns:
        ArticlePreview: The extracted fields; empty strings where nothing was found.
    """
    soup = BeautifulSoup(html, "html.parser")

    title_tag = soup.find("title")
    h1 = soup.find("h1")
    title = (
        _meta_content(soup, property="og:title")
        or _meta_content(soup, name="twitter:title")
        or clean_text(title_tag.get_text() if title_tag else "")
        or clean_text(h1.get_text() if h1 else "")
    )

    description = (
        _meta_content(soup, property="og:description")
        or _meta_content(soup, name="twitter:description")
        or _meta_content(soup, name="description")
    )

    container = (
        soup.find("article") or soup.find("main") or soup.find(attrs={"role": "main"})
    )
    paragraphs: list[str] = []
    if container:
        for element in container.find_all(["p", "li", "h2", "h3"]):
            text = clean_text(element.get_text(" "))
            if len(text) > MIN_PARAGRAPH_LENGTH:
                paragraphs.append(text)
            if len(paragraphs) >= MAX_PARAGRAPHS:
                break
    content = "\n\n".join(paragraphs) or description

    image_url = _meta_content(soup, property="og:image")
    if image_url:
        image_url = urljoin(url, image_url)

    source = source_from_url(url)
    return ArticlePreview(
        title=title,
        content=content or f"Artikel dari {source}",
        source=source,
        url=url,
        image_url=image_url,
    )


def fetch_article_preview(url: str, timeout: float = REQUEST_TIMEOUT) -> ArticlePreview:
    """
    Fetches a URL and extracts an ArticlePreview from it.

    Raises:
        FetchError: If the page could not be fetched.
    """
    try:
        response = requests.get(
            url, timeout=timeout, headers={"User-Agent": USER_AGENT}
        )
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Article fetch failed for %s: %s", url, exc)
        raise FetchError(f"Tidak bisa fetch HTML dari URL: {exc}") from exc
    return extract_article_preview(response.text, url)
