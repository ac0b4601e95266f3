"""
HTML helpers shared by live-fetched adapters.

Thin BeautifulSoup wrappers for locating headings, intro text,
paragraphs and contact addresses on program pages and listings.
"""

from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from .normalizer import cleanup_text, extract_email


# Common selectors for finding main content
MAIN_SELECTORS = [
    "main",
    "#content",
    ".content",
    ".page-content",
    "article",
    "#main",
]

# Selectors for intro/lead text on program pages
INTRO_SELECTORS = [
    ".intro",
    ".lead",
    ".description",
]


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def get_main_container(soup: BeautifulSoup) -> Tag:
    """Return the first main-content element, else body, else the soup."""
    for selector in MAIN_SELECTORS:
        container = soup.select_one(selector)
        if container:
            return container
    return soup.body or soup


def cleanup_navigation(soup: BeautifulSoup) -> None:
    """
    Remove navigation, footer, scripts from soup.

    Modifies soup in place.
    """
    for elem in soup.select("nav, footer, script, style, header, aside, .menu, .navigation"):
        elem.decompose()


def extract_heading(soup: BeautifulSoup) -> Optional[str]:
    """Text of the first h1, or None when missing or empty."""
    h1 = soup.find("h1")
    if h1:
        text = h1.get_text(" ", strip=True)
        if text:
            return text
    return None


def extract_intro(soup: BeautifulSoup, min_length: int = 50, max_paragraphs: int = 3) -> Optional[str]:
    """
    Extract program description.

    Tries INTRO_SELECTORS first, then joins substantial paragraphs
    among the first few <p> elements.
    """
    for selector in INTRO_SELECTORS:
        elem = soup.select_one(selector)
        if elem:
            text = elem.get_text(" ", strip=True)
            if text:
                return cleanup_text(text)

    paragraphs = []
    for p in soup.find_all("p")[:max_paragraphs]:
        text = p.get_text(" ", strip=True)
        if len(text) > min_length:
            paragraphs.append(cleanup_text(text))

    return "\n\n".join(paragraphs) if paragraphs else None


def extract_body_text(soup: BeautifulSoup) -> str:
    body = soup.body or soup
    return body.get_text(" ", strip=True)


def extract_contact_email(soup: BeautifulSoup) -> Optional[str]:
    """mailto: links first, then the first address in the body text."""
    mailto = soup.select_one('a[href^="mailto:"]')
    if mailto:
        email = mailto.get("href", "").replace("mailto:", "").split("?")[0].strip()
        if email:
            return email

    return extract_email(extract_body_text(soup))


def first_text(elem: Tag, selector: str) -> str:
    found = elem.select_one(selector)
    return found.get_text(" ", strip=True) if found else ""


def first_link(elem: Tag, base_url: str) -> Optional[str]:
    """Absolute href of the first anchor inside elem."""
    anchor = elem.find("a", href=True)
    if not anchor:
        return None
    href = anchor["href"].strip()
    if not href:
        return None
    return urljoin(base_url, href)
