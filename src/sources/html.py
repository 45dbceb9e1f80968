from __future__ import annotations

import re
from typing import List, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup

ARTICLE_SELECTORS = [
    "article",
    "div[itemprop='articleBody']",
    "div.entry-content",
    "div.article-content",
    "main",
]


def normalize_text(t: str) -> str:
    if not t:
        return ""
    t = t.replace(" ", " ")
    return re.sub(r"\s+", " ", t).strip()


def extract_links(html: str, base_url: str) -> List[Tuple[str, str]]:
    """(absolute url, link text) for every anchor with an href."""
    soup = BeautifulSoup(html, "lxml")
    out: List[Tuple[str, str]] = []
    for a in soup.find_all("a"):
        href = a.get("href")
        if not href:
            continue
        abs_url = urljoin(base_url, href.strip())
        text = " ".join(a.get_text(" ", strip=True).split())
        out.append((abs_url, text))
    return out


def visible_text(html: str) -> str:
    soup = BeautifulSoup(html, "lxml")
    for tag in soup.find_all(["script", "style", "noscript"]):
        tag.decompose()

    # longest article-like container, else the whole body
    candidates = []
    for sel in ARTICLE_SELECTORS:
        for node in soup.select(sel):
            txt = normalize_text(node.get_text(" ", strip=True))
            if len(txt) >= 200:
                candidates.append(txt)
    if candidates:
        return max(candidates, key=len)
    if soup.body:
        return normalize_text(soup.body.get_text(" ", strip=True))
    return normalize_text(soup.get_text(" ", strip=True))
