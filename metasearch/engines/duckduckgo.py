"""DuckDuckGo HTML engine.

DuckDuckGo's HTML endpoint needs a session token (``vqd``) that is scraped
from a priming request. Results are paginated with a running offset and
parsed out of ``#links div.result`` blocks. Result links are redirect
wrappers (``/l/?uddg=<percent-encoded target>``) and paid placements are
recognised by their ad markers.
"""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urljoin, urlparse

from bs4 import BeautifulSoup
from loguru import logger

from metasearch.contracts import Engines, ResultRow
from metasearch.engines.base import BaseEngine
from metasearch.errors import TokenUnknown
from metasearch.utils.html import collect_text

from . import register_engine

_TOKEN_URL = "https://duckduckgo.com/"
_RESULTS_URL = "https://html.duckduckgo.com/html/"
_REDIRECT_BASE = "https://duckduckgo.com"

_VQD_RE = re.compile(r"""vqd\s*=\s*["']([0-9-]+)["']""")
_SPONSORED_MARKERS = ("?ad_domain", "?ad_provider")


def extract_token(html: str) -> str | None:
    """Pull the vqd session token out of a priming response."""
    match = _VQD_RE.search(html)
    return match.group(1) if match else None


def decode_redirect(href: str) -> str:
    """Return the destination of a DuckDuckGo redirect link.

    Falls back to ``href`` unchanged when there is no ``uddg`` parameter or
    it cannot be decoded.
    """
    try:
        query = urlparse(urljoin(_REDIRECT_BASE, href)).query
        params = parse_qs(query, errors="strict")
    except (ValueError, UnicodeDecodeError):
        return href
    values = params.get("uddg")
    if not values or not values[0]:
        return href
    return values[0]


def is_sponsored(url: str) -> bool:
    return any(marker in url for marker in _SPONSORED_MARKERS)


def _is_title_or_url(node) -> bool:
    classes = " ".join(node.get("class") or [])
    return node.name == "h2" or "result__url" in classes


def parse_results(html: str) -> list[ResultRow]:
    """Parse one results page into rows, dropping sponsored blocks."""
    soup = BeautifulSoup(html, "html.parser")
    links = soup.select_one("#links")
    if links is None:
        return []

    rows: list[ResultRow] = []
    for block in links.select("div.result"):
        title_el = block.select_one("h2 a")
        title = title_el.get_text().strip() if title_el else ""

        url_el = block.select_one("a.result__url")
        href = url_el.get("href", "") if url_el else ""
        url = decode_redirect(href) if href else ""

        if is_sponsored(url):
            continue

        rows.append(
            ResultRow(
                url=url,
                title=title,
                description=collect_text(block, skip=_is_title_or_url),
            )
        )
    return rows


class DuckDuckGoEngine(BaseEngine):
    name: Engines = Engines.DUCKDUCKGO

    def __init__(self, *, region: str = "us-en", max_pages: int = 10, **kwargs) -> None:
        super().__init__(**kwargs)
        self.region = region
        self.max_pages = max_pages
        self._vqd: str | None = None

    async def get_token(self, query: str) -> str:
        """Return the cached session token, priming a new one if needed."""
        if self._vqd is not None:
            return self._vqd

        resp = await self._request("GET", _TOKEN_URL, params={"q": query}, check_status=False)
        if resp.status_code != 200:
            raise TokenUnknown(self.name.value, f"token request returned HTTP {resp.status_code}")

        token = extract_token(resp.text)
        if token is None:
            raise TokenUnknown(self.name.value, "vqd token not found in priming response")

        logger.debug("{} acquired session token", self.name.value)
        self._vqd = token
        return token

    async def _fetch_page(self, query: str, offset: int, token: str) -> list[ResultRow]:
        resp = await self._request(
            "POST",
            _RESULTS_URL,
            data={"q": query, "kl": self.region, "s": str(offset), "vqd": token},
        )
        return parse_results(resp.text)

    async def _search(self, query: str, start: int, need: int) -> list[ResultRow]:
        want_total = start + need
        reused_token = self._vqd is not None
        token = await self.get_token(query)

        results: list[ResultRow] = []
        pages = 0
        while len(results) < want_total:
            if pages >= self.max_pages:
                logger.warning(
                    "{} hit page cap ({}) with {}/{} rows for {!r}",
                    self.name.value,
                    self.max_pages,
                    len(results),
                    want_total,
                    query,
                )
                break

            page = await self._fetch_page(query, len(results), token)

            if not page and not results and reused_token:
                # A stale token yields an empty first page: refresh it once.
                # The retried page does not count against max_pages.
                logger.info("{} empty first page, refreshing session token", self.name.value)
                self._vqd = None
                reused_token = False
                token = await self.get_token(query)
                continue

            pages += 1
            if not page:
                logger.debug("{} exhausted after {} pages", self.name.value, pages)
                break
            results.extend(page)

        return results[start:want_total]


register_engine(Engines.DUCKDUCKGO, DuckDuckGoEngine)
