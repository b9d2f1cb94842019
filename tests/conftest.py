"""Test fixtures and fakes."""

from __future__ import annotations

import asyncio
from urllib.parse import quote

import pytest

from metasearch.cache import SqliteResultCache
from metasearch.contracts import Engines, ResultRow


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeEngine:
    """Engine double serving slices of a fixed corpus and recording calls."""

    def __init__(
        self,
        name: Engines = Engines.DUCKDUCKGO,
        corpus: list[ResultRow] | None = None,
        *,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.name = name
        self.lock = asyncio.Lock()
        self.corpus = corpus or []
        self.delay = delay
        self.error = error
        self.available = True
        self.calls: list[tuple[str, int, int]] = []

    def is_available(self) -> bool:
        return self.available

    async def search(self, query: str, start: int, need: int) -> list[ResultRow]:
        self.calls.append((query, start, need))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.corpus[start : start + need]


def _rows(n: int, prefix: str = "r") -> list[ResultRow]:
    return [
        ResultRow(
            url=f"https://example.com/{prefix}{i}",
            title=f"{prefix.upper()} result {i}",
            description=f"Snippet {i} for {prefix}",
        )
        for i in range(n)
    ]


def _result_block(i: int, *, prefix: str = "page", sponsored: bool = False) -> str:
    target = f"https://{prefix}.example.org/item/{i}"
    if sponsored:
        href = f"https://duckduckgo.com/y.js?ad_domain=shop.example&amp;ad_provider=bingv7&amp;u3={i}"
        classes = "result results_links result--ad"
    else:
        href = f"//duckduckgo.com/l/?uddg={quote(target, safe='')}&amp;rut=abc{i}"
        classes = "result results_links results_links_deep web-result"
    return f"""
    <div class="{classes}">
      <div class="links_main links_deep result__body">
        <h2 class="result__title">
          <a rel="nofollow" class="result__a" href="{href}">{prefix.title()} title {i}</a>
        </h2>
        <div class="result__extras">
          <div class="result__extras__url">
            <a class="result__url" href="{href}">{prefix}.example.org/item/{i}</a>
          </div>
        </div>
        <a class="result__snippet" href="{href}">About <b>{prefix}</b> item {i}.</a>
      </div>
    </div>"""


def _page(n: int, *, first: int = 0, prefix: str = "page", sponsored: int = 0) -> str:
    blocks = [_result_block(i, prefix=prefix, sponsored=True) for i in range(sponsored)]
    blocks += [_result_block(first + i, prefix=prefix) for i in range(n)]
    return f"""<!DOCTYPE html>
<html><head><title>results</title></head>
<body>
  <div id="links" class="results">{"".join(blocks)}
  </div>
</body></html>"""


@pytest.fixture
def make_rows():
    return _rows


@pytest.fixture
def ddg_page():
    """Builder for DuckDuckGo HTML result pages."""
    return _page


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_engine_cls():
    return FakeEngine


@pytest.fixture
def cache(tmp_path) -> SqliteResultCache:
    return SqliteResultCache(tmp_path / "cache" / "results.db")


@pytest.fixture
def priming_html() -> str:
    return (
        '<html><head><script>DDG.deep.initialize("/d.js?q=rust&l=us-en&s=0&dl=en'
        '&ct=US&vqd=4-211129403948765103427812937461239847&p_ent=");</script>'
        "<script>vqd=\"4-211129403948765103427812937461239847\";</script></head></html>"
    )
