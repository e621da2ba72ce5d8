"""Website crawler that turns a company site into plain-text generation context."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from seowriter.config import Settings
from seowriter.jobs.models import PageRef

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
MAX_REDIRECTS = 5
MIN_TEXT_CHARS = 50
MIN_BLOCK_CHARS = 10

_STRIP_TAGS = ["header", "nav", "footer", "aside", "script", "style", "noscript", "iframe", "svg"]
_TEXT_TAGS = ["h1", "h2", "h3", "p", "li", "blockquote"]
_IMPORTANT_TERMS = ("about", "company", "team", "services", "service", "product", "solutions", "pricing", "contact", "blog", "why", "how", "what")
_SKIP_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "pdf", "zip", "doc", "docx", "xls", "xlsx", "mp4", "mp3", "css", "js"})
_WHITESPACE = re.compile(r"\s+")


class CrawlError(RuntimeError):
  """Raised when the seed page cannot be fetched or yields too little text."""


@dataclass(frozen=True)
class CrawlResult:
  context: str
  pages: list[PageRef] = field(default_factory=list)


@dataclass(frozen=True)
class ExtractedPage:
  url: str
  title: str
  text: str


def _normalize_block(text: str) -> str:
  return _WHITESPACE.sub(" ", text).strip()


def _cap_words(text: str, max_words: int) -> str:
  words = text.split(" ")
  if len(words) <= max_words:
    return text
  return " ".join(words[:max_words]) + "..."


def extract_main_text(html: str, *, max_words: int) -> tuple[str, str]:
  """Return ``(title, text)`` for the readable body of an HTML document."""
  soup = BeautifulSoup(html, "html.parser")
  title = _normalize_block(soup.title.get_text()) if soup.title else ""

  for tag in soup.find_all(_STRIP_TAGS):
    tag.decompose()

  root = soup.find("main") or soup.body or soup
  seen: set[str] = set()
  blocks: list[str] = []
  for node in root.find_all(_TEXT_TAGS):
    block = _normalize_block(node.get_text(" "))
    if len(block) < MIN_BLOCK_CHARS:
      continue
    key = block.lower()
    if key in seen:
      continue
    seen.add(key)
    blocks.append(block)

  return title, _cap_words(" ".join(blocks), max_words)


def _path_extension(path: str) -> str:
  last = path.rsplit("/", 1)[-1]
  return last.rsplit(".", 1)[-1].lower() if "." in last else ""


def score_link(path: str, href: str, anchor: str) -> int:
  """Rank a candidate subpage; content-rich sections score higher, deep paths lower."""
  haystack = f"{path} {href} {anchor}".lower()
  score = sum(10 for term in _IMPORTANT_TERMS if term in haystack)
  depth = len([segment for segment in path.split("/") if segment])
  return score - depth


def find_internal_links(html: str, base_url: str, *, limit: int) -> list[str]:
  """Return up to ``limit`` same-origin links from ``html``, best first."""
  if limit <= 0:
    return []
  base = urlparse(base_url)
  soup = BeautifulSoup(html, "html.parser")
  scored: dict[str, int] = {}
  for anchor in soup.find_all("a", href=True):
    href = anchor["href"].strip()
    if not href or href.startswith(("#", "mailto:", "tel:", "javascript:")):
      continue
    absolute = urljoin(base_url, href)
    parsed = urlparse(absolute)
    if parsed.scheme not in ("http", "https") or parsed.netloc != base.netloc:
      continue
    if _path_extension(parsed.path) in _SKIP_EXTENSIONS:
      continue
    canonical = parsed._replace(fragment="", query="").geturl().rstrip("/")
    if canonical == base_url.rstrip("/"):
      continue
    score = score_link(parsed.path, href, _normalize_block(anchor.get_text(" ")))
    if score > scored.get(canonical, -(10**6)):
      scored[canonical] = score
  ranked = sorted(scored.items(), key=lambda item: (-item[1], item[0]))
  return [url for url, _ in ranked[:limit]]


class Crawler:
  """Fetch a seed page (and optionally a few subpages) and build generation context."""

  def __init__(
    self,
    *,
    max_pages: int = 1,
    concurrency: int = 3,
    timeout_ms: int = 8000,
    max_words: int = 1200,
    transport: httpx.AsyncBaseTransport | None = None,
  ) -> None:
    self._max_pages = max(1, max_pages)
    self._concurrency = max(1, concurrency)
    self._timeout = timeout_ms / 1000
    self._max_words = max_words
    self._transport = transport

  @classmethod
  def from_settings(cls, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> Crawler:
    return cls(
      max_pages=settings.scrape_max_pages,
      concurrency=settings.scrape_concurrency,
      timeout_ms=settings.scrape_timeout_ms,
      max_words=settings.scrape_max_words,
      transport=transport,
    )

  def _client(self) -> httpx.AsyncClient:
    return httpx.AsyncClient(
      headers={"User-Agent": USER_AGENT, "Accept": "text/html,application/xhtml+xml"},
      timeout=self._timeout,
      follow_redirects=True,
      max_redirects=MAX_REDIRECTS,
      transport=self._transport,
    )

  async def fetch_html(self, client: httpx.AsyncClient, url: str) -> str:
    try:
      response = await client.get(url)
      response.raise_for_status()
    except httpx.TimeoutException as exc:
      raise CrawlError(f"Timed out fetching {url}") from exc
    except httpx.HTTPStatusError as exc:
      raise CrawlError(f"Failed to fetch {url}: HTTP {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
      raise CrawlError(f"Failed to fetch {url}: {exc}") from exc
    return response.text

  async def crawl(self, seed_url: str) -> CrawlResult:
    """Crawl ``seed_url`` and return the combined context."""
    async with self._client() as client:
      html = await self.fetch_html(client, seed_url)
      title, text = extract_main_text(html, max_words=self._max_words)
      if len(text) < MIN_TEXT_CHARS:
        raise CrawlError(f"Too little readable text at {seed_url} (likely JavaScript-rendered or blocked)")
      pages = [ExtractedPage(url=seed_url, title=title or seed_url, text=text)]

      if self._max_pages > 1:
        links = find_internal_links(html, seed_url, limit=self._max_pages - 1)
        pages.extend(await self._crawl_subpages(client, links))

    context = self._build_context(pages)
    logger.info("Crawled %s page(s) from %s (%s words).", len(pages), seed_url, len(context.split()))
    return CrawlResult(context=context, pages=[PageRef(title=page.title, url=page.url) for page in pages])

  async def _crawl_subpages(self, client: httpx.AsyncClient, links: list[str]) -> list[ExtractedPage]:
    semaphore = asyncio.Semaphore(self._concurrency)

    async def _fetch(url: str) -> ExtractedPage | None:
      async with semaphore:
        try:
          html = await self.fetch_html(client, url)
        except CrawlError as exc:
          logger.warning("Skipping subpage %s: %s", url, exc)
          return None
      title, text = extract_main_text(html, max_words=self._max_words)
      if len(text) < MIN_TEXT_CHARS:
        logger.info("Skipping subpage %s: too little text.", url)
        return None
      return ExtractedPage(url=url, title=title or url, text=text)

    results = await asyncio.gather(*(_fetch(url) for url in links))
    return [page for page in results if page is not None]

  def _build_context(self, pages: list[ExtractedPage]) -> str:
    blocks: list[str] = []
    remaining = self._max_words
    for index, page in enumerate(pages):
      if remaining <= 0:
        break
      words = page.text.split(" ")
      text = page.text if len(words) <= remaining else " ".join(words[:remaining]) + "..."
      remaining -= min(len(words), remaining)
      label = "HOMEPAGE" if index == 0 else "PAGE"
      blocks.append(f"[{label}: {page.title} | {page.url}]\n{text}")
    return "\n\n".join(blocks)
