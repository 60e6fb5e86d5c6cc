# =============================================================================
# Page Scraper - Headless Chromium via Playwright
# =============================================================================
#
# Turns a URL into a best-effort page summary (title, body text, cover image)
# for Url-type content. The scraper NEVER raises: every failure becomes a
# ScrapeDegraded result carrying a placeholder page and a reason, so
# ingestion can continue with degraded data while callers can still tell a
# real page apart from a failure placeholder.
#
# FLOW:
#   1. Launch a disposable Chromium (explicit path → configured path → bundled)
#   2. goto(url, wait_until="domcontentloaded") + short settle delay
#        └── navigation error        → Degraded(navigation_failed)
#   3. page closed after navigation  → Degraded(page_closed)
#   4. Extract title / cover image / body text, each with its own try/except
#   5. Anything else                 → Degraded(timeout | detached | error)
#   6. Browser closed on every path; close errors are logged only
#
# One browser per scrape() call. Nothing is shared across requests.
# =============================================================================

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

from playwright.async_api import async_playwright

from brainvault.config import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class ScrapedPage:
    """Structured page data. `image_url` is absolute and valid, or None."""

    title: str
    content: str
    image_url: str | None = None


class DegradeReason(str, enum.Enum):
    NAVIGATION_FAILED = "navigation_failed"
    PAGE_CLOSED = "page_closed"
    TIMEOUT = "timeout"
    DETACHED = "detached"
    ERROR = "error"


@dataclass
class ScrapeOk:
    page: ScrapedPage

    @property
    def ok(self) -> bool:
        return True


@dataclass
class ScrapeDegraded:
    """A failed scrape. `page` holds the placeholder title/content."""

    reason: DegradeReason
    page: ScrapedPage

    @property
    def ok(self) -> bool:
        return False


ScrapeResult = ScrapeOk | ScrapeDegraded


# ---------------------------------------------------------------------------
# Placeholders & Extraction Scripts
# ---------------------------------------------------------------------------

DEFAULT_TITLE = "No title available"
DEFAULT_CONTENT = "Failed to extract content from page"

_PLACEHOLDERS: dict[DegradeReason, tuple[str, str]] = {
    DegradeReason.NAVIGATION_FAILED: (
        "Navigation Failed",
        "Could not access the page content. This might be because the website "
        "is blocking automated access or the page no longer exists.",
    ),
    DegradeReason.PAGE_CLOSED: (
        "Page Closed Unexpectedly",
        "The browser page was closed during navigation. This might be due to "
        "website security measures.",
    ),
    DegradeReason.TIMEOUT: (
        "Scraping Failed - Timeout",
        "The page took too long to load. This might be due to slow connection "
        "or complex page content.",
    ),
    DegradeReason.DETACHED: (
        "Scraping Failed - Page Detached",
        "The website may be using anti-scraping measures or redirects that "
        "prevent automated access. Try visiting the URL directly in your browser.",
    ),
}

# Probed in order; the first element with a content/href value wins.
IMAGE_SELECTORS = [
    'meta[property="og:image"]',
    'meta[name="twitter:image"]',
    'meta[property="og:image:secure_url"]',
    'meta[itemprop="image"]',
    'link[rel="image_src"]',
    'link[rel="icon"]',
]

_IMAGE_SCRIPT = """
(selectors) => {
  for (const selector of selectors) {
    const el = document.querySelector(selector);
    const value = el && (el.getAttribute('content') || el.getAttribute('href'));
    if (value) return value;
  }
  return null;
}
"""

# Headings first, then paragraphs, each trimmed; empty nodes dropped.
_TEXT_SCRIPT = """
() => {
  const pick = (sel) => Array.from(document.querySelectorAll(sel))
    .map((el) => (el.textContent || '').trim())
    .filter(Boolean);
  return [...pick('h1, h2, h3'), ...pick('p')].join(' ').trim();
}
"""

_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-features=IsolateOrigins,site-per-process",
    "--disable-web-security",
]


def degraded(reason: DegradeReason, detail: str | None = None) -> ScrapeDegraded:
    """Build the placeholder result for a failure reason."""
    if reason is DegradeReason.ERROR:
        return ScrapeDegraded(
            reason=reason,
            page=ScrapedPage(
                title="Failed to scrape",
                content=f"Error: {detail or 'Unknown error'}",
            ),
        )
    title, content = _PLACEHOLDERS[reason]
    return ScrapeDegraded(reason=reason, page=ScrapedPage(title=title, content=content))


def classify_failure(exc: BaseException) -> ScrapeDegraded:
    """Map an unexpected scraping error to a degraded result by its message."""
    message = str(exc)
    lowered = message.lower()
    if "timeout" in lowered:
        return degraded(DegradeReason.TIMEOUT)
    if "detached" in lowered:
        return degraded(DegradeReason.DETACHED)
    return degraded(DegradeReason.ERROR, message or type(exc).__name__)


_HOST_SCHEMES = ("http", "https", "ftp")


def is_valid_image_url(url: str | None) -> bool:
    """
    True for absolute URLs. Web schemes must also carry a host.

    blob: URLs point at in-memory browser objects and are useless once the
    page is gone, so they are always rejected. data: URLs (inline favicons)
    are kept.
    """
    if not url or url.startswith("blob:"):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if not parsed.scheme:
        return False
    if parsed.scheme in _HOST_SCHEMES:
        return bool(parsed.netloc)
    return True


def resolve_image_url(raw: str | None, page_url: str) -> str | None:
    """Make a metadata image reference absolute and drop it if invalid."""
    if not raw:
        return None
    try:
        absolute = urljoin(page_url, raw.strip())
    except ValueError:
        return None
    return absolute if is_valid_image_url(absolute) else None


# ---------------------------------------------------------------------------
# Scraper
# ---------------------------------------------------------------------------


class PageScraper:
    """
    Playwright-backed scraper.

    Executable resolution order: `executable_path` argument, then
    `settings.browser_executable_path` (BROWSER_EXECUTABLE_PATH), then the
    Chromium bundled with Playwright.
    """

    def __init__(
        self,
        settings: Settings,
        executable_path: str | None = None,
    ) -> None:
        self._executable_path = executable_path or settings.browser_executable_path or None
        self._headless = settings.scraper_headless
        self._launch_timeout_ms = settings.scraper_launch_timeout_ms
        self._default_timeout_ms = settings.scraper_default_timeout_ms
        self._navigation_timeout_ms = settings.scraper_navigation_timeout_ms
        self._settle_delay_ms = settings.scraper_settle_delay_ms
        self._user_agent = settings.scraper_user_agent

    async def scrape(self, url: str) -> ScrapeResult:
        """Scrape `url`. Always returns; never raises."""
        logger.info(
            "Scraping %s (executable=%s)",
            url, self._executable_path or "bundled chromium",
        )
        try:
            async with async_playwright() as pw:
                result = await self._scrape_with(pw, url)
        except Exception as e:
            logger.exception("Error scraping %s: %s", url, e)
            result = classify_failure(e)

        if isinstance(result, ScrapeDegraded):
            logger.warning("Scrape degraded: url=%s reason=%s", url, result.reason.value)
        return result

    async def _scrape_with(self, pw, url: str) -> ScrapeResult:
        browser = None
        try:
            launch_kwargs: dict = {
                "headless": self._headless,
                "timeout": self._launch_timeout_ms,
                "args": _LAUNCH_ARGS,
            }
            if self._executable_path:
                launch_kwargs["executable_path"] = self._executable_path
            browser = await pw.chromium.launch(**launch_kwargs)

            page = await browser.new_page(user_agent=self._user_agent)
            page.set_default_navigation_timeout(self._default_timeout_ms)
            page.set_default_timeout(self._default_timeout_ms)

            try:
                await page.goto(
                    url,
                    wait_until="domcontentloaded",
                    timeout=self._navigation_timeout_ms,
                )
                await page.wait_for_timeout(self._settle_delay_ms)
            except Exception as e:
                logger.error("Navigation error for %s: %s", url, e)
                return degraded(DegradeReason.NAVIGATION_FAILED)

            if page.is_closed():
                return degraded(DegradeReason.PAGE_CLOSED)

            return ScrapeOk(page=await self._extract(page, url))
        finally:
            if browser is not None:
                await _close_quietly(browser)

    async def _extract(self, page, url: str) -> ScrapedPage:
        # Each field has its own failure boundary.
        title = DEFAULT_TITLE
        try:
            title = (await page.title()) or DEFAULT_TITLE
        except Exception as e:
            logger.error("Error getting title for %s: %s", url, e)

        image_url = None
        try:
            raw_image = await page.evaluate(_IMAGE_SCRIPT, IMAGE_SELECTORS)
            image_url = resolve_image_url(raw_image, url)
        except Exception as e:
            logger.error("Error extracting meta image for %s: %s", url, e)

        content = DEFAULT_CONTENT
        try:
            content = await page.evaluate(_TEXT_SCRIPT)
        except Exception as e:
            logger.error("Error extracting content for %s: %s", url, e)

        return ScrapedPage(title=title, content=content, image_url=image_url)


async def _close_quietly(browser) -> None:
    try:
        await browser.close()
    except Exception as e:
        logger.error("Error closing browser: %s", e)
