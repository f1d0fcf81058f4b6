import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

from playwright.async_api import Page, Response, async_playwright, TimeoutError as PlaywrightTimeoutError

from common.config import config
from common.logging.logger import get_logger
from common.models import ExtractionInput, RawJsonResponse

logger = get_logger("capture")

_VIEWPORT = {"width": 1280, "height": 720}


@dataclass
class PageCapture:
    """Everything the extraction strategies need from one page load."""
    url: str
    html: str = ""
    markdown: str = ""
    api_calls: List[str] = field(default_factory=list)
    raw_json_responses: List[RawJsonResponse] = field(default_factory=list)
    screenshot: Optional[bytes] = None

    def to_input(self, page: Any = None, site_name: Optional[str] = None) -> ExtractionInput:
        return ExtractionInput(
            html=self.html,
            markdown=self.markdown,
            api_calls=tuple(self.api_calls),
            raw_json_responses=tuple(self.raw_json_responses),
            screenshot=self.screenshot,
            page=page,
            site_name=site_name,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "html": self.html,
            "markdown": self.markdown,
            "apiCalls": list(self.api_calls),
            "rawJsonResponses": [
                {"url": r.url, "data": r.data, "timestamp": r.timestamp} for r in self.raw_json_responses
            ],
        }


class NetworkRecorder:
    """Collects JSON response bodies while a page loads."""

    def __init__(self):
        self.api_calls: List[str] = []
        self.responses: List[RawJsonResponse] = []
        self._pending: List[asyncio.Task] = []

    def attach(self, page: Page) -> None:
        page.on("response", self._on_response)

    def _on_response(self, response: Response) -> None:
        content_type = response.headers.get("content-type", "")
        if "json" not in content_type:
            return
        self.api_calls.append(response.url)
        self._pending.append(asyncio.ensure_future(self._read(response)))

    async def _read(self, response: Response) -> None:
        try:
            data = await response.json()
        except Exception as e:
            logger.debug(f"Unreadable JSON body from {response.url}: {e}")
            return
        self.responses.append(RawJsonResponse(url=response.url, data=data, timestamp=time.time()))

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending)


@asynccontextmanager
async def open_page(url: str, timeout_ms: Optional[int] = None,
                    recorder: Optional[NetworkRecorder] = None) -> AsyncIterator[Optional[Page]]:
    """
    Yields a live page navigated to *url*, or None when navigation failed.

    The browser stays open for the duration of the block so strategies that
    query the page (DOM, geometric, OCR) can use it.
    """
    timeout_ms = timeout_ms or config.get("capture.timeout_ms")
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=True)
        try:
            context = await browser.new_context(
                user_agent=config.get("capture.user_agent"),
                viewport=_VIEWPORT,
                device_scale_factor=1,
            )
            page = await context.new_page()
            if recorder is not None:
                recorder.attach(page)
            try:
                response = await page.goto(url, timeout=timeout_ms, wait_until="domcontentloaded")
            except PlaywrightTimeoutError:
                logger.warning(f"Timeout loading {url}")
                yield None
                return
            if response is None:
                logger.warning(f"No response from {url}")
                yield None
                return
            if response.status >= 400:
                # Bot walls sometimes still render the board
                logger.warning(f"HTTP {response.status} loading {url}")
            yield page
        finally:
            await browser.close()


async def snapshot(page: Page, url: str, recorder: NetworkRecorder,
                   wait_ms: Optional[int] = None) -> PageCapture:
    """Lets the page settle, then reads HTML, visible text, JSON bodies and a screenshot."""
    wait_ms = wait_ms if wait_ms is not None else config.get("capture.settle_ms")
    await page.wait_for_timeout(wait_ms)
    await recorder.drain()
    return PageCapture(
        url=url,
        html=await page.content(),
        markdown=await page.inner_text("body"),
        api_calls=list(recorder.api_calls),
        raw_json_responses=list(recorder.responses),
        screenshot=await page.screenshot(full_page=True),
    )


async def capture_page(url: str, timeout_ms: Optional[int] = None,
                       wait_ms: Optional[int] = None) -> Optional[PageCapture]:
    """
    Loads *url* in headless Chromium and captures HTML, visible text,
    JSON network responses and a full-page screenshot.

    Returns None on timeout or navigation failure.
    """
    recorder = NetworkRecorder()
    try:
        async with open_page(url, timeout_ms, recorder) as page:
            if page is None:
                return None
            capture = await snapshot(page, url, recorder, wait_ms)
    except PlaywrightTimeoutError:
        logger.warning(f"Timeout capturing {url}")
        return None
    except Exception as e:
        logger.error(f"Playwright error for {url}: {e}")
        return None

    logger.info(f"Captured {url}: {len(capture.html)} bytes HTML, "
                f"{len(capture.raw_json_responses)} JSON responses")
    return capture
