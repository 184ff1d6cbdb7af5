"""
Fake Playwright collaborators shared by the tests.

    FakeBrowserType.launch() -> FakeBrowser.new_context() -> FakeContext.new_page() -> FakePage

No browser binary is needed. FakeSite describes how the "target URL" behaves.
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import pytest
from PIL import Image
from playwright.async_api import TimeoutError as PwTimeout

from device_rotate.config import RunSettings
from device_rotate.profiles import build_rotation

# Same shape as playwright.devices entries.
FAKE_DEVICES: Dict[str, Dict[str, Any]] = {
    "iPhone 15 Pro": {
        "user_agent": "Mozilla/5.0 (iPhone; CPU iPhone OS 17_5 like Mac OS X) AppleWebKit/605.1.15 "
                      "(KHTML, like Gecko) Version/17.5 Mobile/15E148 Safari/604.1",
        "screen": {"width": 393, "height": 852},
        "viewport": {"width": 393, "height": 659},
        "device_scale_factor": 3,
        "is_mobile": True,
        "has_touch": True,
        "default_browser_type": "webkit",
    },
    "Pixel 7": {
        "user_agent": "Mozilla/5.0 (Linux; Android 14; Pixel 7) AppleWebKit/537.36 "
                      "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36",
        "screen": {"width": 412, "height": 915},
        "viewport": {"width": 412, "height": 839},
        "device_scale_factor": 2.625,
        "is_mobile": True,
        "has_touch": True,
        "default_browser_type": "chromium",
    },
    "iPad (gen 7)": {
        "user_agent": "Mozilla/5.0 (iPad; CPU OS 12_2 like Mac OS X) AppleWebKit/605.1.15 "
                      "(KHTML, like Gecko) Version/17.5 Mobile/15E148 Safari/604.1",
        "screen": {"width": 810, "height": 1080},
        "viewport": {"width": 810, "height": 1080},
        "device_scale_factor": 2,
        "is_mobile": True,
        "has_touch": True,
        "default_browser_type": "webkit",
    },
}

ROTATION = build_rotation(FAKE_DEVICES)


@dataclass
class FakeSite:
    status: Optional[int] = 200
    title: str = "OK"
    body: str = ""
    final_url: str = "https://example.com/"
    goto_error: Optional[BaseException] = None
    timeout_on: Set[str] = field(default_factory=set)
    title_error: Optional[BaseException] = None
    screenshot_error: Optional[BaseException] = None
    launch_error: Optional[BaseException] = None
    context_error: Optional[BaseException] = None
    page_error: Optional[BaseException] = None
    close_errors: Dict[str, BaseException] = field(default_factory=dict)
    real_settle: bool = False


class FakeResponse:
    def __init__(self, status: int, url: str):
        self.status = status
        self.url = url


class FakePage:
    def __init__(self, site: FakeSite):
        self.site = site
        self.handlers: Dict[str, List[Any]] = {}
        self.goto_calls: List[str] = []
        self.events_at_goto: Optional[Set[str]] = None
        self.screenshots: List[Dict[str, Any]] = []
        self.settled_ms: List[int] = []
        self.close_calls = 0
        self.url = "about:blank"

    def on(self, event: str, handler) -> None:
        self.handlers.setdefault(event, []).append(handler)

    def emit(self, event: str, payload: Any) -> None:
        for handler in self.handlers.get(event, []):
            handler(payload)

    async def goto(self, url: str, wait_until: str = "load", timeout: int = 30000):
        self.goto_calls.append(wait_until)
        if self.events_at_goto is None:
            self.events_at_goto = set(self.handlers)
        if self.site.goto_error is not None:
            raise self.site.goto_error
        if wait_until in self.site.timeout_on:
            raise PwTimeout(f"Timeout {timeout}ms exceeded.")
        self.url = self.site.final_url
        if self.site.status is None:
            return None
        response = FakeResponse(self.site.status, url)
        self.emit("response", response)
        return response

    async def title(self) -> str:
        if self.site.title_error is not None:
            raise self.site.title_error
        return self.site.title

    async def inner_text(self, selector: str, timeout: Optional[int] = None) -> str:
        return self.site.body

    async def wait_for_timeout(self, timeout: int) -> None:
        self.settled_ms.append(timeout)
        if self.site.real_settle:
            await asyncio.sleep(timeout / 1000)

    async def screenshot(self, path: str, full_page: bool = False, timeout: Optional[int] = None) -> bytes:
        self.screenshots.append({"path": path, "full_page": full_page, "timeout": timeout})
        if self.site.screenshot_error is not None:
            raise self.site.screenshot_error
        img = Image.new("RGB", (40, 30), "white")
        img.paste((20, 20, 20), (5, 5, 20, 15))
        img.save(path)
        return Path(path).read_bytes()

    async def close(self) -> None:
        self.close_calls += 1
        if "page" in self.site.close_errors:
            raise self.site.close_errors["page"]


class FakeContext:
    def __init__(self, site: FakeSite, options: Dict[str, Any]):
        self.site = site
        self.options = options
        self.pages: List[FakePage] = []
        self.close_calls = 0

    async def new_page(self) -> FakePage:
        if self.site.page_error is not None:
            raise self.site.page_error
        page = FakePage(self.site)
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.close_calls += 1
        if "context" in self.site.close_errors:
            raise self.site.close_errors["context"]


class FakeBrowser:
    def __init__(self, site: FakeSite, launch_kwargs: Dict[str, Any]):
        self.site = site
        self.launch_kwargs = launch_kwargs
        self.contexts: List[FakeContext] = []
        self.close_calls = 0

    async def new_context(self, **options) -> FakeContext:
        if self.site.context_error is not None:
            raise self.site.context_error
        ctx = FakeContext(self.site, options)
        self.contexts.append(ctx)
        return ctx

    async def close(self) -> None:
        self.close_calls += 1
        if "browser" in self.site.close_errors:
            raise self.site.close_errors["browser"]


class FakeBrowserType:
    def __init__(self, site: FakeSite):
        self.site = site
        self.browsers: List[FakeBrowser] = []

    async def launch(self, **kwargs) -> FakeBrowser:
        if self.site.launch_error is not None:
            raise self.site.launch_error
        browser = FakeBrowser(self.site, kwargs)
        self.browsers.append(browser)
        return browser

    def all_pages(self) -> List[FakePage]:
        return [pg for b in self.browsers for c in b.contexts for pg in c.pages]


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture
def browser_type(site) -> FakeBrowserType:
    return FakeBrowserType(site)


@pytest.fixture
def settings(tmp_path) -> RunSettings:
    return RunSettings(
        interval_ms=0,
        settle_ms=0,
        nav_timeout_ms=1000,
        screenshot_timeout_ms=1000,
        error_screenshot_timeout_ms=500,
        poll_ms=20,
        max_iterations=5,
        headless=True,
        output_dir=tmp_path / "shots",
    )
