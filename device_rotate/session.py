# session.py
# One device test: acquire browser/context/page for a profile, navigate,
# classify page health, settle, screenshot, collect metadata, release.
#
# A session never raises past run(): every failure becomes Outcome.ERROR.
# Cancellation is the exception; it propagates, but cleanup still runs.

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Tuple

from device_rotate.capture import (
    ensure_output_dir,
    error_screenshot_path,
    screenshot_path,
    take_screenshot,
)
from device_rotate.config import RunSettings
from device_rotate.health import NOT_FOUND_STATUSES, PageHealth, classify_health
from device_rotate.navigation import NavigationError, navigate
from device_rotate.observers import LoggingPageObserver, PageObserver, attach_observer
from device_rotate.profiles import DeviceProfile

LOGGER = logging.getLogger("device_rotate.session")

INSPECT_TIMEOUT_MS = 5_000


class Outcome(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class IterationResult:
    iteration: int
    profile: DeviceProfile
    outcome: Outcome = Outcome.ERROR
    health: PageHealth = PageHealth.UNKNOWN
    screenshot_path: Optional[Path] = None
    status: Optional[int] = None
    title: Optional[str] = None
    final_url: Optional[str] = None
    error: Optional[str] = None
    duration_s: float = 0.0

    @property
    def ok(self) -> bool:
        return self.outcome == Outcome.SUCCESS


class DeviceTestSession:
    """
    Runs exactly one profile against the target URL with a fresh, isolated
    browser context.

    Args:
        browser_type: Playwright browser type (e.g. ``playwright.chromium``)
        profile: device emulation parameters for the context
        iteration: loop index, used for logging and file names
        target_url: page under test
        settings: timeouts, output dir, markers, launch flags
        observer: page event observer; defaults to a logging observer tagged with the profile name
    """

    def __init__(
        self,
        browser_type: Any,
        profile: DeviceProfile,
        iteration: int,
        target_url: str,
        settings: Optional[RunSettings] = None,
        observer: Optional[PageObserver] = None,
    ):
        self.browser_type = browser_type
        self.profile = profile
        self.iteration = iteration
        self.target_url = target_url
        self.settings = settings or RunSettings.from_env()
        self.observer = observer or LoggingPageObserver(profile.name)
        self.browser = None
        self.context = None
        self.page = None
        self._released = False

    @property
    def tag(self) -> str:
        return f"{self.profile.name}#{self.iteration}"

    @property
    def released(self) -> bool:
        return self._released

    # =========================
    # Lifecycle
    # =========================

    async def acquire(self) -> None:
        self.browser = await self.browser_type.launch(
            headless=self.settings.headless,
            args=list(self.settings.launch_args),
        )
        self.context = await self.browser.new_context(**self.profile.context_options())
        self.page = await self.context.new_page()

    async def run(self) -> IterationResult:
        result = IterationResult(iteration=self.iteration, profile=self.profile)
        started = time.monotonic()
        LOGGER.info("Iteration %d | Device: %s | %s", self.iteration, self.profile.name, self.target_url)
        try:
            await self.acquire()
            attach_observer(self.page, self.observer)

            nav = await navigate(self.page, self.target_url, self.settings.nav_timeout_ms, tag=self.tag)
            result.status = nav.status
            LOGGER.info("[%s] page loaded (status=%s, wait_until=%s)", self.tag, nav.status, nav.wait_until)
            # 404/410 still completes; health reports it as NOT_FOUND.
            if nav.status is not None and nav.status >= 400 and nav.status not in NOT_FOUND_STATUSES:
                raise NavigationError(f"HTTP {nav.status} for {self.target_url}")

            result.health, result.title = await self.inspect_health(nav.status)
            if result.health == PageHealth.NOT_FOUND:
                LOGGER.warning("404 DETECTED [%s] %s looks like a not-found page (status=%s, title=%r)",
                               self.tag, self.target_url, nav.status, result.title)

            LOGGER.info("[%s] waiting %dms for SDKs to initialize...", self.tag, self.settings.settle_ms)
            await self.page.wait_for_timeout(self.settings.settle_ms)

            out = screenshot_path(ensure_output_dir(self.settings.output_dir), self.iteration,
                                  self.profile.name, result.health)
            result.screenshot_path = await take_screenshot(
                self.page, out, self.settings.full_page, self.settings.screenshot_timeout_ms, tag=self.tag
            )

            await self.collect_metadata(result)
            result.outcome = Outcome.SUCCESS
        except Exception as e:
            result.outcome = Outcome.ERROR
            result.error = f"{type(e).__name__}: {e}"
            LOGGER.error("[%s] page load / screenshot error: %s", self.tag, result.error)
            result.screenshot_path = await self.capture_error_screenshot()
        finally:
            await self.cleanup()
            result.duration_s = time.monotonic() - started
        LOGGER.debug("[%s] observer: %s", self.tag, getattr(self.observer, "summary", lambda: "")())
        return result

    async def cleanup(self) -> None:
        """Close page, context and browser concurrently. Safe to call more than once."""
        if self._released:
            return
        self._released = True

        opened = [(name, res) for name, res in (("page", self.page), ("context", self.context), ("browser", self.browser))
                  if res is not None]
        self.page = self.context = self.browser = None
        if not opened:
            return

        results = await asyncio.gather(*(res.close() for _, res in opened), return_exceptions=True)
        for (name, _), outcome in zip(opened, results):
            if isinstance(outcome, BaseException):
                LOGGER.warning("[%s] failed to close %s: %s", self.tag, name, outcome)
        LOGGER.debug("[%s] released %s", self.tag, ", ".join(name for name, _ in opened))

    # =========================
    # Steps
    # =========================

    async def inspect_health(self, status: Optional[int]) -> Tuple[PageHealth, Optional[str]]:
        try:
            title = await self.page.title()
            body = await self.page.inner_text("body", timeout=INSPECT_TIMEOUT_MS)
        except Exception as e:
            LOGGER.warning("[%s] could not inspect page content: %s", self.tag, e)
            if status in NOT_FOUND_STATUSES:
                return PageHealth.NOT_FOUND, None
            return PageHealth.UNKNOWN, None
        return classify_health(status, title, body, self.settings.not_found_markers), title

    async def collect_metadata(self, result: IterationResult) -> None:
        try:
            result.title = await self.page.title()
        except Exception as e:
            LOGGER.warning("[%s] could not read title: %s", self.tag, e)
        try:
            result.final_url = self.page.url
        except Exception as e:
            LOGGER.warning("[%s] could not read final URL: %s", self.tag, e)
        LOGGER.info("[%s] title=%r url=%s", self.tag, result.title, result.final_url)

    async def capture_error_screenshot(self) -> Optional[Path]:
        if self.page is None:
            LOGGER.info("[%s] no page open, skipping error screenshot", self.tag)
            return None
        try:
            out = error_screenshot_path(ensure_output_dir(self.settings.output_dir), self.iteration, self.profile.name)
        except OSError as e:
            LOGGER.error("[%s] error screenshot skipped, output dir unavailable: %s", self.tag, e)
            return None
        LOGGER.info("[%s] attempting error screenshot %s", self.tag, out.name)
        return await take_screenshot(
            self.page, out, self.settings.full_page, self.settings.error_screenshot_timeout_ms, tag=self.tag
        )
