# runner.py
# Run controller: serial device rotation loop with an interruptible sleep,
# process-lifetime counters and graceful shutdown on SIGINT/SIGTERM.
#
# Safety note: emulation only. The public IP never changes between devices.

import asyncio
import logging
import signal
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Dict, Optional, Sequence, Tuple
from urllib.parse import urlparse

from playwright.async_api import async_playwright

from device_rotate.config import RunSettings, describe
from device_rotate.health import PageHealth
from device_rotate.profiles import DeviceProfile, build_rotation, select_profile
from device_rotate.session import DeviceTestSession, IterationResult, Outcome

LOGGER = logging.getLogger("device_rotate.runner")

EXIT_OK = 0
EXIT_FAILURE = 1


class UsageError(ValueError):
    """Missing or malformed target URL."""


def validate_target_url(url: Optional[str]) -> str:
    url = (url or "").strip()
    if not url:
        raise UsageError("target URL is required")
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise UsageError(f"malformed target URL {url!r}: {e}") from e
    if parsed.scheme not in ("http", "https"):
        raise UsageError(f"target URL must start with http:// or https://, got {url!r}")
    if not parsed.netloc:
        raise UsageError(f"target URL has no host: {url!r}")
    return url


# =========================
# State
# =========================

@dataclass
class RunStats:
    success_count: int = 0
    error_count: int = 0
    not_found_count: int = 0
    total_iterations: int = 0

    def record(self, result: IterationResult) -> None:
        self.total_iterations += 1
        if result.outcome == Outcome.SUCCESS:
            self.success_count += 1
        else:
            self.error_count += 1
        if result.health == PageHealth.NOT_FOUND:
            self.not_found_count += 1

    @property
    def success_rate(self) -> float:
        if not self.total_iterations:
            return 0.0
        return self.success_count / self.total_iterations

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total_iterations,
            "success": self.success_count,
            "error": self.error_count,
            "not_found": self.not_found_count,
            "success_rate": round(self.success_rate * 100, 1),
        }


class ShutdownFlag:
    """One-way flag; once set it stays set for the life of the process."""

    def __init__(self):
        self._set = False
        self.reason: Optional[str] = None

    @property
    def is_set(self) -> bool:
        return self._set

    def set(self, reason: str = "requested") -> None:
        if not self._set:
            self._set = True
            self.reason = reason


async def interruptible_sleep(duration_ms: int, flag: ShutdownFlag, poll_ms: int = 1000) -> bool:
    """
    Sleep up to ``duration_ms``, checking ``flag`` every ``poll_ms``.
    Returns True if the full duration elapsed, False if the flag cut it short.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + max(duration_ms, 0) / 1000
    poll_s = max(poll_ms, 1) / 1000
    while not flag.is_set:
        remaining = deadline - loop.time()
        if remaining <= 0:
            return True
        await asyncio.sleep(min(poll_s, remaining))
    return False


# =========================
# Controller
# =========================

SessionFactory = Callable[[DeviceProfile, int, str], Any]


class RunController:
    """Drives the rotation loop. Owns RunStats and the ShutdownFlag."""

    def __init__(
        self,
        target_url: str,
        session_factory: SessionFactory,
        profiles: Sequence[DeviceProfile],
        settings: Optional[RunSettings] = None,
    ):
        if not profiles:
            raise ValueError("profile rotation is empty")
        self.target_url = validate_target_url(target_url)
        self.session_factory = session_factory
        self.profiles = tuple(profiles)
        self.settings = settings or RunSettings.from_env()
        self.stats = RunStats()
        self.shutdown = ShutdownFlag()
        self.fatal_error: Optional[BaseException] = None
        self.active_session = None
        self._session_task: Optional[asyncio.Task] = None

    def request_shutdown(self, reason: str = "requested") -> None:
        if self.shutdown.is_set:
            return
        LOGGER.warning("Shutdown requested (%s), finishing up...", reason)
        self.shutdown.set(reason)
        session = self.active_session
        task = self._session_task
        if task is not None and not task.done() and not getattr(session, "released", False):
            task.cancel()

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig.name)
            except (NotImplementedError, RuntimeError):
                # Windows event loops have no add_signal_handler.
                signal.signal(sig, lambda signum, frame, name=sig.name:
                              loop.call_soon_threadsafe(self.request_shutdown, name))

    def handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        """asyncio exception handler for failures in background tasks no session owns."""
        exc = context.get("exception")
        LOGGER.critical("Unhandled background error: %s", context.get("message"), exc_info=exc)
        if self.fatal_error is None:
            self.fatal_error = exc or RuntimeError(context.get("message", "unhandled background error"))
        self.request_shutdown("fatal background error")

    async def abort(self) -> None:
        """Best-effort release of the active session before a fatal exit."""
        session = self.active_session
        if session is None:
            return
        try:
            await session.cleanup()
        except Exception as e:
            LOGGER.error("Cleanup of active session failed: %s", e)

    async def run_iteration(self, iteration: int) -> Optional[IterationResult]:
        """Run one session. Returns None if shutdown interrupted it."""
        profile = select_profile(self.profiles, iteration)
        session = self.session_factory(profile, iteration, self.target_url)
        self.active_session = session
        self._session_task = asyncio.ensure_future(session.run())
        try:
            result = await self._session_task
        except asyncio.CancelledError:
            if not self.shutdown.is_set:
                raise
            LOGGER.warning("Iteration %d (%s) interrupted by shutdown", iteration, profile.name)
            await session.cleanup()
            self.active_session = None
            return None
        finally:
            self._session_task = None

        self.active_session = None
        self.stats.record(result)
        return result

    def log_summary(self, result: Optional[IterationResult]) -> None:
        s = self.stats
        if result is not None:
            LOGGER.info(
                "Iteration %d %s | device=%s health=%s screenshot=%s",
                result.iteration, result.outcome.value.upper(), result.profile.name,
                result.health.value, result.screenshot_path or "-",
            )
        LOGGER.info(
            "Summary: %d success / %d error / %d not-found of %d (%.1f%% success)",
            s.success_count, s.error_count, s.not_found_count, s.total_iterations, s.success_rate * 100,
        )

    async def run(self) -> int:
        LOGGER.info("Device-rotate test starting for URL: %s", self.target_url)
        LOGGER.info("Rotation: %s", ", ".join(p.name for p in self.profiles))
        LOGGER.info("Settings: %s", describe(self.settings))
        LOGGER.info("Press CTRL+C to stop.")

        iteration = 0
        while not self.shutdown.is_set:
            result = await self.run_iteration(iteration)
            self.log_summary(result)

            if self.shutdown.is_set:
                break
            if iteration + 1 >= self.settings.max_iterations:
                LOGGER.info("Reached max iterations (%d), stopping.", self.settings.max_iterations)
                break

            LOGGER.info("Sleeping %.0f seconds before next device...", self.settings.interval_ms / 1000)
            await interruptible_sleep(self.settings.interval_ms, self.shutdown, self.settings.poll_ms)
            iteration += 1

        LOGGER.info("Final: %s", self.stats.as_dict())
        if self.fatal_error is not None:
            return EXIT_FAILURE
        return EXIT_OK


async def run_device_rotation(
    target_url: str,
    settings: Optional[RunSettings] = None,
    profiles: Optional[Sequence[DeviceProfile]] = None,
) -> int:
    """Start Playwright, run the loop, and map the result to an exit status."""
    settings = settings or RunSettings.from_env()
    target_url = validate_target_url(target_url)

    async with async_playwright() as p:
        if profiles is None:
            profiles = build_rotation(p.devices)
        factory = partial(_session_factory, p.chromium, settings)
        controller = RunController(target_url, factory, profiles=profiles, settings=settings)
        loop = asyncio.get_running_loop()
        controller.install_signal_handlers(loop)
        loop.set_exception_handler(controller.handle_loop_exception)
        try:
            return await controller.run()
        except Exception:
            LOGGER.exception("Fatal error in run loop")
            await controller.abort()
            return EXIT_FAILURE


def _session_factory(browser_type: Any, settings: RunSettings, profile: DeviceProfile,
                     iteration: int, target_url: str) -> DeviceTestSession:
    return DeviceTestSession(browser_type, profile, iteration, target_url, settings=settings)


async def load_rotation() -> Tuple[DeviceProfile, ...]:
    """Start Playwright only to resolve the rotation against its device registry."""
    async with async_playwright() as p:
        return build_rotation(p.devices)
