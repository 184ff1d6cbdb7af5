# config.py
# Run defaults for device-rotate. Every value can be overridden by an
# environment variable, and again per run by the CLI flags in cli.py.
#
# ENV (all optional):
#   export DEVICE_ROTATE_INTERVAL_MS="60000"          # pause between iterations
#   export DEVICE_ROTATE_SETTLE_MS="20000"            # wait for SDKs after load
#   export DEVICE_ROTATE_NAV_TIMEOUT_MS="60000"       # per navigation step
#   export DEVICE_ROTATE_SCREENSHOT_TIMEOUT_MS="30000"
#   export DEVICE_ROTATE_ERROR_SCREENSHOT_TIMEOUT_MS="10000"
#   export DEVICE_ROTATE_MAX_ITERATIONS="1000"        # safety cap for unattended runs
#   export DEVICE_ROTATE_POLL_MS="1000"               # shutdown check while sleeping
#   export DEVICE_ROTATE_OUTPUT_DIR="screenshots"
#   export DEVICE_ROTATE_HEADLESS="1"                 # 0 = headful (needs a display)
#   export DEVICE_ROTATE_FULL_PAGE="1"
#   export DEVICE_ROTATE_NOT_FOUND_MARKERS="404,not found,page not found"
#   export DEVICE_ROTATE_LOG_LEVEL="INFO"

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional, Tuple


def _env_int(name: str, default: int, minimum: Optional[int] = None) -> int:
    """Integer from the environment; unset, malformed or below ``minimum`` gives ``default``."""
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if minimum is not None and value < minimum:
        return default
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.environ.get(name, "")
    items = tuple(s.strip() for s in raw.split(",") if s.strip())
    return items or default


# =========================
# Timing
# =========================

INTERVAL_MS = _env_int("DEVICE_ROTATE_INTERVAL_MS", 60_000, minimum=0)
SETTLE_MS = _env_int("DEVICE_ROTATE_SETTLE_MS", 20_000, minimum=0)
NAV_TIMEOUT_MS = _env_int("DEVICE_ROTATE_NAV_TIMEOUT_MS", 60_000, minimum=0)
SCREENSHOT_TIMEOUT_MS = _env_int("DEVICE_ROTATE_SCREENSHOT_TIMEOUT_MS", 30_000, minimum=0)
ERROR_SCREENSHOT_TIMEOUT_MS = _env_int("DEVICE_ROTATE_ERROR_SCREENSHOT_TIMEOUT_MS", 10_000, minimum=0)
POLL_MS = _env_int("DEVICE_ROTATE_POLL_MS", 1_000, minimum=1)
MAX_ITERATIONS = _env_int("DEVICE_ROTATE_MAX_ITERATIONS", 1000, minimum=1)

# =========================
# Browser & output
# =========================

HEADLESS = _env_bool("DEVICE_ROTATE_HEADLESS", True)
FULL_PAGE = _env_bool("DEVICE_ROTATE_FULL_PAGE", True)
LAUNCH_ARGS: Tuple[str, ...] = ("--disable-dev-shm-usage",)
OUTPUT_DIR = os.environ.get("DEVICE_ROTATE_OUTPUT_DIR", "screenshots")
LOG_LEVEL = os.environ.get("DEVICE_ROTATE_LOG_LEVEL", "INFO")

# Matched case-insensitively against the page title and body text.
DEFAULT_NOT_FOUND_MARKERS: Tuple[str, ...] = (
    "404",
    "not found",
    "page not found",
    "this page could not be found",
    "page doesn't exist",
    "page does not exist",
)
NOT_FOUND_MARKERS = _env_list("DEVICE_ROTATE_NOT_FOUND_MARKERS", DEFAULT_NOT_FOUND_MARKERS)


@dataclass(frozen=True)
class RunSettings:
    """Effective settings for one process run."""

    interval_ms: int = INTERVAL_MS
    settle_ms: int = SETTLE_MS
    nav_timeout_ms: int = NAV_TIMEOUT_MS
    screenshot_timeout_ms: int = SCREENSHOT_TIMEOUT_MS
    error_screenshot_timeout_ms: int = ERROR_SCREENSHOT_TIMEOUT_MS
    poll_ms: int = POLL_MS
    max_iterations: int = MAX_ITERATIONS
    headless: bool = HEADLESS
    full_page: bool = FULL_PAGE
    launch_args: Tuple[str, ...] = LAUNCH_ARGS
    output_dir: Path = field(default_factory=lambda: Path(OUTPUT_DIR))
    not_found_markers: Tuple[str, ...] = NOT_FOUND_MARKERS

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.poll_ms < 1:
            raise ValueError(f"poll_ms must be >= 1, got {self.poll_ms}")
        for name in ("interval_ms", "settle_ms", "nav_timeout_ms", "screenshot_timeout_ms",
                     "error_screenshot_timeout_ms"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")

    @classmethod
    def from_env(cls) -> "RunSettings":
        return cls()

    def with_overrides(self, **overrides) -> "RunSettings":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if "output_dir" in changes:
            changes["output_dir"] = Path(changes["output_dir"])
        if "not_found_markers" in changes:
            markers: List[str] = list(changes["not_found_markers"])
            if not markers:
                del changes["not_found_markers"]
            else:
                changes["not_found_markers"] = tuple(markers)
        return replace(self, **changes)


def describe(settings: Optional[RunSettings] = None) -> str:
    s = settings or RunSettings.from_env()
    return (
        f"interval={s.interval_ms}ms settle={s.settle_ms}ms nav_timeout={s.nav_timeout_ms}ms "
        f"max_iterations={s.max_iterations} headless={s.headless} output_dir={s.output_dir}"
    )
