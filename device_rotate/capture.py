# capture.py
# Screenshot naming, capture and inspection.
#
# OUTPUTS
#   <output_dir>/screenshot-<iteration>-<profile>.png
#   <output_dir>/screenshot-<iteration>-<profile>-404-error.png   (page looked like a 404)
#   <output_dir>/error-screenshot-<iteration>-<profile>.png       (session failed)

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from PIL import Image

from device_rotate.health import PageHealth

LOGGER = logging.getLogger("device_rotate.capture")

SCREENSHOT_PREFIX = "screenshot"
ERROR_PREFIX = "error-"
NOT_FOUND_SUFFIX = "-404-error"

# A frame whose channels all span fewer levels than this is treated as blank.
BLANK_RANGE_THRESHOLD = 4


def safe_name(s: str) -> str:
    return re.sub(r"[^a-zA-Z0-9._-]+", "_", (s or "").strip()).strip("_") or "unnamed"


def ensure_output_dir(path: Path) -> Path:
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def screenshot_path(output_dir: Path, iteration: int, profile_name: str, health: PageHealth) -> Path:
    suffix = NOT_FOUND_SUFFIX if health == PageHealth.NOT_FOUND else ""
    return Path(output_dir) / f"{SCREENSHOT_PREFIX}-{iteration}-{safe_name(profile_name)}{suffix}.png"


def error_screenshot_path(output_dir: Path, iteration: int, profile_name: str) -> Path:
    return Path(output_dir) / f"{ERROR_PREFIX}{SCREENSHOT_PREFIX}-{iteration}-{safe_name(profile_name)}.png"


@dataclass
class ScreenshotInfo:
    width: int
    height: int
    blank: bool


def inspect_screenshot(path: Path) -> ScreenshotInfo:
    """Open the saved PNG with Pillow and report its size and whether it is a flat frame."""
    with Image.open(path) as img:
        img.load()
        extrema = img.convert("RGB").getextrema()
        blank = all((hi - lo) < BLANK_RANGE_THRESHOLD for lo, hi in extrema)
        return ScreenshotInfo(width=img.width, height=img.height, blank=blank)


async def take_screenshot(page: Any, path: Path, full_page: bool, timeout_ms: int, tag: str = "") -> Optional[Path]:
    """
    Capture to ``path``. Returns the path on success, None on failure; a
    failed capture is logged and never raised.
    """
    try:
        await page.screenshot(path=str(path), full_page=full_page, timeout=timeout_ms)
    except Exception as e:
        LOGGER.error("[%s] screenshot failed (%s): %s", tag, path.name, e)
        return None
    LOGGER.info("[%s] [saved] %s", tag, path)

    try:
        info = inspect_screenshot(path)
    except Exception as e:
        LOGGER.warning("[%s] could not inspect %s: %s", tag, path.name, e)
        return path
    if info.blank:
        LOGGER.warning("[%s] screenshot %s is blank (%dx%d)", tag, path.name, info.width, info.height)
    else:
        LOGGER.debug("[%s] screenshot %s is %dx%d", tag, path.name, info.width, info.height)
    return path
