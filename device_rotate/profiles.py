# profiles.py
# Fixed device rotation. Emulation only: viewport, user agent, scale factor,
# mobile/touch flags and locale. This does NOT change the public IP.
#
# Phones and tablets come from Playwright's descriptor registry
# (``playwright.devices``). CUSTOM_PROFILES covers the rest.

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple


@dataclass(frozen=True)
class DeviceProfile:
    name: str
    viewport: Optional[Dict[str, int]] = None
    user_agent: Optional[str] = None
    device_scale_factor: float = 1
    is_mobile: bool = False
    has_touch: bool = False
    locale: Optional[str] = None

    def __post_init__(self):
        if not (self.name or "").strip():
            raise ValueError("DeviceProfile.name must be non-empty")
        if self.viewport is not None:
            width = self.viewport.get("width")
            height = self.viewport.get("height")
            if not isinstance(width, int) or not isinstance(height, int) or width <= 0 or height <= 0:
                raise ValueError(f"Invalid viewport for {self.name!r}: {self.viewport!r}")

    @classmethod
    def from_descriptor(cls, name: str, descriptor: Mapping[str, Any]) -> "DeviceProfile":
        """Build a profile from a Playwright device descriptor (``p.devices[name]``)."""
        viewport = descriptor.get("viewport")
        return cls(
            name=name,
            viewport=dict(viewport) if viewport else None,
            user_agent=descriptor.get("user_agent"),
            device_scale_factor=descriptor.get("device_scale_factor", 1),
            is_mobile=bool(descriptor.get("is_mobile", False)),
            has_touch=bool(descriptor.get("has_touch", False)),
            locale=descriptor.get("locale"),
        )

    def context_options(self) -> Dict[str, Any]:
        """Keyword arguments for ``Browser.new_context``; absent fields are left out."""
        opts: Dict[str, Any] = {
            "device_scale_factor": self.device_scale_factor,
            "is_mobile": self.is_mobile,
            "has_touch": self.has_touch,
        }
        if self.viewport:
            opts["viewport"] = dict(self.viewport)
        if self.user_agent:
            opts["user_agent"] = self.user_agent
        if self.locale:
            opts["locale"] = self.locale
        return opts


# =========================
# Rotation
# =========================

ROTATION_NAMES: Tuple[str, ...] = (
    "iPhone 15 Pro",
    "Pixel 7",
    "iPad (gen 7)",
    "Desktop Chrome",
    "Galaxy S23",
)

# Spelled out by hand: a 1366x768 laptop (the registry's "Desktop Chrome" is
# 1280x720) and Galaxy S23, which the registry does not have.
CUSTOM_PROFILES: Dict[str, DeviceProfile] = {
    "Desktop Chrome": DeviceProfile(
        name="Desktop Chrome",
        viewport={"width": 1366, "height": 768},
        user_agent=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
    ),
    "Galaxy S23": DeviceProfile(
        name="Galaxy S23",
        viewport={"width": 360, "height": 780},
        user_agent=(
            "Mozilla/5.0 (Linux; Android 14; SM-S911B) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36"
        ),
        device_scale_factor=3,
        is_mobile=True,
        has_touch=True,
    ),
}


def build_rotation(
    devices: Mapping[str, Mapping[str, Any]],
    names: Sequence[str] = ROTATION_NAMES,
) -> Tuple[DeviceProfile, ...]:
    """
    Resolve ``names`` in order: custom profiles first, then the Playwright
    descriptor registry. A name found in neither is a ValueError.
    """
    profiles = []
    for name in names:
        if name in CUSTOM_PROFILES:
            profiles.append(CUSTOM_PROFILES[name])
            continue
        descriptor = devices.get(name)
        if descriptor is None:
            raise ValueError(f"No Playwright device descriptor named {name!r}")
        profiles.append(DeviceProfile.from_descriptor(name, descriptor))
    if not profiles:
        raise ValueError("profile rotation is empty")
    return tuple(profiles)


def select_profile(profiles: Sequence[DeviceProfile], iteration: int) -> DeviceProfile:
    """Round-robin: ``profiles[iteration % len(profiles)]``."""
    if not profiles:
        raise ValueError("profile rotation is empty")
    if iteration < 0:
        raise ValueError(f"iteration must be >= 0, got {iteration}")
    return profiles[iteration % len(profiles)]
