# navigation.py
# Two-step navigation policy: wait for network quiescence first; if that step
# times out, settle once for the DOM-parsed signal instead of failing.

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from playwright.async_api import TimeoutError as PwTimeout

LOGGER = logging.getLogger("device_rotate.navigation")

NAVIGATION_POLICY = ("networkidle", "domcontentloaded")


class NavigationError(Exception):
    """The page answered, but with an HTTP status that fails the iteration."""


@dataclass
class NavigationOutcome:
    response: Optional[Any]
    wait_until: str
    fell_back: bool

    @property
    def status(self) -> Optional[int]:
        return self.response.status if self.response is not None else None


async def navigate(
    page: Any,
    url: str,
    timeout_ms: int,
    policy: Sequence[str] = NAVIGATION_POLICY,
    tag: str = "",
) -> NavigationOutcome:
    """
    Walk the policy in order. Only a timeout moves to the next completion
    condition; the last step's timeout and every other error propagate.
    """
    if not policy:
        raise ValueError("navigation policy is empty")

    last = len(policy) - 1
    for step, wait_until in enumerate(policy):
        try:
            response = await page.goto(url, wait_until=wait_until, timeout=timeout_ms)
        except PwTimeout as e:
            if step == last:
                raise
            LOGGER.warning(
                "[%s] goto(wait_until=%s) timed out after %dms, falling back to %s: %s",
                tag, wait_until, timeout_ms, policy[step + 1], e,
            )
            continue
        return NavigationOutcome(response=response, wait_until=wait_until, fell_back=step > 0)
