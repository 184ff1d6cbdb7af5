# observers.py
# Page event observers. A session attaches one observer before navigation so
# console/pageerror/requestfailed/response events during load are not missed.

import logging
from typing import Any

LOGGER = logging.getLogger("device_rotate.observers")

CONSOLE_LEVELS_LOGGED = ("error", "warning")
ERROR_STATUS_FLOOR = 400


class PageObserver:
    """Receives the four page events a session cares about. Default: ignore."""

    def on_console(self, message: Any) -> None:
        pass

    def on_page_error(self, error: Any) -> None:
        pass

    def on_request_failed(self, request: Any) -> None:
        pass

    def on_response(self, response: Any) -> None:
        pass


class LoggingPageObserver(PageObserver):
    """Logs page events tagged with the owning profile name."""

    def __init__(self, profile_name: str, logger: logging.Logger = LOGGER):
        self.profile_name = profile_name
        self.logger = logger
        self.console_errors = 0
        self.page_errors = 0
        self.failed_requests = 0
        self.error_responses = 0

    def on_console(self, message: Any) -> None:
        kind = getattr(message, "type", "log")
        if kind not in CONSOLE_LEVELS_LOGGED:
            return
        self.console_errors += 1
        level = logging.ERROR if kind == "error" else logging.WARNING
        self.logger.log(level, "[%s] PAGE %s> %s", self.profile_name, kind.upper(), getattr(message, "text", message))

    def on_page_error(self, error: Any) -> None:
        self.page_errors += 1
        self.logger.error("[%s] PAGE EXCEPTION> %s", self.profile_name, getattr(error, "message", None) or error)

    def on_request_failed(self, request: Any) -> None:
        self.failed_requests += 1
        self.logger.warning(
            "[%s] REQUEST FAILED> %s %s (%s)",
            self.profile_name,
            getattr(request, "method", "GET"),
            getattr(request, "url", "?"),
            getattr(request, "failure", None) or "unknown failure",
        )

    def on_response(self, response: Any) -> None:
        status = getattr(response, "status", 0) or 0
        if status < ERROR_STATUS_FLOOR:
            return
        self.error_responses += 1
        self.logger.warning("[%s] HTTP %s> %s", self.profile_name, status, getattr(response, "url", "?"))

    def summary(self) -> str:
        return (
            f"console={self.console_errors} page_errors={self.page_errors} "
            f"failed_requests={self.failed_requests} error_responses={self.error_responses}"
        )


def attach_observer(page: Any, observer: PageObserver) -> None:
    page.on("console", observer.on_console)
    page.on("pageerror", observer.on_page_error)
    page.on("requestfailed", observer.on_request_failed)
    page.on("response", observer.on_response)
