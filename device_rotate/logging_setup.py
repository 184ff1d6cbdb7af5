# logging_setup.py
# Root logger setup for a run: timestamped stdout handler plus an optional
# append-mode log file. Modules log through logging.getLogger("device_rotate.<module>").

import logging
import sys
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def setup_logging(level: Union[str, int] = "INFO", log_file: Optional[Path] = None) -> None:
    """Configure console (and optional file) logging for a run.

    Existing root handlers are replaced so repeated calls from tests or a
    re-entered CLI do not duplicate output.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # asyncio slow-callback warnings drown out the iteration log.
    logging.getLogger("asyncio").setLevel(logging.WARNING)
