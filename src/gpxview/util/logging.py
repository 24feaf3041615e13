# gpxview/util/logging.py
from __future__ import annotations

import datetime
import logging
import sys


def log(msg: str) -> None:
    """Print a timestamped log line (local time with timezone) to stderr."""
    ts = datetime.datetime.now().astimezone().isoformat(timespec="seconds")
    print(f"{ts}  {msg}", file=sys.stderr)


def configure_logging(verbose: bool = False) -> None:
    """Route library log records (gpxview.*) to stderr for CLI runs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s  %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
