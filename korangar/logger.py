"""Timestamped trace output."""

from __future__ import annotations

import sys
import time

__all__ = ["log_message"]


def log_message(fmt: str, *args: object) -> str:
    """Write ``fmt % args`` to standard output behind a trace timestamp.

    The format uses printf-style directives; the caller supplies any
    trailing newline. Returns the text that was written.
    """
    stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime())
    body = fmt % args if args else fmt
    line = f"[TRACE {stamp}] {body}"
    sys.stdout.write(line)
    sys.stdout.flush()
    return line