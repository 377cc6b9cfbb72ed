"""
Log callbacks

Components report through a ``log_callback(level, message)`` they are
given; this module builds the default one that prints to stderr.
"""

import sys
from typing import Callable, Optional, TextIO

LogCallback = Callable[[str, str], None]

LEVELS = ('info', 'warning', 'error', 'fatal')

LEVEL_NAMES = {
    'info': '[Info]',
    'warning': '[Warning]',
    'error': '[Error]',
    'fatal': '[Fatal]',
}


def make_log_callback(verbose: bool = False, stream: Optional[TextIO] = None) -> LogCallback:
    """Build a callback printing ``[Level] message`` lines.

    Info lines are dropped unless ``verbose``.
    """
    threshold = LEVELS.index('info' if verbose else 'warning')

    def log(level: str, message: str):
        rank = LEVELS.index(level) if level in LEVELS else 0
        if rank < threshold:
            return
        print(f"{LEVEL_NAMES.get(level, '[' + level + ']')} {message}", file=stream or sys.stderr)

    return log
