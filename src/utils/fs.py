"""
Filesystem helpers that survive daemonization.
The daemon changes its working directory to '/', so relative paths given on
the command line are resolved against the directory cached at startup.
"""

import os
from typing import Optional

_cwd: Optional[str] = None


def cached_getcwd() -> str:
    """Return the working directory observed on the first call"""
    global _cwd
    if _cwd is None:
        _cwd = os.getcwd()
    return _cwd


def absolute_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.normpath(os.path.join(cached_getcwd(), path))
