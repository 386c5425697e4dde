# src/lasclean/utils/memory.py
from __future__ import annotations

from typing import Optional, Tuple

import psutil


def rss_mb_and_fds() -> Tuple[Optional[float], Optional[int]]:
    """
    Resident memory (MiB) and open file descriptors of this process.
    Best effort: (None, None) when the platform refuses the query.
    """
    try:
        p = psutil.Process()
        rss = float(p.memory_info().rss) / (1024.0 * 1024.0)
        fds = int(p.num_fds()) if hasattr(p, "num_fds") else None
        return rss, fds
    except (psutil.Error, OSError):
        return None, None


class PeakMemory:
    """Tracks the highest RSS seen across sample() calls."""

    def __init__(self) -> None:
        self.peak_mb: Optional[float] = None

    def sample(self) -> Optional[float]:
        rss, _fds = rss_mb_and_fds()
        if rss is not None and (self.peak_mb is None or rss > self.peak_mb):
            self.peak_mb = rss
        return rss
