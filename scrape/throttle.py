"""
Inter-unit throttle and resource guard.

The delay runs after every unit, success or failure, outside any per-unit
error handling. The guard samples memory before each unit and tells the
orchestrator to stop issuing work once the ceiling is crossed.
"""

import random
import time
from typing import Callable

import psutil

from .config import ScrapeConfig


class RateLimiter:
    """Uniform random delay between units."""

    def __init__(
        self,
        min_sec: float = 2.0,
        max_sec: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ):
        if min_sec < 0 or max_sec < min_sec:
            raise ValueError(f"Invalid delay window: [{min_sec}, {max_sec}]")
        self.min_sec = min_sec
        self.max_sec = max_sec
        self._sleep = sleep
        self._rng = rng or random.Random()

    @classmethod
    def from_config(cls, config: ScrapeConfig, **kwargs) -> "RateLimiter":
        return cls(config.min_delay_sec, config.max_delay_sec, **kwargs)

    def next_delay(self) -> float:
        return self._rng.uniform(self.min_sec, self.max_sec)

    def delay_between_units(self) -> float:
        delay = self.next_delay()
        print(f"  [throttle] waiting {delay:.1f}s before next unit")
        self._sleep(delay)
        return delay


def process_tree_memory_mb(pid: int | None = None) -> float:
    """
    Resident memory of this process plus its children, in MB.

    The browser runs as child processes of the Playwright driver, so the
    whole tree is counted.
    """
    try:
        proc = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return 0.0

    total = 0
    for p in [proc, *proc.children(recursive=True)]:
        try:
            total += p.memory_info().rss
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return total / (1024 ** 2)


class ResourceGuard:
    """Stops the run once sampled memory exceeds a fixed ceiling."""

    def __init__(self, ceiling_mb: float, sampler: Callable[[], float] = process_tree_memory_mb):
        self.ceiling_mb = ceiling_mb
        self._sampler = sampler
        self.last_sample_mb: float | None = None

    @classmethod
    def from_config(cls, config: ScrapeConfig, **kwargs) -> "ResourceGuard":
        return cls(config.memory_ceiling_mb, **kwargs)

    def check_resource_budget(self) -> bool:
        """True if the run may start another unit."""
        used = self._sampler()
        self.last_sample_mb = used
        if used > self.ceiling_mb:
            print(f"  [guard] memory {used:.0f}MB exceeds ceiling {self.ceiling_mb:.0f}MB")
            return False
        return True
