"""Fixed-interval polling with an attempt ceiling."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    interval: float
    max_attempts: int

    def __post_init__(self) -> None:
        if self.interval < 0:
            raise ValueError("interval must be >= 0")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


@dataclass(frozen=True)
class LifecyclePolicy:
    """Timing for the queue wait (~1 min) and the stage wait (~20 min)."""

    queue: RetryPolicy = field(default_factory=lambda: RetryPolicy(2.0, 30))
    build: RetryPolicy = field(default_factory=lambda: RetryPolicy(2.0, 600))

    @classmethod
    def from_env(cls) -> "LifecyclePolicy":
        """Defaults, overridden by ``JENKINS_HELPER_{QUEUE,BUILD}_{INTERVAL,MAX_ATTEMPTS}``."""
        default = cls()
        return cls(
            queue=RetryPolicy(
                _env_float("JENKINS_HELPER_QUEUE_INTERVAL", default.queue.interval),
                _env_int("JENKINS_HELPER_QUEUE_MAX_ATTEMPTS", default.queue.max_attempts),
            ),
            build=RetryPolicy(
                _env_float("JENKINS_HELPER_BUILD_INTERVAL", default.build.interval),
                _env_int("JENKINS_HELPER_BUILD_MAX_ATTEMPTS", default.build.max_attempts),
            ),
        )


async def poll_until(
    attempt: Callable[[], Awaitable[T | None]],
    policy: RetryPolicy,
    sleep: Sleep = asyncio.sleep,
) -> T | None:
    """Call *attempt* until it returns something other than None.

    At most ``policy.max_attempts`` calls are made, with ``policy.interval``
    seconds between them. Returns None once the ceiling is reached.
    """
    for n in range(policy.max_attempts):
        if n:
            await sleep(policy.interval)
        value = await attempt()
        if value is not None:
            return value
    return None
