"""
Execution contexts - block height and caller identity.

StaticContext is driven explicitly (scripts, tests, replays).
WallClockContext derives the height from wall time for the HTTP surface.
"""

import time
from typing import Callable, Optional

from .base import ExecutionContext


class StaticContext(ExecutionContext):
    """
    Context with an explicit caller and a manually advanced height.

    Usage:
        ctx = StaticContext(caller="alice", height=100)
        ctx.advance(6)
        ctx.as_caller("bob")
    """

    def __init__(self, caller: str, height: int = 0):
        if height < 0:
            raise ValueError("Block height cannot be negative")
        self._caller = caller
        self._height = height

    def now(self) -> int:
        return self._height

    def caller(self) -> str:
        return self._caller

    def advance(self, blocks: int = 1) -> int:
        """Move the clock forward; heights never decrease"""
        if blocks < 0:
            raise ValueError("Block height is monotonic")
        self._height += blocks
        return self._height

    def as_caller(self, caller: str) -> "StaticContext":
        """Switch the identity used for subsequent operations"""
        self._caller = caller
        return self


def block_height(genesis_timestamp: int, block_time_seconds: int, timestamp: float) -> int:
    """Whole block intervals elapsed since genesis; 0 before genesis"""
    return max(0, (int(timestamp) - genesis_timestamp) // block_time_seconds)


class WallClockContext(ExecutionContext):
    """Height = whole block intervals elapsed since genesis"""

    def __init__(
        self,
        caller: str,
        genesis_timestamp: int,
        block_time_seconds: int,
        clock: Optional[Callable[[], float]] = None,
    ):
        if block_time_seconds <= 0:
            raise ValueError("block_time_seconds must be positive")
        self._caller = caller
        self._genesis = genesis_timestamp
        self._block_time = block_time_seconds
        self._clock = clock or time.time

    def now(self) -> int:
        return block_height(self._genesis, self._block_time, self._clock())

    def caller(self) -> str:
        return self._caller
