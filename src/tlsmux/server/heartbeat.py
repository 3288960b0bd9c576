"""
TLSMux Server Heartbeat Module
Wall-clock aligned ticking and client idle accounting.
"""

import time

from typing import Callable

from ..common.constants import TICK_INTERVAL, IDLE_TIMEOUT_TICKS
from .connection import ConnectionSlot


class HeartbeatManager:
    """
    Decides when a tick is due and ages client slots.

    Ticks are aligned to tick_interval boundaries of the wall clock
    (whole minutes by default) and re-aligned on every tick, so loop
    jitter never accumulates. At most one tick is reported per check,
    however long the gap since the previous one.
    """

    def __init__(
        self,
        tick_interval: float = TICK_INTERVAL,
        idle_timeout_ticks: int = IDLE_TIMEOUT_TICKS,
        clock: Callable[[], float] = time.time
    ):
        if tick_interval <= 0:
            raise ValueError(f"Tick interval must be positive, got {tick_interval}")
        if idle_timeout_ticks < 1:
            raise ValueError(f"Idle timeout must be at least 1 tick, got {idle_timeout_ticks}")

        self.tick_interval = tick_interval
        self.idle_timeout_ticks = idle_timeout_ticks
        self._clock = clock
        self.last_boundary = self._boundary(clock())

    def _boundary(self, now: float) -> float:
        return now - (now % self.tick_interval)

    def check(self) -> bool:
        """
        Advance to the current boundary if a tick is due.

        Returns:
            True if a tick elapsed since the last one
        """
        now = self._clock()
        if now - self.last_boundary < self.tick_interval:
            return False
        self.last_boundary = self._boundary(now)
        return True

    def age(self, slot: ConnectionSlot) -> bool:
        """
        Count one idle tick against a slot.

        Returns:
            True if the slot has now been idle too long
        """
        slot.idle_ticks += 1
        return slot.idle_ticks >= self.idle_timeout_ticks

    @staticmethod
    def touch(slot: ConnectionSlot) -> None:
        """Record read activity on a slot."""
        slot.idle_ticks = 0
