"""Pure kernel domain helpers (no ORM, no I/O)."""

from console_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
]
