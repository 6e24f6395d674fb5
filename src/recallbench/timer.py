from __future__ import annotations

from time import perf_counter


class Timer:
    """Monotonic wall clock anchored at construction."""

    def __init__(self) -> None:
        self._t0 = perf_counter()

    def elapsed(self) -> float:
        return perf_counter() - self._t0

    def stamp(self) -> str:
        return f"[{self.elapsed():.3f} s]"


__all__ = ["Timer"]
