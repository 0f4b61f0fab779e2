from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from burn_watch.config import AppSettings


@dataclass(frozen=True)
class Backoff:
    initial_sec: float = 1.0
    multiplier: float = 2.0
    max_sec: float = 60.0

    @classmethod
    def from_settings(cls, settings: AppSettings) -> Backoff:
        return cls(
            initial_sec=settings.backoff_initial_sec,
            multiplier=settings.backoff_multiplier,
            max_sec=settings.backoff_max_sec,
        )

    def delays(self) -> Iterator[float]:
        """Unbounded sequence of waits: initial, initial*m, ... capped at max_sec."""
        delay = self.initial_sec
        while True:
            yield min(delay, self.max_sec)
            delay = min(delay * self.multiplier, self.max_sec)
