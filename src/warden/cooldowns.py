from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass

# Sweep expired entries every N checks so idle users do not accumulate.
SWEEP_EVERY = 256


@dataclass(frozen=True, slots=True)
class CooldownResult:
    allowed: bool
    retry_after_ms: int | None = None


class CooldownTracker:
    """Per-command, per-user cooldown windows.

    Callers must pass the canonical command name; aliases share the window.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._expiry: dict[tuple[str, int], float] = {}
        self._checks = 0

    def check(
        self, command_name: str, user_id: int, cooldown_seconds: float
    ) -> CooldownResult:
        if cooldown_seconds <= 0:
            return CooldownResult(allowed=True)
        now = self._clock()
        self._checks += 1
        if self._checks % SWEEP_EVERY == 0:
            self.sweep(now)

        key = (command_name, user_id)
        expires_at = self._expiry.get(key)
        if expires_at is not None and now < expires_at:
            remaining_ms = math.ceil((expires_at - now) * 1000)
            return CooldownResult(allowed=False, retry_after_ms=remaining_ms)

        self._expiry[key] = now + cooldown_seconds
        return CooldownResult(allowed=True)

    def remaining_ms(self, command_name: str, user_id: int) -> int:
        expires_at = self._expiry.get((command_name, user_id))
        if expires_at is None:
            return 0
        remaining = expires_at - self._clock()
        if remaining <= 0:
            del self._expiry[(command_name, user_id)]
            return 0
        return math.ceil(remaining * 1000)

    def sweep(self, now: float | None = None) -> int:
        current = self._clock() if now is None else now
        expired = [key for key, expires_at in self._expiry.items() if expires_at <= current]
        for key in expired:
            del self._expiry[key]
        return len(expired)

    def reset(self, command_name: str | None = None, user_id: int | None = None) -> None:
        if command_name is None and user_id is None:
            self._expiry.clear()
            return
        for key in list(self._expiry):
            name, user = key
            if command_name is not None and name != command_name:
                continue
            if user_id is not None and user != user_id:
                continue
            del self._expiry[key]

    def __len__(self) -> int:
        return len(self._expiry)
