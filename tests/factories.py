from __future__ import annotations

OWNER_ID = 1
GUILD_OWNER_ID = 2
MEMBER_ID = 3


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
