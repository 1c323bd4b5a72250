from __future__ import annotations

from pathlib import Path

import pytest

from warden.context import FrameworkContext
from warden.cooldowns import CooldownTracker
from warden.registry import NullEventSource
from warden.settings import WardenSettings
from tests.discord_fakes import FakeGuild, FakeUser
from tests.factories import GUILD_OWNER_ID, MEMBER_ID, OWNER_ID, FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def plugins_dir(tmp_path: Path) -> Path:
    path = tmp_path / "plugins"
    path.mkdir()
    return path


@pytest.fixture
def settings(tmp_path: Path, plugins_dir: Path) -> WardenSettings:
    return WardenSettings(
        owner_ids=[OWNER_ID],
        plugins_dir=plugins_dir,
        state_path=tmp_path / "state.json",
    )


@pytest.fixture
def source() -> NullEventSource:
    return NullEventSource()


@pytest.fixture
def framework(
    settings: WardenSettings, source: NullEventSource, clock: FakeClock
) -> FrameworkContext:
    return FrameworkContext(
        settings, source=source, cooldowns=CooldownTracker(clock=clock)
    )


@pytest.fixture
def guild() -> FakeGuild:
    return FakeGuild(id=500, owner_id=GUILD_OWNER_ID)


@pytest.fixture
def member() -> FakeUser:
    return FakeUser(id=MEMBER_ID)
