"""Pre-checks and error containment around command handlers."""

from __future__ import annotations

import enum
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .cooldowns import CooldownTracker
from .errors import (
    CommandRejected,
    CooldownActive,
    GuildOnlyViolation,
    HandlerExecutionError,
    OwnerOnlyViolation,
    PermissionDenied,
)
from .logging import get_logger
from .model import CommandDescriptor
from .permissions import Capabilities

logger = get_logger(__name__)

GENERIC_FAILURE = "There was an error while executing this command!"

Reply = Callable[[str], Awaitable[Any]]


class PipelineOutcome(enum.Enum):
    COMPLETED = "completed"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class Invocation:
    """One attempt to run a command, independent of how it arrived."""

    capabilities: Capabilities
    guild_id: int | None
    reply: Reply
    source: str = "text"

    @property
    def user_id(self) -> int:
        return self.capabilities.user_id

    @property
    def in_guild(self) -> bool:
        return self.guild_id is not None


class CommandPipeline:
    def __init__(self, cooldowns: CooldownTracker) -> None:
        self.cooldowns = cooldowns

    def check(self, command: CommandDescriptor, invocation: Invocation) -> None:
        """Run the gates in order; raises :class:`CommandRejected`.

        Only the cooldown gate records state, and it runs last.
        """
        caps = invocation.capabilities
        if command.guild_only and not invocation.in_guild:
            raise GuildOnlyViolation()
        if command.owner_only and not caps.is_bot_owner:
            raise OwnerOnlyViolation()
        if command.required_permissions:
            missing = caps.missing(command.required_permissions)
            if missing:
                raise PermissionDenied(missing)
        result = self.cooldowns.check(
            command.name, invocation.user_id, command.cooldown_seconds
        )
        if not result.allowed:
            raise CooldownActive(command.name, result.retry_after_ms or 0)

    async def run(
        self,
        command: CommandDescriptor,
        invocation: Invocation,
        call: Callable[[], Awaitable[Any]],
    ) -> PipelineOutcome:
        try:
            self.check(command, invocation)
        except CommandRejected as exc:
            logger.debug(
                "command.rejected",
                command=command.name,
                plugin=command.owner,
                user_id=invocation.user_id,
                reason=exc.__class__.__name__,
            )
            await invocation.reply(exc.user_message)
            return PipelineOutcome.REJECTED

        logger.debug(
            "command.executing",
            command=command.name,
            plugin=command.owner,
            source=invocation.source,
        )
        try:
            await call()
        except Exception as exc:
            error = HandlerExecutionError(owner=command.owner, name=command.name, error=exc)
            logger.exception(
                "command.failed",
                command=command.name,
                plugin=command.owner,
                user_id=invocation.user_id,
                guild_id=invocation.guild_id,
                error=str(error),
                error_type=exc.__class__.__name__,
            )
            await invocation.reply(GENERIC_FAILURE)
            return PipelineOutcome.FAILED
        return PipelineOutcome.COMPLETED
