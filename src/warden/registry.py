"""Command and event tables with per-plugin attribution."""

from __future__ import annotations

import dataclasses
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

from .errors import InvalidDescriptorError, RegistrationConflictError
from .logging import get_logger
from .model import CommandDescriptor, EventDescriptor

logger = get_logger(__name__)

EventCallback = Callable[..., Awaitable[None]]


class EventSource(Protocol):
    """Upstream emitter; the registry keeps at most one subscription per event."""

    def subscribe(self, event_name: str, callback: EventCallback) -> None: ...

    def unsubscribe(self, event_name: str) -> None: ...


class NullEventSource:
    """Event source that never fires; used when no client is attached."""

    def __init__(self) -> None:
        self.subscriptions: dict[str, EventCallback] = {}

    def subscribe(self, event_name: str, callback: EventCallback) -> None:
        self.subscriptions[event_name] = callback

    def unsubscribe(self, event_name: str) -> None:
        self.subscriptions.pop(event_name, None)


@dataclass(frozen=True, slots=True)
class UnregisterResult:
    commands_removed: int = 0
    events_removed: int = 0


class ModuleRegistry:
    def __init__(
        self,
        source: EventSource | None = None,
        *,
        context: Any = None,
    ) -> None:
        self._source: EventSource = source if source is not None else NullEventSource()
        # passed as the first argument to every event handler, unless
        # context_resolver maps the handler owner to its own context
        self.context = context
        self.context_resolver: Callable[[str | None], Any] | None = None
        self._commands: dict[str, CommandDescriptor] = {}
        self._keys: dict[str, CommandDescriptor] = {}
        self._events: dict[str, list[EventDescriptor]] = {}

    # -- commands -----------------------------------------------------------

    def add_command(self, descriptor: CommandDescriptor, owner: str) -> CommandDescriptor:
        """Register ``descriptor`` for ``owner`` or raise."""
        if not descriptor.name:
            raise InvalidDescriptorError(f"Command from plugin {owner!r} has no name")
        if descriptor.invoke is None and descriptor.invoke_interaction is None:
            raise InvalidDescriptorError(
                f"Command {descriptor.name!r} from plugin {owner!r} has no handler"
            )
        for key in sorted(descriptor.keys):
            existing = self._keys.get(key)
            if existing is not None:
                raise RegistrationConflictError(
                    key, owner=owner, existing_owner=existing.owner
                )
        stored = dataclasses.replace(descriptor, owner=owner)
        self._commands[stored.name] = stored
        for key in stored.keys:
            self._keys[key] = stored
        return stored

    def register_command(self, descriptor: CommandDescriptor, owner: str) -> bool:
        try:
            stored = self.add_command(descriptor, owner)
        except RegistrationConflictError as exc:
            logger.warning(
                "command.conflict",
                command=descriptor.name,
                key=exc.key,
                plugin=owner,
                existing_plugin=exc.existing_owner,
            )
            return False
        except InvalidDescriptorError as exc:
            logger.error("command.invalid", plugin=owner, error=str(exc))
            return False
        logger.debug(
            "command.registered",
            command=stored.name,
            aliases=sorted(stored.aliases),
            plugin=owner,
        )
        return True

    def lookup(self, name_or_alias: str) -> CommandDescriptor | None:
        return self._keys.get(name_or_alias.strip().lower())

    def commands(self) -> list[CommandDescriptor]:
        return [self._commands[name] for name in sorted(self._commands)]

    def commands_for(self, owner: str) -> list[CommandDescriptor]:
        return [cmd for cmd in self.commands() if cmd.owner == owner]

    def slash_commands(self) -> list[CommandDescriptor]:
        return [cmd for cmd in self.commands() if cmd.is_slash]

    def __len__(self) -> int:
        return len(self._commands)

    def __contains__(self, name_or_alias: object) -> bool:
        return isinstance(name_or_alias, str) and self.lookup(name_or_alias) is not None

    # -- events -------------------------------------------------------------

    def register_event(self, descriptor: EventDescriptor, owner: str) -> bool:
        if not descriptor.event_name or descriptor.invoke is None:
            logger.error(
                "event.invalid",
                plugin=owner,
                event_name=descriptor.event_name or None,
            )
            return False
        stored = dataclasses.replace(descriptor, owner=owner)
        handlers = self._events.setdefault(stored.event_name, [])
        handlers.append(stored)
        if len(handlers) == 1:
            self._subscribe(stored.event_name)
            logger.debug("event.subscribed", event_name=stored.event_name, plugin=owner)
        else:
            logger.debug(
                "event.handler_added",
                event_name=stored.event_name,
                plugin=owner,
                handlers=len(handlers),
            )
        return True

    def events_for(self, event_name: str) -> list[EventDescriptor]:
        return list(self._events.get(event_name, ()))

    def subscribed_events(self) -> list[str]:
        return sorted(self._events)

    def _subscribe(self, event_name: str) -> None:
        async def _callback(*payload: Any) -> None:
            await self.emit(event_name, *payload)

        self._source.subscribe(event_name, _callback)

    def _drop_event(self, event_name: str) -> None:
        self._events.pop(event_name, None)
        self._source.unsubscribe(event_name)
        logger.debug("event.unsubscribed", event_name=event_name)

    async def emit(self, event_name: str, *payload: Any) -> int:
        """Run every handler for ``event_name`` in registration order.

        Returns the number of handlers that completed without raising.
        """
        handlers = list(self._events.get(event_name, ()))
        completed = 0
        for descriptor in handlers:
            # an earlier handler may have unloaded this one's plugin
            current = self._events.get(event_name, ())
            if not any(item is descriptor for item in current):
                continue
            if descriptor.once:
                self._remove_event_descriptor(descriptor)
            invoke = descriptor.invoke
            if invoke is None:
                continue
            try:
                await invoke(self.context_for(descriptor.owner), *payload)
            except Exception as exc:
                logger.exception(
                    "event.handler_failed",
                    event_name=event_name,
                    plugin=descriptor.owner,
                    error=str(exc),
                    error_type=exc.__class__.__name__,
                )
                continue
            completed += 1
        return completed

    def context_for(self, owner: str | None) -> Any:
        if self.context_resolver is not None:
            return self.context_resolver(owner)
        return self.context

    def _remove_event_descriptor(self, descriptor: EventDescriptor) -> None:
        handlers = self._events.get(descriptor.event_name)
        if not handlers:
            return
        remaining = [item for item in handlers if item is not descriptor]
        if remaining:
            self._events[descriptor.event_name] = remaining
        else:
            self._drop_event(descriptor.event_name)

    # -- owners -------------------------------------------------------------

    def unregister_owner(self, owner: str) -> UnregisterResult:
        removed_commands = [cmd for cmd in self._commands.values() if cmd.owner == owner]
        for cmd in removed_commands:
            del self._commands[cmd.name]
        for key in [key for key, cmd in self._keys.items() if cmd.owner == owner]:
            del self._keys[key]

        events_removed = 0
        for event_name in list(self._events):
            handlers = self._events[event_name]
            remaining = [item for item in handlers if item.owner != owner]
            events_removed += len(handlers) - len(remaining)
            if not remaining:
                self._drop_event(event_name)
            elif len(remaining) != len(handlers):
                self._events[event_name] = remaining

        return UnregisterResult(
            commands_removed=len(removed_commands),
            events_removed=events_removed,
        )

    def owners(self) -> set[str]:
        owners = {cmd.owner for cmd in self._commands.values() if cmd.owner}
        for handlers in self._events.values():
            owners.update(item.owner for item in handlers if item.owner)
        return owners
