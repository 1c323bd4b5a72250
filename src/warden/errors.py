from __future__ import annotations


class WardenError(Exception):
    pass


class PluginError(WardenError):
    def __init__(self, plugin: str, message: str) -> None:
        super().__init__(message)
        self.plugin = plugin


class PluginLoadError(PluginError):
    """Entry module missing or failed to import/initialize."""


class PluginInvalidError(PluginError):
    """Entry module imported but does not have the plugin shape."""


class RegistrationError(WardenError):
    pass


class InvalidDescriptorError(RegistrationError):
    pass


class RegistrationConflictError(RegistrationError):
    def __init__(self, key: str, *, owner: str, existing_owner: str | None) -> None:
        super().__init__(
            f"{key!r} from plugin {owner!r} conflicts with existing command "
            f"from plugin {existing_owner!r}"
        )
        self.key = key
        self.owner = owner
        self.existing_owner = existing_owner


class CommandRejected(WardenError):
    """A pre-check refused the invocation; the message is shown to the user."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.user_message = message


class GuildOnlyViolation(CommandRejected):
    def __init__(self) -> None:
        super().__init__("This command can only be used in a server.")


class OwnerOnlyViolation(CommandRejected):
    def __init__(self) -> None:
        super().__init__("This command can only be used by the bot owner.")


class PermissionDenied(CommandRejected):
    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            "You don't have permission to use this command. "
            f"Missing: {', '.join(missing)}"
        )
        self.missing = missing


class CooldownActive(CommandRejected):
    def __init__(self, command: str, retry_after_ms: int) -> None:
        seconds = retry_after_ms / 1000
        super().__init__(
            f"Please wait {seconds:.1f} more second(s) before reusing the "
            f"`{command}` command."
        )
        self.command = command
        self.retry_after_ms = retry_after_ms


class HandlerExecutionError(WardenError):
    """An exception raised from inside a command, event or component handler."""

    def __init__(self, *, owner: str | None, name: str, error: BaseException) -> None:
        super().__init__(f"{name} ({owner or 'unknown'}): {error}")
        self.owner = owner
        self.name = name
        self.error = error
