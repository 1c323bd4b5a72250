"""py-cord integration: gateway client, command sync and invocation adapters."""
