"""Slash commands typed into the chat box.

Text starting with the command prefix is decoded once into one of the
variants below and never reaches the realtime channel as a message.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ClearCommand:
    """Clear the local log."""


@dataclass(frozen=True)
class SlowModeCommand:
    delay: float


@dataclass(frozen=True)
class SlowModeOffCommand:
    pass


@dataclass(frozen=True)
class UnknownCommand:
    name: str


ChatCommand = ClearCommand | SlowModeCommand | SlowModeOffCommand | UnknownCommand


def parse_command(text: str, prefix: str, default_delay: float) -> ChatCommand | None:
    """Decode ``text`` as a command, or return None when it is ordinary chat."""
    stripped = text.strip()
    if not prefix or not stripped.startswith(prefix):
        return None

    parts = stripped[len(prefix):].split()
    if not parts:
        return UnknownCommand(name="")

    name, args = parts[0].lower(), parts[1:]
    if name == "clear":
        return ClearCommand()
    if name == "slow":
        if not args:
            return SlowModeCommand(delay=default_delay)
        try:
            delay = float(args[0])
        except ValueError:
            return UnknownCommand(name=name)
        if delay < 0:
            return UnknownCommand(name=name)
        return SlowModeCommand(delay=delay)
    if name == "slowoff":
        return SlowModeOffCommand()
    return UnknownCommand(name=name)
