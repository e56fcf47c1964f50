from .commands import ChatCommand, ClearCommand, SlowModeCommand, SlowModeOffCommand, UnknownCommand, parse_command
from .pipeline import ChatPipeline

__all__ = [
    "ChatCommand",
    "ChatPipeline",
    "ClearCommand",
    "SlowModeCommand",
    "SlowModeOffCommand",
    "UnknownCommand",
    "parse_command",
]
