"""Runtime engine exports."""

from .commands import Command, parse_command
from .dispatch import RuntimeCommandDispatcher
from .loop import RuntimeBootstrap, RuntimeEngine, RuntimeHooks
from .scheduler import ThreadScheduler

__all__ = [
    "Command",
    "RuntimeBootstrap",
    "RuntimeCommandDispatcher",
    "RuntimeEngine",
    "RuntimeHooks",
    "ThreadScheduler",
    "parse_command",
]
