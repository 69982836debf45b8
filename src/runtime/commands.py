"""Parsing of terminal input lines into runtime commands."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pomodoro.constants import MODE_FOCUS, MODE_LONG_BREAK, MODE_SHORT_BREAK

COMMAND_START = "start"
COMMAND_PAUSE = "pause"
COMMAND_TOGGLE = "toggle"
COMMAND_RESET = "reset"
COMMAND_MODE = "mode"
COMMAND_CONFIRM = "confirm"
COMMAND_CANCEL = "cancel"
COMMAND_DURATION = "duration"
COMMAND_AUTO = "auto"
COMMAND_TASK = "task"
COMMAND_HISTORY = "history"
COMMAND_EXPORT = "export"
COMMAND_IMPORT = "import"
COMMAND_SOUND = "sound"
COMMAND_VOLUME = "volume"
COMMAND_MUTE = "mute"
COMMAND_NOTIFY = "notify"
COMMAND_STATUS = "status"
COMMAND_QUOTE = "quote"
COMMAND_HELP = "help"
COMMAND_QUIT = "quit"

COMMAND_NAMES = frozenset(
    {
        COMMAND_START,
        COMMAND_PAUSE,
        COMMAND_TOGGLE,
        COMMAND_RESET,
        COMMAND_MODE,
        COMMAND_CONFIRM,
        COMMAND_CANCEL,
        COMMAND_DURATION,
        COMMAND_AUTO,
        COMMAND_TASK,
        COMMAND_HISTORY,
        COMMAND_EXPORT,
        COMMAND_IMPORT,
        COMMAND_SOUND,
        COMMAND_VOLUME,
        COMMAND_MUTE,
        COMMAND_NOTIFY,
        COMMAND_STATUS,
        COMMAND_QUOTE,
        COMMAND_HELP,
        COMMAND_QUIT,
    }
)

_ALIASES = {
    "s": COMMAND_TOGGLE,
    "p": COMMAND_PAUSE,
    "r": COMMAND_RESET,
    "y": COMMAND_CONFIRM,
    "yes": COMMAND_CONFIRM,
    "n": COMMAND_CANCEL,
    "no": COMMAND_CANCEL,
    "tasks": COMMAND_TASK,
    "vol": COMMAND_VOLUME,
    "?": COMMAND_HELP,
    "q": COMMAND_QUIT,
    "exit": COMMAND_QUIT,
}

_MODE_ALIASES = {
    "focus": MODE_FOCUS,
    "work": MODE_FOCUS,
    "short": MODE_SHORT_BREAK,
    "short break": MODE_SHORT_BREAK,
    "break": MODE_SHORT_BREAK,
    "long": MODE_LONG_BREAK,
    "long break": MODE_LONG_BREAK,
}

_TRUE_WORDS = {"on", "true", "yes", "1", "enable", "enabled"}
_FALSE_WORDS = {"off", "false", "no", "0", "disable", "disabled"}

HELP_TEXT = """\
Timer:    start | pause | toggle (s) | reset | mode <focus|short|long> | confirm | cancel
Settings: duration <focus|short|long> <minutes> | duration reset
          auto [short|long on/off] | auto every <n>
Tasks:    task add <title> | task focus <n|title> | task done [n] | task delete <n>
          task list | task clear | task abandon
History:  history | history clear | export csv [dir] | export tasks <file> | import tasks <file>
Sound:    sound | sound <track> | sound autoplay <on|off> | volume <track|notify> <0-100>
          mute | notify
Other:    status | quote | help | quit"""


@dataclass(frozen=True)
class Command:
    """One parsed input line: a canonical name plus the raw remainder."""
    name: str
    argument: str = ""

    def split_argument(self) -> tuple[str, str]:
        """Split the argument into its first word (lowercased) and the rest."""
        head, _, rest = self.argument.partition(" ")
        return head.lower(), rest.strip()


def parse_command(line: str) -> Optional[Command]:
    """Parse `line`; returns None for blank input.

    Unknown words come back as a Command whose name is not in COMMAND_NAMES
    so the dispatcher can report them.
    """
    text = line.strip()
    if not text:
        return None
    head, _, rest = text.partition(" ")
    name = head.lower()
    name = _ALIASES.get(name, name)
    return Command(name=name, argument=rest.strip())


def parse_mode(text: str) -> Optional[str]:
    """Map user-facing mode words (focus, short, long break, ...) to a mode."""
    key = " ".join(text.lower().split())
    if not key:
        return None
    for mode in (MODE_FOCUS, MODE_SHORT_BREAK, MODE_LONG_BREAK):
        if key == mode.lower():
            return mode
    return _MODE_ALIASES.get(key)


def parse_switch(text: str) -> Optional[bool]:
    word = text.strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    return None


def parse_int(text: str) -> Optional[int]:
    try:
        return int(text.strip())
    except ValueError:
        return None
