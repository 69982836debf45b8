"""Public exports for the task and session-history ledgers."""

from .history import CSV_HEADER, HistoryLedger, SessionRecord
from .tasks import Task, TaskLedger, TaskLedgerState, decode_task_state

__all__ = [
    "CSV_HEADER",
    "HistoryLedger",
    "SessionRecord",
    "Task",
    "TaskLedger",
    "TaskLedgerState",
    "decode_task_state",
]
