"""Tool integrations for inspecting generation runs."""

from .operation_logs import OperationLogEntry, list_operation_logs, load_operation_log

__all__ = [
    "OperationLogEntry",
    "list_operation_logs",
    "load_operation_log",
]
