"""Execution log (audit trail).

One sanitized ``ExecutionLogEntry`` is recorded per dispatch. Entries go
through a bounded in-process queue (``ExecutionLogger``) to a pluggable
``ExecutionLogSink``; the SQL sink lives in ``audit.sql``.
"""

from .digest import digest_parameters
from .logger import ExecutionLogger
from .sinks import ExecutionLogSink, InMemoryExecutionLogSink

__all__ = [
    "ExecutionLogger",
    "ExecutionLogSink",
    "InMemoryExecutionLogSink",
    "digest_parameters",
]
