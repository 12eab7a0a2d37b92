"""
Runtime Support for Instrumented Code.

Instrumented modules bind these objects as module-level handles::

    from fnlog.runtime import LogRecord as _fnlog_record, default_context as _fnlog_context, default_sink as _fnlog_sink

Callers that want isolated stores (tests, embedding applications) bind their
own objects to the same names instead.
"""

from fnlog.runtime.context import DiagnosticContext, DiagnosticContextFilter
from fnlog.runtime.records import LogRecord
from fnlog.runtime.sink import LoggingSink

default_context = DiagnosticContext()
default_sink = LoggingSink(context=default_context)

__all__ = [
  "DiagnosticContext",
  "DiagnosticContextFilter",
  "LogRecord",
  "LoggingSink",
  "default_context",
  "default_sink",
]
