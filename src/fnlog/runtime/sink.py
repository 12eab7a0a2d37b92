"""
Logging Sink.

Adapts the ``emit(severity, target, record)`` interface used by instrumented
code to the standard ``logging`` library. Each target function gets its own
logger, ``<prefix>.<target>``, so output can be routed per function with
ordinary logging configuration.
"""

import logging
from typing import Optional, Union

from fnlog.runtime.context import DiagnosticContext
from fnlog.runtime.records import LogRecord

DEFAULT_PREFIX = "fnlog"


class LoggingSink:
  """
  Emits ``LogRecord`` objects through ``logging``.

  Attributes:
      prefix (str): Logger name prefix.
      context (Optional[DiagnosticContext]): Store whose snapshot is attached as ``mdc``.
  """

  def __init__(self, prefix: str = DEFAULT_PREFIX, context: Optional[DiagnosticContext] = None):
    self.prefix = prefix
    self.context = context

  def logger_for(self, target: str) -> logging.Logger:
    return logging.getLogger(f"{self.prefix}.{target}" if self.prefix else target)

  def emit(self, severity: Union[str, int], target: str, record: LogRecord) -> None:
    """
    Logs one record.

    Args:
        severity: Level name (``"DEBUG"``) or number.
        target: Routing target, the instrumented function's name.
        record: The record to log.
    """
    level = severity if isinstance(severity, int) else logging.getLevelName(severity.upper())
    if not isinstance(level, int):
      level = logging.DEBUG

    logger = self.logger_for(target)
    if not logger.isEnabledFor(level):
      return

    extra = {"fn_name": record.fn_name, "log_record": record}
    if self.context is not None:
      extra["mdc"] = self.context.snapshot()
    logger.log(level, "%s", record.format(), extra=extra)
