"""
Central Logging and Console Utilities.

Tool output (CLI progress, diagnostics, batch summaries) goes through the
standard ``logging`` library, rendered by ``rich``.

The Rich Console is reached through a proxy so the destination can be swapped
at runtime via ``set_console`` (for example an in-memory console in tests).
Swapping the backend also re-points the ``RichHandler`` on the ``fnlog.tool`` logger.

Attributes:
    console (_ConsoleProxy): A global, stable reference to the active Rich Console.
"""

import logging
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

# Between INFO and WARNING
SUCCESS_LEVEL_NUM = 25
logging.addLevelName(SUCCESS_LEVEL_NUM, "SUCCESS")

_THEME = Theme(
  {
    "logging.level.success": "green",
    "info": "dim cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "green",
    "path": "bold blue",
    "code": "bold magenta",
  }
)


class _ConsoleProxy:
  """
  A Proxy wrapper around ``rich.console.Console``.

  All printing operations are forwarded to the backend, which can be replaced
  while modules keep their reference to the proxy.

  Attributes:
      _backend (Console): The active Rich Console instance.
  """

  def __init__(self) -> None:
    self._backend: Console = Console(theme=_THEME)
    self._handler: Optional[RichHandler] = None
    self._configure_logging()

  def set_backend(self, new_console: Console) -> None:
    """
    Injects a new Console backend and updates logging handlers.

    Args:
        new_console (Console): The new Rich Console instance to use.
    """
    self._backend = new_console
    self._configure_logging()

  def reset(self) -> None:
    """Resets the proxy to use a fresh standard output console."""
    self._backend = Console(theme=_THEME)
    self._configure_logging()

  @property
  def backend(self) -> Console:
    return self._backend

  def _configure_logging(self) -> None:
    """
    Directs the tool's ``logging`` output to the current backend console.

    Only the ``fnlog.tool`` logger is configured. Records emitted by
    instrumented code go to ``fnlog.<function>`` loggers and are left to the
    application's own logging setup.
    """
    tool_logger = logging.getLogger("fnlog.tool")
    if self._handler is not None:
      tool_logger.removeHandler(self._handler)

    self._handler = RichHandler(
      console=self._backend,
      show_time=False,
      omit_repeated_times=False,
      show_path=False,
      markup=True,
      rich_tracebacks=True,
    )
    tool_logger.setLevel(logging.INFO)
    tool_logger.addHandler(self._handler)
    tool_logger.propagate = False

  def print(self, *args: Any, **kwargs: Any) -> None:
    """Forwards ``print`` calls to the active backend."""
    self._backend.print(*args, **kwargs)

  def export_text(self, **kwargs: Any) -> str:
    """Forwards ``export_text`` (useful for log capturing)."""
    return self._backend.export_text(**kwargs)

  def __getattr__(self, name: str) -> Any:
    return getattr(self._backend, name)


console = _ConsoleProxy()

_log = logging.getLogger("fnlog.tool")


def set_console(new_console: Console) -> None:
  """
  Global helper to inject a specific console instance.

  Args:
      new_console (Console): The configured Rich console to use globally.
  """
  console.set_backend(new_console)


def reset_console() -> None:
  """Global helper to reset logging and console to standard output."""
  console.reset()


def get_console() -> Console:
  """
  Retrieves the currently active console backend.

  Returns:
      Console: The active Rich Console.
  """
  return console.backend


def log_info(msg: str) -> None:
  """
  Logs an informational message.

  Args:
      msg (str): The message content. Can include rich markup like [bold].
  """
  _log.info(f"ℹ️  {msg}", extra={"markup": True})


def log_success(msg: str) -> None:
  """Logs a success message at the SUCCESS level."""
  _log.log(SUCCESS_LEVEL_NUM, f"✅ {msg}", extra={"markup": True})


def log_warning(msg: str) -> None:
  """Logs a warning message."""
  _log.warning(f"⚠️  {msg}", extra={"markup": True})


def log_error(msg: str) -> None:
  """
  Logs an error message.

  Args:
      msg (str): The message content.
  """
  _log.error(f"❌ {msg}", extra={"markup": True})
