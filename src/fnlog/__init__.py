"""
fnlog Package.

Structured entry/exit logging for Python functions, added by rewriting their
source. Every exit of a marked function (each ``return``, falling off the end,
and every propagated exception) emits one ``LogRecord`` carrying the function
name, its arguments and its result, while the ``fn_name`` diagnostic-context
tag is scoped to the call.

Usage
-----

Definition Time
^^^^^^^^^^^^^^^

.. code-block:: python

    from fnlog import log_function

    @log_function
    def add(a, b):
        return a + b

Build Time (String Conversion)
^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^

.. code-block:: python

    import fnlog
    code = "@log_function\\ndef add(a, b):\\n    return a + b\\n"
    print(fnlog.instrument(code))

Advanced Usage (Engine)
^^^^^^^^^^^^^^^^^^^^^^^

.. code-block:: python

    from fnlog import InstrumentEngine, RuntimeConfig

    engine = InstrumentEngine(config=RuntimeConfig(strict_mode=True), filename="svc.py")
    res = engine.run(source)
    if not res.success:
        print(res.errors)
"""

from typing import Optional

from fnlog.config import RuntimeConfig
from fnlog.core.engine import InstrumentEngine, InstrumentResult
from fnlog.core.errors import DirectiveError, InstrumentationError, UnsupportedSyntaxError
from fnlog.decorator import log_function
from fnlog.runtime import DiagnosticContext, LogRecord, LoggingSink

__version__ = "0.1.0"


def instrument(
  code: str,
  strict: bool = False,
  severity: str = "DEBUG",
  inject_runtime_import: bool = True,
  filename: Optional[str] = None,
) -> str:
  """
  Rewrites every function marked with ``@log_function`` in a source string.

  This is a convenience wrapper around ``InstrumentEngine``. For files and
  trees use the ``fnlog instrument`` command.

  Args:
      code (str): The module source.
      strict (bool): Reject unknown directive literals.
      severity (str): Logging level name of the emitted records.
      inject_runtime_import (bool): Add the ``fnlog.runtime`` handle import.
      filename (str, optional): Used in diagnostics.

  Returns:
      str: The instrumented source code.

  Raises:
      ValueError: If the module cannot be parsed or a directive is invalid.
  """
  config = RuntimeConfig(strict_mode=strict, severity=severity, inject_runtime_import=inject_runtime_import)
  result = InstrumentEngine(config=config, filename=filename).run(code)

  if not result.success:
    error_msg = "\n".join(result.errors)
    raise ValueError(f"Instrumentation failed:\n{error_msg}")

  return result.code


__all__ = [
  "DiagnosticContext",
  "DirectiveError",
  "InstrumentEngine",
  "InstrumentResult",
  "InstrumentationError",
  "LogRecord",
  "LoggingSink",
  "RuntimeConfig",
  "UnsupportedSyntaxError",
  "__version__",
  "instrument",
  "log_function",
]
