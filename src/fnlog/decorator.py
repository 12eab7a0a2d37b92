"""
Definition-Time Instrumentation.

``log_function`` applies the same rewrite as the build step, but when the
``def`` statement executes: it reads the function's source, runs the
validation pass and the rewriter on it, and compiles the result against the
function's own globals::

    from fnlog import log_function

    @log_function
    def add(a, b):
        return a + b

    @log_function("ignore-return")
    def token(user):
        return secrets.token_hex()

Directive and syntax errors are raised while decorating, never when the
function is called. Restrictions that follow from re-compiling source:

- ``log_function`` must be the innermost decorator.
- The function must not close over variables of an enclosing function
  (this includes methods that use zero-argument ``super()``).
- The source must be available to ``inspect``.
"""

import functools
import inspect
import linecache
import logging
import textwrap
from typing import Any, Callable, Dict, List, Optional, TypeVar

import libcst as cst

from fnlog.config import RuntimeConfig
from fnlog.core.errors import InstrumentationError, UnsupportedSyntaxError
from fnlog.core.rewriter import FunctionLogRewriter
from fnlog.core.rewriter.directives import decorator_name
from fnlog.core.rewriter.naming import CONTEXT_HANDLE, RECORD_HANDLE, SINK_HANDLE
from fnlog.core.validation import DirectiveScanner

F = TypeVar("F", bound=Callable[..., Any])

logger = logging.getLogger(__name__)

_config: RuntimeConfig = RuntimeConfig()


def set_runtime_config(config: RuntimeConfig) -> None:
  """
  Replaces the configuration used by ``log_function``.

  Args:
      config: The new configuration. ``decorator_name`` and
          ``inject_runtime_import`` are ignored.
  """
  global _config
  _config = config


def get_runtime_config() -> RuntimeConfig:
  return _config


def log_function(*directives: Any) -> Any:
  """
  Marks a function for logging and instruments it immediately.

  Usable bare (``@log_function``) or with one directive literal
  (``@log_function("ignore-return")``). The directive is read back from the
  source, so it is validated exactly like the build step validates it.

  Returns:
      The instrumented function, or a decorator producing it.

  Raises:
      InstrumentationError: If the function cannot be instrumented.
  """
  if len(directives) == 1 and inspect.isfunction(directives[0]):
    return _instrument(directives[0], _config, marked=True)
  if len(directives) == 1 and isinstance(directives[0], (staticmethod, classmethod)):
    raise UnsupportedSyntaxError("log_function must be applied below @staticmethod and @classmethod")
  return lambda func: _instrument(func, _config, marked=True)


def instrument_function(func: F, config: Optional[RuntimeConfig] = None) -> F:
  """
  Re-creates an undecorated ``func`` as if it were marked with a bare ``@log_function``.

  Args:
      func: A plain function or coroutine function.
      config: Overrides the module-level configuration.

  Returns:
      The instrumented function, sharing ``func``'s globals.

  Raises:
      InstrumentationError: See the module docstring.
  """
  return _instrument(func, config or _config, marked=False)


def _instrument(func: F, config: RuntimeConfig, marked: bool) -> F:
  qualname = func.__qualname__

  if hasattr(func, "__wrapped__"):
    raise UnsupportedSyntaxError(f"log_function must be the innermost decorator of '{qualname}'")
  if func.__code__.co_freevars:
    names = ", ".join(func.__code__.co_freevars)
    raise UnsupportedSyntaxError(f"cannot instrument '{qualname}' at definition time: it closes over {names}")

  try:
    lines, first_line = inspect.getsourcelines(func)
    filename = inspect.getsourcefile(func) or "<unknown>"
  except (OSError, TypeError) as e:
    raise InstrumentationError(f"cannot read the source of '{qualname}': {e}") from e

  raw = "".join(lines)
  indent = len(raw) - len(raw.lstrip())
  source = textwrap.dedent(raw)

  func_def = _parse_function(source, qualname)
  if marked:
    if not func_def.decorators:
      raise UnsupportedSyntaxError(f"'{qualname}' has no decorators in its source")
    name = decorator_name(func_def.decorators[-1].decorator)
  else:
    name = config.decorator_name
    marker = cst.Decorator(decorator=cst.Name(name))
    func_def = func_def.with_changes(decorators=[*func_def.decorators, marker])

  config = config.model_copy(update={"decorator_name": name, "inject_runtime_import": False})
  if marked:
    _validate(source, config, filename, first_line - 1, indent)

  owner = _owner_class(qualname)
  module = _wrap(func_def, owner)
  rewritten = module.visit(FunctionLogRewriter(config))
  instrumented = _unwrap(rewritten, owner).with_changes(decorators=[])
  code = _wrap(instrumented, owner).code

  namespace = _execute(code, func.__globals__, qualname)
  if owner is None:
    new_func = namespace[func.__name__]
  else:
    new_func = namespace[owner].__dict__[func.__name__]

  functools.update_wrapper(new_func, func)
  new_func.__defaults__ = func.__defaults__
  new_func.__kwdefaults__ = func.__kwdefaults__
  return new_func


def _parse_function(source: str, qualname: str) -> cst.FunctionDef:
  module = cst.parse_module(source)
  if len(module.body) != 1 or not isinstance(module.body[0], cst.FunctionDef):
    raise UnsupportedSyntaxError(f"the source of '{qualname}' is not a single function definition")
  return module.body[0]


def _validate(source: str, config: RuntimeConfig, filename: str, line_offset: int, column_offset: int) -> None:
  """Runs the directive scanner and maps positions back to the original file."""
  scanner = DirectiveScanner(config, filename)
  cst.MetadataWrapper(cst.parse_module(source)).visit(scanner)

  for finding in scanner.errors + scanner.warnings:
    if finding.line is not None:
      finding.line += line_offset
      finding.column = (finding.column or 0) + column_offset

  for warning in scanner.warnings:
    logger.warning(warning.format())
  if scanner.errors:
    raise scanner.errors[0]


def _owner_class(qualname: str) -> Optional[str]:
  """Name of the class the function is defined in, if it is a method."""
  parts = qualname.split(".")
  if len(parts) > 1 and parts[-2] != "<locals>":
    return parts[-2]
  return None


def _wrap(func_def: cst.FunctionDef, owner: Optional[str]) -> cst.Module:
  # Methods are compiled inside a class of the same name to keep name mangling
  if owner is None:
    return cst.Module(body=[func_def])
  return cst.Module(body=[cst.ClassDef(name=cst.Name(owner), body=cst.IndentedBlock(body=[func_def]))])


def _unwrap(module: cst.Module, owner: Optional[str]) -> cst.FunctionDef:
  stmt = module.body[0]
  if owner is None:
    return stmt
  return stmt.body.body[0]


def _execute(code: str, globals_: Dict[str, Any], qualname: str) -> Dict[str, Any]:
  """Compiles the rewritten source with the runtime handles bound in ``globals_``."""
  from fnlog.runtime import LogRecord, default_context, default_sink

  globals_.setdefault(RECORD_HANDLE, LogRecord)
  globals_.setdefault(CONTEXT_HANDLE, default_context)
  globals_.setdefault(SINK_HANDLE, default_sink)

  filename = f"<fnlog {qualname}>"
  lines: List[str] = code.splitlines(keepends=True)
  linecache.cache[filename] = (len(code), None, lines, filename)

  namespace: Dict[str, Any] = {}
  exec(compile(code, filename, "exec"), globals_, namespace)
  return namespace
