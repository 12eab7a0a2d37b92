"""
Log Record Instrumentation.

Generates the code that runs at each function exit:

1.  Bind the exit value to the result slot.
2.  Emit a ``LogRecord`` through the sink handle.
3.  Pop the diagnostic context tag.
4.  Perform the original exit (``return`` or ``raise``).

Emission always precedes the context removal so the tag is still visible to
the sink. The value is bound exactly once, so logging never re-evaluates it.
"""

from typing import List, Optional, Sequence

import libcst as cst

from fnlog.config import RuntimeConfig
from fnlog.core.rewriter.context import build_context_remove
from fnlog.core.rewriter.directives import FunctionOptions
from fnlog.core.rewriter.naming import (
  ARGS_SLOT,
  IGNORED,
  NOTHING,
  RECORD_HANDLE,
  RESULT_SLOT,
  SINK_HANDLE,
  string_literal,
)
from fnlog.enums import ExitKind


class RecordBuilder:
  """
  Produces exit instrumentation for one function.

  Attributes:
      fn_name (str): The instrumented function's name (record field and routing target).
      config (RuntimeConfig): Severity and context key.
      options (FunctionOptions): Directive-derived options.
  """

  def __init__(self, fn_name: str, config: RuntimeConfig, options: FunctionOptions):
    self.fn_name = fn_name
    self.config = config
    self.options = options

  def build_emit(self) -> cst.BaseSmallStatement:
    """
    Generates the sink emission for the current result slot.

    Returns:
        cst.BaseSmallStatement: ``_fnlog_sink.emit(...)``.
    """
    if self.options.ignore_return:
      fn_return = f"repr({string_literal(IGNORED)})"
    else:
      fn_return = f"repr({RESULT_SLOT})"

    name = string_literal(self.fn_name)
    record = f"{RECORD_HANDLE}(fn_name={name}, fn_args={ARGS_SLOT}, fn_return={fn_return})"
    code = f"{SINK_HANDLE}.emit({string_literal(self.config.severity)}, {name}, {record})"
    return cst.parse_statement(code).body[0]

  def build_exit_action(self) -> List[cst.BaseSmallStatement]:
    """Emission followed by the context removal."""
    return [self.build_emit(), build_context_remove(self.config.context_key)]

  def build_exit(self, kind: ExitKind, value: Optional[cst.BaseExpression] = None) -> List[cst.BaseSmallStatement]:
    """
    Generates the full replacement for a returning exit.

    Args:
        kind: RETURN, TAIL or CONVENTION_RESULT.
        value: The (already rewritten) value expression, None for a bare exit.

    Returns:
        List[cst.BaseSmallStatement]: Bind, emit, remove, return.
    """
    if kind == ExitKind.FAILURE:
      raise ValueError("Failure exits are instrumented by build_failure_guard")

    if value is None:
      bind = _assign_slot(cst.SimpleString(string_literal(NOTHING)))
      leave = cst.Return(value=None)
    else:
      bind = _assign_slot(value)
      leave = cst.Return(value=cst.Name(RESULT_SLOT))

    return [bind, *self.build_exit_action(), leave]

  def build_exit_lines(self, kind: ExitKind, value: Optional[cst.BaseExpression] = None) -> List[cst.SimpleStatementLine]:
    """``build_exit`` with one statement per line."""
    return [cst.SimpleStatementLine(body=[stmt]) for stmt in self.build_exit(kind, value)]

  def build_failure_guard(self, body: Sequence[cst.BaseStatement]) -> cst.Try:
    """
    Wraps statements so that any exception leaving them is logged and re-raised.

    Generated shape::

        try:
            <body>
        except BaseException as _fnlog_res:
            _fnlog_sink.emit(...)
            _fnlog_context.remove("fn_name")
            raise

    Args:
        body: The statements to guard.

    Returns:
        cst.Try: The guard statement.
    """
    handler_body = [cst.SimpleStatementLine(body=[stmt]) for stmt in self.build_exit_action()]
    handler_body.append(cst.SimpleStatementLine(body=[cst.Raise()]))

    handler = cst.ExceptHandler(
      body=cst.IndentedBlock(body=handler_body),
      type=cst.Name("BaseException"),
      name=cst.AsName(name=cst.Name(RESULT_SLOT)),
    )
    return cst.Try(body=cst.IndentedBlock(body=list(body)), handlers=[handler])


def _assign_slot(value: cst.BaseExpression) -> cst.Assign:
  """``_fnlog_res = <value>``."""
  return cst.Assign(targets=[cst.AssignTarget(target=cst.Name(RESULT_SLOT))], value=value)
