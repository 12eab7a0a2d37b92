"""
Diagnostic Context Instrumentation.

Generates the push/pop pair that scopes the ``fn_name`` tag to one execution
of the instrumented function. The insert is placed at entry; a remove follows
the log emission at every exit.
"""

import libcst as cst

from fnlog.core.rewriter.naming import CONTEXT_HANDLE, string_literal


def build_context_insert(fn_name: str, key: str) -> cst.SimpleStatementLine:
  """
  Generates ``_fnlog_context.insert("<key>", "<fn_name>")``.

  Args:
      fn_name: The instrumented function's name.
      key: The context key (``fn_name`` by default).

  Returns:
      cst.SimpleStatementLine: The entry statement.
  """
  return cst.parse_statement(f"{CONTEXT_HANDLE}.insert({string_literal(key)}, {string_literal(fn_name)})")


def build_context_remove(key: str) -> cst.BaseSmallStatement:
  """
  Generates ``_fnlog_context.remove("<key>")`` as a small statement.

  Args:
      key: The context key.

  Returns:
      cst.BaseSmallStatement: The exit statement.
  """
  return cst.parse_statement(f"{CONTEXT_HANDLE}.remove({string_literal(key)})").body[0]
