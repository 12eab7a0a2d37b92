"""
Runtime Handle Injection.

Binds the module-level handles used by instrumented code::

    from fnlog.runtime import LogRecord as _fnlog_record, default_context as _fnlog_context, default_sink as _fnlog_sink

The import is placed after the module docstring and any ``__future__``
imports, and is not added twice.
"""

from typing import List

import libcst as cst

from fnlog.core.rewriter.naming import CONTEXT_HANDLE, RECORD_HANDLE, SINK_HANDLE
from fnlog.utils.node_diff import capture_node_source

# (exported name, bound handle)
RUNTIME_BINDINGS = (
  ("LogRecord", RECORD_HANDLE),
  ("default_context", CONTEXT_HANDLE),
  ("default_sink", SINK_HANDLE),
)


def create_dotted_name(name_str: str) -> cst.BaseExpression:
  """
  Creates a CST node structure for a dotted path string.

  Args:
      name_str (str): Dot-separated path (e.g. "fnlog.runtime").

  Returns:
      Union[cst.Name, cst.Attribute]: The constructed AST node.
  """
  parts = name_str.split(".")
  node = cst.Name(parts[0])
  for part in parts[1:]:
    node = cst.Attribute(value=node, attr=cst.Name(part))
  return node


def build_runtime_import(runtime_module: str) -> cst.SimpleStatementLine:
  """
  Generates the handle import statement.

  Args:
      runtime_module: Dotted path of the module exporting the runtime objects.

  Returns:
      cst.SimpleStatementLine: The ``from ... import ... as ...`` statement.
  """
  names = [cst.ImportAlias(name=cst.Name(exported), asname=cst.AsName(name=cst.Name(handle))) for exported, handle in RUNTIME_BINDINGS]
  return cst.SimpleStatementLine(body=[cst.ImportFrom(module=create_dotted_name(runtime_module), names=names)])


def get_signature(node: cst.CSTNode) -> str:
  """
  Computes a deduplication signature for a statement.

  Args:
      node: The CST node to sign.

  Returns:
      str: Source code with whitespace runs collapsed.
  """
  target = node
  while isinstance(target, cst.SimpleStatementLine) and len(target.body) > 0:
    target = target.body[0]

  src = capture_node_source(target)
  return " ".join(src.split())


def is_docstring(node: cst.CSTNode, idx: int) -> bool:
  """True for a string expression statement at index 0."""
  if idx != 0:
    return False
  if isinstance(node, cst.SimpleStatementLine):
    if len(node.body) == 1 and isinstance(node.body[0], cst.Expr):
      expr = node.body[0].value
      if isinstance(expr, (cst.SimpleString, cst.ConcatenatedString)):
        return True
  return False


def is_future_import(node: cst.CSTNode) -> bool:
  """True for a ``from __future__ import ...`` statement."""
  if isinstance(node, cst.SimpleStatementLine):
    for small_stmt in node.body:
      if isinstance(small_stmt, cst.ImportFrom):
        if small_stmt.module and isinstance(small_stmt.module, cst.Name):
          if small_stmt.module.value == "__future__":
            return True
  return False


def inject_runtime_import(module: cst.Module, runtime_module: str) -> cst.Module:
  """
  Adds the handle import to a module unless an identical one is present.

  Args:
      module: The rewritten module.
      runtime_module: Dotted path of the runtime module.

  Returns:
      cst.Module: The module with the import in place.
  """
  injection = build_runtime_import(runtime_module)
  sig = get_signature(injection)

  body_stats: List[cst.BaseStatement] = list(module.body)
  if any(get_signature(stmt) == sig for stmt in body_stats if isinstance(stmt, cst.SimpleStatementLine)):
    return module

  insert_idx = 0
  for i, stmt in enumerate(body_stats):
    if is_docstring(stmt, i):
      insert_idx = i + 1
      continue
    if is_future_import(stmt):
      insert_idx = i + 1
      continue
    break

  merged_body = body_stats[:insert_idx] + [injection] + body_stats[insert_idx:]
  return module.with_changes(body=merged_body)
