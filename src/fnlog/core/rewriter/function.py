"""
Function Instrumentation.

Assembles the instrumented body of one marked function::

    <docstring>
    <context insert>
    <argument snapshot>
    try:
        <walked body>
        <synthetic tail exit, if the top-level block can fall through>
    except BaseException as _fnlog_res:
        <emit + remove>
        raise

and removes the marker decorator. The signature and the remaining decorators
are kept as written.
"""

from typing import List, Optional, Sequence, Tuple

import libcst as cst
from libcst import IndentedBlock, SimpleStatementSuite

from fnlog.config import RuntimeConfig
from fnlog.core.errors import UnsupportedSyntaxError
from fnlog.core.rewriter.arguments import build_args_snapshot, iter_parameters
from fnlog.core.rewriter.classifier import FunctionTraits
from fnlog.core.rewriter.context import build_context_insert
from fnlog.core.rewriter.directives import find_marker, parse_directives
from fnlog.core.rewriter.records import RecordBuilder
from fnlog.core.rewriter.walker import ControlFlowWalker
from fnlog.core.tracer import TraceLogger
from fnlog.enums import ExitKind


class FunctionInstrumenter:
  """
  Rewrites marked function definitions.

  Attributes:
      config (RuntimeConfig): Engine configuration.
  """

  def __init__(self, config: RuntimeConfig, tracer: Optional[TraceLogger] = None):
    self.config = config
    self._tracer = tracer

  def instrument(self, node: cst.FunctionDef, in_class_body: bool = False) -> cst.FunctionDef:
    """
    Instruments a single function definition.

    Args:
        node: The function, still carrying its marker decorator.
        in_class_body: Whether the definition sits directly in a class body.

    Returns:
        cst.FunctionDef: The instrumented function without the marker.

    Raises:
        DirectiveError: If the marker's arguments are invalid.
        UnsupportedSyntaxError: If the function has no marker or a reserved parameter name.
    """
    marker = find_marker(node.decorators, self.config.decorator_name)
    if marker is None:
      raise UnsupportedSyntaxError(f"function '{node.name.value}' is not marked with @{self.config.decorator_name}", node=node)

    options = parse_directives(marker, self.config.strict_mode)
    traits = FunctionTraits.from_node(node, in_class_body)
    builder = RecordBuilder(traits.name, self.config, options)

    entry = [
      build_context_insert(traits.name, self.config.context_key),
      *build_args_snapshot(node.params, traits.is_method),
    ]

    node = self._convert_to_indented_block(node)
    docstring, stmts = _split_docstring(node.body.body)

    root = node.body.with_changes(body=stmts)
    walker = ControlFlowWalker(
      traits,
      builder,
      root,
      param_names=[p.name.value for p in iter_parameters(node.params)],
      tracer=self._tracer,
    )
    walked = root.visit(walker)

    guarded: List[cst.BaseStatement] = list(walked.body)
    if not walker.state.saw_explicit_exit:
      guarded.extend(builder.build_exit_lines(ExitKind.TAIL))

    guard = builder.build_failure_guard(guarded)
    body = node.body.with_changes(body=[*docstring, *entry, guard])
    decorators = [d for d in node.decorators if d is not marker]

    if self._tracer:
      self._tracer.log_function(traits.name, [k.value for k in walker.exits], walker.state.saw_explicit_exit)

    return node.with_changes(body=body, decorators=decorators)

  def _convert_to_indented_block(self, node: cst.FunctionDef) -> cst.FunctionDef:
    """
    Converts simple one-line function bodies to indented blocks.
    Necessary when injecting statements into ``def f(): return 1``.

    Args:
        node: Function Definition node.

    Returns:
        FunctionDef node with an ``IndentedBlock`` body.
    """
    if isinstance(node.body, SimpleStatementSuite):
      new_body_stmts = []
      for stmt in node.body.body:
        new_body_stmts.append(cst.SimpleStatementLine(body=[stmt.with_changes(semicolon=cst.MaybeSentinel.DEFAULT)]))

      new_block = IndentedBlock(body=new_body_stmts, header=node.body.trailing_whitespace)
      return node.with_changes(body=new_block)
    return node


def _split_docstring(stmts: Sequence[cst.BaseStatement]) -> Tuple[List[cst.BaseStatement], List[cst.BaseStatement]]:
  """Separates a leading docstring so it stays the first statement."""
  stmts = list(stmts)
  if (
    stmts
    and isinstance(stmts[0], cst.SimpleStatementLine)
    and len(stmts[0].body) == 1
    and isinstance(stmts[0].body[0], cst.Expr)
    and isinstance(stmts[0].body[0].value, (cst.SimpleString, cst.ConcatenatedString))
  ):
    return stmts[:1], stmts[1:]
  return [], stmts
