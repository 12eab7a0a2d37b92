"""
Control-Flow Walker.

Rewrites the top-level suite of one function. The walker keeps the nesting
counters of ``WalkState`` in step with the tree, asks the classifier about
every node, and instruments the nodes classified as function exits:

- ``RETURN`` / ``CONVENTION_RESULT``: the ``return`` is expanded in place into
  bind / emit / remove / return.
- ``FAILURE``: an explicit ``raise`` is left as written; the function boundary
  guard built by ``FunctionInstrumenter`` logs every failure exit. Only its
  effect on ``saw_explicit_exit`` is tracked here.
- ``PASS_THROUGH``: convention boilerplate, recursed but never logged.

Opaque scopes (nested functions, lambdas, classes) are walked only to keep the
counters and to find convention exits; their own returns are untouched. An
outermost opaque scope that captures the function's parameters is preceded by
a copy of the argument snapshot. Statements that need such a prelude are
flattened into ``[*prelude, statement]``.

A node classified ``UNSUPPORTED`` aborts the walk with an
``UnsupportedSyntaxError``.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set, Union

import libcst as cst

from fnlog.core.errors import UnsupportedSyntaxError
from fnlog.core.rewriter.classifier import FunctionTraits, WalkState, classify
from fnlog.core.rewriter.naming import ARGS_SLOT
from fnlog.core.rewriter.records import RecordBuilder
from fnlog.core.tracer import TraceLogger
from fnlog.enums import Classification, ExitKind
from fnlog.utils.node_diff import capture_node_source

LeaveResult = Union[cst.CSTNode, cst.FlattenSentinel, cst.RemovalSentinel]


@dataclass
class _StatementFrame:
  prelude: List[cst.BaseStatement] = field(default_factory=list)
  has_snapshot_copy: bool = False


class _NameCollector(cst.CSTVisitor):
  """Collects identifiers read or written in a subtree (attribute names excluded)."""

  def __init__(self) -> None:
    self.names: Set[str] = set()

  def visit_Name(self, node: cst.Name) -> Optional[bool]:
    self.names.add(node.value)
    return False

  def visit_Attribute(self, node: cst.Attribute) -> Optional[bool]:
    node.value.visit(self)
    return False


class ControlFlowWalker(cst.CSTTransformer):
  """
  Transformer applied to a function's top-level suite.

  Attributes:
      state (WalkState): Nesting counters and the top-level exit flag.
      exits (List[ExitKind]): Every exit instrumented or accounted for, in walk order.
  """

  def __init__(
    self,
    traits: FunctionTraits,
    builder: RecordBuilder,
    root: cst.BaseSuite,
    param_names: Iterable[str] = (),
    tracer: Optional[TraceLogger] = None,
  ):
    """
    Args:
        traits: Facts about the function being instrumented.
        builder: Generates the exit instrumentation.
        root: The top-level suite the walk starts from.
        param_names: Parameters whose capture triggers a snapshot copy.
        tracer: Optional trace recorder.
    """
    super().__init__()
    self.traits = traits
    self.builder = builder
    self.state = WalkState()
    self.exits: List[ExitKind] = []
    self._root = root
    self._captured_names = frozenset(param_names)
    self._tracer = tracer
    self._frames: List[_StatementFrame] = []
    self._expand: List[bool] = []
    self._opaque_has_convention: List[bool] = []
    self._elifs: Set[int] = set()

  # --- Dispatch ---

  def on_visit(self, node: cst.CSTNode) -> bool:
    if isinstance(node, cst.If) and isinstance(node.orelse, cst.If):
      self._elifs.add(id(node.orelse))

    if self._is_statement_frame(node):
      self._frames.append(_StatementFrame())
    if isinstance(node, cst.Finally) and self.state.opaque_depth == 0:
      self.state.finally_depth += 1
    if isinstance(node, (cst.SimpleStatementLine, cst.SimpleStatementSuite)):
      self._expand.append(False)

    decision = classify(node, self.state, self.traits, self._root)
    if decision.classification == Classification.UNSUPPORTED:
      raise UnsupportedSyntaxError(f"{decision.reason} in '{self.traits.name}'", node=node)
    if decision.classification == Classification.OPAQUE_SCOPE:
      self.state.opaque_depth += 1
      self._opaque_has_convention.append(False)
    elif decision.classification == Classification.NESTED_VALUE:
      self.state.block_depth += 1

    return True

  def on_leave(self, original_node: cst.CSTNode, updated_node: cst.CSTNode) -> LeaveResult:
    if isinstance(original_node, cst.Finally) and self.state.opaque_depth == 0:
      self.state.finally_depth -= 1

    decision = classify(original_node, self.state, self.traits, self._root)
    result: LeaveResult = updated_node

    if decision.classification == Classification.OPAQUE_SCOPE:
      self.state.opaque_depth -= 1
      has_convention = self._opaque_has_convention.pop()
      result = self._leave_opaque_scope(original_node, updated_node, has_convention)

    elif decision.classification == Classification.NESTED_VALUE:
      self.state.block_depth -= 1

    elif decision.is_exit:
      result = self._leave_exit(original_node, updated_node, decision.exit_kind)

    elif decision.classification == Classification.PASS_THROUGH and self._tracer:
      self._tracer.log_inspection(capture_node_source(original_node), "pass-through", self.traits.name)

    if isinstance(original_node, cst.SimpleStatementLine):
      if self._expand.pop():
        result = self._split_line(updated_node)
    elif isinstance(original_node, cst.SimpleStatementSuite):
      if self._expand.pop():
        result = self._suite_to_block(updated_node)

    if self._is_statement_frame(original_node):
      result = self._flush_frame(self._frames.pop(), result)

    return result

  # --- Exits ---

  def _leave_exit(self, original_node: cst.CSTNode, updated_node: cst.CSTNode, kind: ExitKind) -> LeaveResult:
    self.exits.append(kind)

    if kind == ExitKind.FAILURE:
      if self.state.at_top_level:
        self.state.saw_explicit_exit = True
      return updated_node

    if kind == ExitKind.CONVENTION_RESULT:
      self.state.saw_explicit_exit = True
      if self._opaque_has_convention:
        self._opaque_has_convention[-1] = True
    elif self.state.at_top_level:
      self.state.saw_explicit_exit = True

    stmts = self.builder.build_exit(kind, updated_node.value)
    self._expand[-1] = True

    if self._tracer:
      after = "\n".join(capture_node_source(cst.SimpleStatementLine(body=[s])).rstrip() for s in stmts)
      self._tracer.log_exit(self.traits.name, kind.value, capture_node_source(original_node), after)

    return cst.FlattenSentinel(stmts)

  # --- Opaque scopes ---

  def _leave_opaque_scope(self, original_node: cst.CSTNode, updated_node: cst.CSTNode, has_convention: bool) -> LeaveResult:
    result = updated_node

    if has_convention and isinstance(result, cst.FunctionDef) and result.asynchronous is not None:
      if isinstance(result.body, cst.IndentedBlock):
        guard = self.builder.build_failure_guard(result.body.body)
        result = result.with_changes(body=result.body.with_changes(body=[guard]))

    captures = has_convention or self._captures_parameters(original_node)
    if self.state.opaque_depth == 0 and captures and self._frames:
      frame = self._frames[-1]
      if not frame.has_snapshot_copy:
        frame.prelude.append(cst.parse_statement(f"{ARGS_SLOT} = list({ARGS_SLOT})"))
        frame.has_snapshot_copy = True

    return result

  def _captures_parameters(self, node: cst.CSTNode) -> bool:
    if not isinstance(node, (cst.FunctionDef, cst.Lambda)):
      return False
    collector = _NameCollector()
    node.body.visit(collector)
    return bool(collector.names & self._captured_names)

  # --- Statement bookkeeping ---

  def _is_statement_frame(self, node: cst.CSTNode) -> bool:
    if not isinstance(node, (cst.SimpleStatementLine, cst.BaseCompoundStatement)):
      return False
    return id(node) not in self._elifs

  def _flush_frame(self, frame: _StatementFrame, result: LeaveResult) -> LeaveResult:
    if not frame.prelude:
      return result

    if isinstance(result, cst.FlattenSentinel):
      nodes = list(result.nodes)
    elif isinstance(result, cst.RemovalSentinel):
      nodes = []
    else:
      nodes = [result]

    prelude = list(frame.prelude)
    if nodes and hasattr(nodes[0], "leading_lines"):
      prelude[0] = prelude[0].with_changes(leading_lines=nodes[0].leading_lines)
      nodes[0] = nodes[0].with_changes(leading_lines=())
    return cst.FlattenSentinel([*prelude, *nodes])

  def _split_line(self, line: cst.SimpleStatementLine) -> cst.FlattenSentinel:
    """One statement per line; comments stay on the first and last line."""
    small = [s.with_changes(semicolon=cst.MaybeSentinel.DEFAULT) for s in line.body]
    lines = [cst.SimpleStatementLine(body=[s]) for s in small]
    lines[0] = lines[0].with_changes(leading_lines=line.leading_lines)
    lines[-1] = lines[-1].with_changes(trailing_whitespace=line.trailing_whitespace)
    return cst.FlattenSentinel(lines)

  def _suite_to_block(self, suite: cst.SimpleStatementSuite) -> cst.IndentedBlock:
    """``if x: return y`` style suites become indented blocks."""
    lines = [cst.SimpleStatementLine(body=[s.with_changes(semicolon=cst.MaybeSentinel.DEFAULT)]) for s in suite.body]
    return cst.IndentedBlock(body=lines, header=suite.trailing_whitespace)
