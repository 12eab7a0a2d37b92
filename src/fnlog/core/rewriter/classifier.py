"""
Exit-Point Classifier.

A pure decision function consulted by the walker at every node. It answers one
question: does control leaving through this node leave the instrumented
function, or does it belong to a nested scope?

The categories are enumerated explicitly below. Any node type not listed is
``RECURSE`` (walk the children, instrument nothing), so adding an instrumented
category is always a deliberate change to this module.

Two shapes are ``UNSUPPORTED`` and fail the build: a ``return`` inside a
``finally`` block, which replaces an exit that was already logged, and a
``yield`` in the function itself, which suspends the call while its context
tag is still pushed.

Wrapped-trait compatibility lives here too. The walker never checks the
convention names itself; it only acts on the decisions returned.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import libcst as cst

from fnlog.core.rewriter.directives import decorator_name
from fnlog.core.rewriter.naming import CONVENTION_RESULT_NAME, PIN_CALL, WRAPPED_TRAIT_MARKER
from fnlog.enums import Classification, ExitKind

# Nodes whose semantics can end the function.
EXIT_NODE_TYPES: Tuple[type, ...] = (cst.Return, cst.Raise)

# Nodes that open a scope with independent control flow.
OPAQUE_SCOPE_TYPES: Tuple[type, ...] = (cst.FunctionDef, cst.Lambda, cst.ClassDef)

# Suites nested below the function's own top-level block.
NESTED_BLOCK_TYPES: Tuple[type, ...] = (cst.IndentedBlock, cst.SimpleStatementSuite)


@dataclass
class WalkState:
  """
  Mutable traversal context, owned by a single walk.

  Attributes:
      block_depth: Nested suites entered below the top-level block.
      opaque_depth: Nested closures / lambdas / classes entered.
      saw_explicit_exit: A function exit was found directly in the top-level block.
      finally_depth: ``finally`` blocks of the function itself currently entered.
  """

  block_depth: int = 0
  opaque_depth: int = 0
  saw_explicit_exit: bool = False
  finally_depth: int = 0

  @property
  def at_top_level(self) -> bool:
    """True while the walk is in the function's own top-level block."""
    return self.block_depth == 0 and self.opaque_depth == 0


@dataclass(frozen=True)
class FunctionTraits:
  """
  Structural facts about the function being instrumented.

  Attributes:
      name: The function's identifier.
      is_method: Defined directly in a class body and not a staticmethod.
      wrapped_trait: Generated by the async-to-awaitable convention layer.
  """

  name: str
  is_method: bool = False
  wrapped_trait: bool = False

  @classmethod
  def from_node(cls, node: cst.FunctionDef, in_class_body: bool = False) -> "FunctionTraits":
    """
    Derives traits from a function definition.

    Args:
        node: The function definition.
        in_class_body: Whether the definition sits directly in a class body.

    Returns:
        FunctionTraits: The detected traits.
    """
    names = {decorator_name(d.decorator) for d in node.decorators}
    return cls(
      name=node.name.value,
      is_method=in_class_body and "staticmethod" not in names,
      wrapped_trait=WRAPPED_TRAIT_MARKER in names,
    )


@dataclass(frozen=True)
class Decision:
  """
  The classifier's verdict on a node.

  Attributes:
      classification: What the walker should do.
      exit_kind: Set when ``classification`` is FUNCTION_EXIT.
      reason: Set when ``classification`` is UNSUPPORTED.
  """

  classification: Classification
  exit_kind: Optional[ExitKind] = None
  reason: Optional[str] = None

  @property
  def is_exit(self) -> bool:
    return self.classification == Classification.FUNCTION_EXIT


RECURSE = Decision(Classification.RECURSE)
NESTED_VALUE = Decision(Classification.NESTED_VALUE)
OPAQUE_SCOPE = Decision(Classification.OPAQUE_SCOPE)
PASS_THROUGH = Decision(Classification.PASS_THROUGH)

RETURN_IN_FINALLY = Decision(
  Classification.UNSUPPORTED,
  reason="return inside a finally block would log a second exit for the same call",
)
GENERATOR = Decision(
  Classification.UNSUPPORTED,
  reason="generator functions cannot be instrumented: the context tag would stay set while suspended",
)


def classify(node: cst.CSTNode, state: WalkState, traits: FunctionTraits, root: Optional[cst.CSTNode] = None) -> Decision:
  """
  Classifies a node relative to the current walk state.

  Args:
      node: The node being visited.
      state: Current nesting counters.
      traits: Facts about the instrumented function.
      root: The function's own top-level suite (never counted as nested).

  Returns:
      Decision: How the walker must treat the node.
  """
  if isinstance(node, cst.Return):
    return _classify_return(node, state, traits)

  if isinstance(node, cst.Raise):
    if state.opaque_depth == 0:
      return Decision(Classification.FUNCTION_EXIT, ExitKind.FAILURE)
    return RECURSE

  if isinstance(node, cst.Yield):
    if state.opaque_depth == 0:
      return GENERATOR
    return RECURSE

  if isinstance(node, OPAQUE_SCOPE_TYPES):
    return OPAQUE_SCOPE

  if isinstance(node, NESTED_BLOCK_TYPES) and node is not root:
    return NESTED_VALUE

  return RECURSE


def _classify_return(node: cst.Return, state: WalkState, traits: FunctionTraits) -> Decision:
  if state.opaque_depth == 0 and state.finally_depth > 0:
    return RETURN_IN_FINALLY

  if traits.wrapped_trait:
    if is_convention_result(node.value):
      return Decision(Classification.FUNCTION_EXIT, ExitKind.CONVENTION_RESULT)
    if state.opaque_depth == 0 and is_pin_call(node.value):
      return PASS_THROUGH

  if state.opaque_depth == 0:
    return Decision(Classification.FUNCTION_EXIT, ExitKind.RETURN)
  return RECURSE


def is_convention_result(value: Optional[cst.BaseExpression]) -> bool:
  """``__ret`` as a bare name (parentheses allowed)."""
  return isinstance(value, cst.Name) and value.value == CONVENTION_RESULT_NAME


def is_pin_call(value: Optional[cst.BaseExpression]) -> bool:
  """A call such as ``Box.pin(fut)`` that boxes the generated future."""
  if not isinstance(value, cst.Call):
    return False
  parts = dotted_parts(value.func)
  return len(parts) >= 2 and (parts[0], parts[-1]) == PIN_CALL


def dotted_parts(node: Union[cst.BaseExpression, cst.Name]) -> Sequence[str]:
  """
  Flattens a Name/Attribute chain into its segments.

  Args:
      node: The expression.

  Returns:
      Sequence[str]: Segments (e.g. ``["Box", "pin"]``), empty for other shapes.
  """
  if isinstance(node, cst.Name):
    return [node.value]
  if isinstance(node, cst.Attribute):
    base = dotted_parts(node.value)
    if base:
      return [*base, node.attr.value]
  return []


class UnsupportedShapeFinder(cst.CSTVisitor):
  """
  Walks a function body with the walker's counters and stops at the first
  node classified ``UNSUPPORTED``.

  Attributes:
      found: ``(node, reason)`` of the first unsupported node, if any.
  """

  def __init__(self, traits: FunctionTraits):
    super().__init__()
    self.traits = traits
    self.state = WalkState()
    self.found: Optional[Tuple[cst.CSTNode, str]] = None

  def on_visit(self, node: cst.CSTNode) -> bool:
    if self.found is not None:
      return False
    if isinstance(node, cst.Finally) and self.state.opaque_depth == 0:
      self.state.finally_depth += 1

    decision = classify(node, self.state, self.traits)
    if decision.classification == Classification.UNSUPPORTED:
      self.found = (node, decision.reason or "unsupported syntax")
      return False
    if decision.classification == Classification.OPAQUE_SCOPE:
      self.state.opaque_depth += 1
    return True

  def on_leave(self, original_node: cst.CSTNode) -> None:
    if self.found is not None:
      return
    if isinstance(original_node, OPAQUE_SCOPE_TYPES):
      self.state.opaque_depth -= 1
    elif isinstance(original_node, cst.Finally) and self.state.opaque_depth == 0:
      self.state.finally_depth -= 1


def find_unsupported(node: cst.FunctionDef, traits: FunctionTraits) -> Optional[Tuple[cst.CSTNode, str]]:
  """
  Finds the first construct of a function that cannot be instrumented.

  Args:
      node: The function definition.
      traits: Facts about the function.

  Returns:
      Optional[Tuple[cst.CSTNode, str]]: The offending node and the reason, or None.
  """
  finder = UnsupportedShapeFinder(traits)
  node.body.visit(finder)
  return finder.found
