"""
Module Transformer.

Finds every function carrying the marker decorator and hands it to the
``FunctionInstrumenter``. Functions are processed on leave, so a marked
function nested in another marked function is instrumented first and is then
an opaque scope for the outer walk.
"""

from typing import List, Optional

import libcst as cst

from fnlog.config import RuntimeConfig
from fnlog.core.rewriter.directives import find_marker
from fnlog.core.rewriter.function import FunctionInstrumenter
from fnlog.core.tracer import TraceLogger

_CLASS = "class"
_FUNCTION = "function"


class FunctionLogRewriter(cst.CSTTransformer):
  """
  Instruments marked functions across a module.

  Attributes:
      instrumented (List[str]): Qualified names of the functions rewritten, in leave order.
  """

  def __init__(self, config: RuntimeConfig, tracer: Optional[TraceLogger] = None):
    super().__init__()
    self.config = config
    self.instrumented: List[str] = []
    self._instrumenter = FunctionInstrumenter(config, tracer)
    self._scope_stack: List[str] = []
    self._name_stack: List[str] = []

  def visit_ClassDef(self, node: cst.ClassDef) -> Optional[bool]:
    self._scope_stack.append(_CLASS)
    self._name_stack.append(node.name.value)
    return True

  def leave_ClassDef(self, original_node: cst.ClassDef, updated_node: cst.ClassDef) -> cst.ClassDef:
    self._scope_stack.pop()
    self._name_stack.pop()
    return updated_node

  def visit_FunctionDef(self, node: cst.FunctionDef) -> Optional[bool]:
    self._scope_stack.append(_FUNCTION)
    self._name_stack.append(node.name.value)
    return True

  def leave_FunctionDef(self, original_node: cst.FunctionDef, updated_node: cst.FunctionDef) -> cst.FunctionDef:
    """
    Instruments the function if it carries the marker.

    Raises:
        InstrumentationError: Propagated from the instrumenter.
    """
    self._scope_stack.pop()
    qualname = ".".join(self._name_stack)
    self._name_stack.pop()

    if find_marker(updated_node.decorators, self.config.decorator_name) is None:
      return updated_node

    in_class_body = bool(self._scope_stack) and self._scope_stack[-1] == _CLASS
    result = self._instrumenter.instrument(updated_node, in_class_body=in_class_body)
    self.instrumented.append(qualname)
    return result
