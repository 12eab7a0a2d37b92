"""
Directive Validation Pass.

Checks every marked definition before any code is rewritten, so the engine
can refuse a module as a whole instead of expanding it partially. Findings are
anchored at source positions resolved through LibCST's ``PositionProvider``.

Errors:
- Invalid directive arity or literal type (``DirectiveError``).
- Unknown directive literals in strict mode (``DirectiveError``).
- The marker applied to a class, a parameter using the reserved prefix, a
  ``return`` inside a ``finally`` block, or a generator
  (``UnsupportedSyntaxError``).

Warnings:
- Unknown directive literals outside strict mode. They are accepted without
  effect.
"""

from typing import List, Optional

import libcst as cst
from libcst.metadata import PositionProvider

from fnlog.config import RuntimeConfig
from fnlog.core.errors import InstrumentationError, UnsupportedSyntaxError
from fnlog.core.rewriter.arguments import check_parameters
from fnlog.core.rewriter.classifier import FunctionTraits, find_unsupported
from fnlog.core.rewriter.directives import find_marker, parse_directives


class DirectiveScanner(cst.CSTVisitor):
  """
  Collects build diagnostics for the marked definitions of a module.

  Must be run through a ``cst.MetadataWrapper``.

  Attributes:
      errors (List[InstrumentationError]): Fatal findings, in source order.
      warnings (List[InstrumentationError]): Non-fatal findings.
      marked_functions (int): Number of functions carrying the marker.
  """

  METADATA_DEPENDENCIES = (PositionProvider,)

  def __init__(self, config: RuntimeConfig, filename: Optional[str] = None):
    super().__init__()
    self.config = config
    self.filename = filename
    self.errors: List[InstrumentationError] = []
    self.warnings: List[InstrumentationError] = []
    self.marked_functions = 0

  def visit_ClassDef(self, node: cst.ClassDef) -> Optional[bool]:
    marker = find_marker(node.decorators, self.config.decorator_name)
    if marker is not None:
      err = UnsupportedSyntaxError(
        f"@{self.config.decorator_name} can only be applied to functions, not to class '{node.name.value}'",
        node=marker,
      )
      self._report(err, self.errors)
    return True

  def visit_FunctionDef(self, node: cst.FunctionDef) -> Optional[bool]:
    marker = find_marker(node.decorators, self.config.decorator_name)
    if marker is None:
      return True

    self.marked_functions += 1
    try:
      options = parse_directives(marker, self.config.strict_mode)
      check_parameters(node.params)
    except InstrumentationError as err:
      self._report(err, self.errors, fallback=marker)
      return True

    unsupported = find_unsupported(node, FunctionTraits.from_node(node))
    if unsupported is not None:
      offender, reason = unsupported
      self._report(UnsupportedSyntaxError(f"{reason} in '{node.name.value}'", node=offender), self.errors)
      return True

    if options.unknown_directive is not None:
      warning = InstrumentationError(
        f"unknown logging directive '{options.unknown_directive}' has no effect",
        node=marker,
      )
      self._report(warning, self.warnings)
    return True

  def _report(
    self,
    err: InstrumentationError,
    bucket: List[InstrumentationError],
    fallback: Optional[cst.CSTNode] = None,
  ) -> None:
    anchor = err.node if err.node is not None else fallback
    position = self.get_metadata(PositionProvider, anchor, None) if anchor is not None else None
    bucket.append(err.at(position, self.filename))
