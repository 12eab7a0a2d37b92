"""
Orchestration Engine for Function Instrumentation.

This module provides the ``InstrumentEngine``, the driver for rewriting one
module. The pipeline consists of:

1.  **Parsing**: source text into a LibCST tree.
2.  **Validation**: ``DirectiveScanner`` checks every marked definition under a
    ``MetadataWrapper``. Any error aborts the run before rewriting, so a module
    is never partially expanded.
3.  **Rewriting**: ``FunctionLogRewriter`` instruments each marked function.
4.  **Import Injection**: binds the runtime handles at module level (unless
    disabled in ``RuntimeConfig``).

Every phase is recorded in a ``TraceLogger`` whose events are returned with the
result.
"""

from typing import Any, Dict, List, Optional

import libcst as cst
from pydantic import BaseModel, Field

from fnlog.config import RuntimeConfig
from fnlog.core.errors import InstrumentationError
from fnlog.core.rewriter import FunctionLogRewriter
from fnlog.core.runtime_import import inject_runtime_import
from fnlog.core.tracer import TraceLogger
from fnlog.core.validation import DirectiveScanner


class InstrumentResult(BaseModel):
  """
  Structured result of instrumenting a single module.
  """

  code: str = Field(default="", description="The instrumented source code (the input, unchanged, on failure).")
  errors: List[str] = Field(default_factory=list, description="Formatted build diagnostics.")
  warnings: List[str] = Field(default_factory=list, description="Formatted non-fatal diagnostics.")
  success: bool = Field(default=True, description="True if the module was instrumented.")
  instrumented_functions: List[str] = Field(default_factory=list, description="Qualified names of rewritten functions.")
  trace_events: List[Dict[str, Any]] = Field(default_factory=list, description="A log of internal trace events.")

  @property
  def has_errors(self) -> bool:
    """
    Returns True if any errors were recorded.

    Returns:
        bool: True if errors list is non-empty.
    """
    return len(self.errors) > 0


class InstrumentEngine:
  """
  The main instrumentation unit.

  Encapsulates the configuration and the pipeline applied to a single source
  string.
  """

  def __init__(self, config: Optional[RuntimeConfig] = None, filename: Optional[str] = None):
    """
    Args:
        config (RuntimeConfig, optional): Runtime configuration. Loaded from pyproject.toml if None.
        filename (str, optional): Used to anchor diagnostics.
    """
    self.config = config or RuntimeConfig.load()
    self.filename = filename

  def parse(self, code: str) -> cst.Module:
    """
    Parses source string into a LibCST Module.

    Args:
        code (str): Python source code.

    Returns:
        cst.Module: The parsed tree.

    Raises:
        libcst.ParserSyntaxError: If the input code is invalid Python.
    """
    return cst.parse_module(code)

  def run(self, code: str) -> InstrumentResult:
    """
    Executes the full instrumentation pipeline.

    Args:
        code (str): The input source string.

    Returns:
        InstrumentResult: Object containing the instrumented code and diagnostics.
    """
    tracer = TraceLogger()
    tracer.start_phase("Instrumentation Pipeline", self.filename or "<string>")

    tracer.start_phase("Parsing")
    try:
      tree = self.parse(code)
    except cst.ParserSyntaxError as e:
      return self._failed(code, [f"Parse Error: {e}"], [], tracer)
    tracer.end_phase()

    tracer.start_phase("Validation", "Checking logging directives")
    wrapper = cst.MetadataWrapper(tree)
    scanner = DirectiveScanner(self.config, self.filename)
    wrapper.visit(scanner)
    warnings = [w.format() for w in scanner.warnings]
    for w in warnings:
      tracer.log_warning(w)
    tracer.end_phase()

    if scanner.errors:
      return self._failed(code, [e.format() for e in scanner.errors], warnings, tracer)

    if scanner.marked_functions == 0:
      tracer.end_phase()
      return InstrumentResult(code=code, warnings=warnings, trace_events=tracer.export())

    tracer.start_phase("Rewriting", "Instrumenting marked functions")
    rewriter = FunctionLogRewriter(self.config, tracer)
    try:
      tree = tree.visit(rewriter)
    except InstrumentationError as e:
      if e.filename is None:
        e.filename = self.filename
      return self._failed(code, [e.format()], warnings, tracer)
    tracer.end_phase()

    if self.config.inject_runtime_import:
      tracer.start_phase("Import Injection", self.config.runtime_module)
      tree = inject_runtime_import(tree, self.config.runtime_module)
      tracer.end_phase()

    tracer.end_phase()
    return InstrumentResult(
      code=tree.code,
      warnings=warnings,
      instrumented_functions=rewriter.instrumented,
      trace_events=tracer.export(),
    )

  def _failed(self, code: str, errors: List[str], warnings: List[str], tracer: TraceLogger) -> InstrumentResult:
    for err in errors:
      tracer.log_warning(err)
    tracer.end_all_phases()
    return InstrumentResult(code=code, errors=errors, warnings=warnings, success=False, trace_events=tracer.export())
