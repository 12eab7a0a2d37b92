"""
Rewriter Package.

Components of the function-logging rewrite, leaf first:
- Directives: parses the marker decorator's arguments.
- Arguments: builds the entry-time argument snapshot.
- Classifier: decides whether a node is a function exit.
- Walker: rewrites a function body, instrumenting each exit.
- Records / Context: generate the emission and context push/pop code.
- Function / Transformer: apply the rewrite to marked functions in a module.
"""

from fnlog.core.rewriter.classifier import FunctionTraits, WalkState, classify
from fnlog.core.rewriter.directives import FunctionOptions, parse_directives
from fnlog.core.rewriter.function import FunctionInstrumenter
from fnlog.core.rewriter.transformer import FunctionLogRewriter

__all__ = [
  "FunctionInstrumenter",
  "FunctionLogRewriter",
  "FunctionOptions",
  "FunctionTraits",
  "WalkState",
  "classify",
  "parse_directives",
]
