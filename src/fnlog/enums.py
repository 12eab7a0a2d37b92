"""
Enumerations for fnlog.

This module defines the closed sets of categories the rewriter reasons about:
the kinds of function exits, the classifier's decisions, and the recognised
logging directives.
"""

from enum import Enum


class ExitKind(str, Enum):
  """
  Syntactic positions where control permanently leaves the instrumented function.
  """

  RETURN = "return"  # explicit `return` / `return value`
  TAIL = "tail"  # falling off the end of the top-level block
  FAILURE = "failure"  # exception unwinding to the function boundary
  CONVENTION_RESULT = "convention_result"  # `return __ret` in wrapped-trait mode


class Classification(str, Enum):
  """
  Outcome of classifying a node during the control-flow walk.
  """

  FUNCTION_EXIT = "function_exit"
  NESTED_VALUE = "nested_value"  # entry into a nested block; its values stay local
  OPAQUE_SCOPE = "opaque_scope"  # closure, lambda, nested class
  PASS_THROUGH = "pass_through"  # convention boilerplate, recursed into but never logged
  UNSUPPORTED = "unsupported"  # no faithful single-emission rewrite exists
  RECURSE = "recurse"


class Directive(str, Enum):
  """
  Literal values accepted as the single argument of the logging decorator.
  """

  IGNORE_RETURN = "ignore-return"
